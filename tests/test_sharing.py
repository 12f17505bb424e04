from datetime import date, datetime, timezone

from insights.filters import FilterSpec
from insights.sharing import (
    ShareConfig,
    resolve_active_tab,
    resolve_client_name,
    share_config_from_dict,
    share_config_to_dict,
    toggle_tab,
    update_share_config,
)


def test_active_tab_is_corrected():
    assert resolve_active_tab(["sales", "demographics"], "summary") == (("sales", "demographics"), "sales")
    config = ShareConfig(allowed_tabs=("sales", "demographics"), active_tab="summary")
    assert config.active_tab == "sales"


def test_empty_allowed_tabs_fall_back_to_summary():
    config = ShareConfig(allowed_tabs=())
    assert config.allowed_tabs == ("summary",)
    assert config.active_tab == "summary"


def test_toggle_tab_never_removes_last_tab():
    config = ShareConfig(allowed_tabs=("summary",))
    assert toggle_tab(config, "summary").allowed_tabs == ("summary",)
    both = toggle_tab(config, "sales")
    assert both.allowed_tabs == ("summary", "sales")
    assert toggle_tab(both, "summary").active_tab == "sales"
    assert toggle_tab(config, "settings") is config


def test_update_returns_new_config():
    config = ShareConfig()
    updated = update_share_config(config, hide_totals=True)
    assert updated.hide_totals is True
    assert config.hide_totals is False


def test_client_name_resolution():
    assert resolve_client_name(ShareConfig(client_name="  Acme  ")) == "Acme"
    assert resolve_client_name(ShareConfig(brand_names=("Acme", "Fizz", "Acme"))) == "Acme, Fizz"
    assert resolve_client_name(ShareConfig()) == "Client"


def test_config_dict_round_trip():
    config = ShareConfig(
        allowed_tabs=("summary", "sales"),
        hide_retailers=True,
        custom_excluded_dates=frozenset({date(2024, 3, 1)}),
        expiry_date=datetime(2030, 1, 1, tzinfo=timezone.utc),
        filters=FilterSpec(date_mode="month", month="2024-03"),
    )
    assert share_config_from_dict(share_config_to_dict(config)) == config


def test_naive_expiry_is_utc():
    config = share_config_from_dict({"expiry_date": "2030-01-01T00:00:00"})
    assert config.expiry_date == datetime(2030, 1, 1, tzinfo=timezone.utc)
