import copy
from datetime import date

from insights.filters import FilterSpec
from insights.metrics_summary import compute_filtered_view
from insights.redaction import PLACEHOLDER, redact, redact_records
from insights.sharing import ShareConfig


def _view():
    return {
        "filters": {"selected_retailers": ["Kroger", "Walmart"]},
        "metrics": {"total_records": 15, "total_value": 120.5, "distinct_retailers": 2},
        "growth": {"record_growth": 3, "record_growth_pct": 25.0},
        "retailer_distribution": [
            {"name": "Walmart", "value": 10, "percentage": 66.7},
            {"name": "Kroger", "value": 5, "percentage": 33.3},
        ],
        "product_distribution": [{"name": "Soda", "count": 15, "percentage": 100.0, "value": 120.5}],
        "daily_trend": [{"date": "2024-03-01", "count": 10}, {"date": "2024-03-02", "count": 5}],
        "insights": {"top_retailer": {"name": "Walmart", "value": 10, "percentage": 66.7}},
    }


def test_hide_retailers_relabels_in_distribution_order():
    out = redact(_view(), ShareConfig(hide_retailers=True))
    assert [(r["name"], r["value"]) for r in out["retailer_distribution"]] == [("Retailer 1", 10), ("Retailer 2", 5)]
    assert out["insights"]["top_retailer"]["name"] == "Retailer 1"
    assert sorted(out["filters"]["selected_retailers"]) == ["Retailer 1", "Retailer 2"]
    assert out["metrics"]["total_records"] == 15


def test_hide_totals_with_show_only_percent():
    out = redact(_view(), ShareConfig(hide_totals=True, show_only_percent=True))
    dist = out["retailer_distribution"]
    assert len(dist) == 2
    assert all(r["value"] == PLACEHOLDER for r in dist)
    assert [r["percentage"] for r in dist] == [66.7, 33.3]
    assert out["product_distribution"][0]["count"] == PLACEHOLDER
    assert out["metrics"]["total_records"] == PLACEHOLDER
    assert out["metrics"]["distinct_retailers"] == 2
    assert out["growth"]["record_growth"] == PLACEHOLDER
    assert out["growth"]["record_growth_pct"] == 25.0


def test_show_only_percent_alone_is_ignored():
    out = redact(_view(), ShareConfig(show_only_percent=True))
    assert out["retailer_distribution"][0]["value"] == 10
    assert out["metrics"]["total_records"] == 15


def test_hide_totals_keeps_distribution_values():
    out = redact(_view(), ShareConfig(hide_totals=True))
    assert out["metrics"]["total_value"] == PLACEHOLDER
    assert out["retailer_distribution"][0]["value"] == 10


def test_excluded_dates_drop_trend_points():
    out = redact(_view(), ShareConfig(custom_excluded_dates=frozenset({date(2024, 3, 1)})))
    assert out["daily_trend"] == [{"date": "2024-03-02", "count": 5}]


def test_redact_leaves_input_untouched():
    view = _view()
    before = copy.deepcopy(view)
    redact(view, ShareConfig(hide_retailers=True, hide_totals=True, show_only_percent=True))
    assert view == before


def test_redact_sets_share_fields():
    config = ShareConfig(allowed_tabs=("sales", "demographics"), active_tab="summary", hidden_charts=("daily_trend",))
    out = redact(_view(), config)
    assert out["allowed_tabs"] == ["sales", "demographics"]
    assert out["active_tab"] == "sales"
    assert out["hidden_charts"] == ["daily_trend"]
    assert out["is_shared_view"] is True


def test_redact_records_drops_survey_columns():
    rows = [
        {"date": "2024-03-01", "chain": "Walmart", "receipt_total": 4.0, "gender": "Female", "proposition_01": "A"},
        {"date": "2024-03-02", "chain": "Kroger", "receipt_total": 2.0, "gender": "Male", "proposition_01": "B"},
    ]
    config = ShareConfig(hide_retailers=True, hide_totals=True, custom_excluded_dates=frozenset({date(2024, 3, 2)}))
    out = redact_records(rows, config, {"Kroger": "Retailer 1"})
    assert out == [{"date": "2024-03-01", "chain": "Retailer 2", "receipt_total": PLACEHOLDER}]


def test_redaction_on_computed_view(dataset):
    view = compute_filtered_view(dataset, FilterSpec(date_mode="month", month="2024-03"))
    out = redact(view, ShareConfig(hide_retailers=True, hide_totals=True, show_only_percent=True))
    names = {r["name"] for r in out["retailer_distribution"]}
    assert names == {"Retailer 1", "Retailer 2"}
    assert out["comparison"]["total_records"] == PLACEHOLDER
    assert out["insights"]["top_product"]["count"] == PLACEHOLDER
