"""Share configuration: which tabs, fields and precision a shared view exposes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

import pandas as pd

from insights.config import DEFAULT_CLIENT_NAME
from insights.filters import FilterSpec, filters_to_dict, normalize_filters


logger = logging.getLogger(__name__)

DEFAULT_TABS = ("summary", "sales", "demographics", "offers")
FALLBACK_TABS = ("summary",)


@dataclass(frozen=True)
class Branding:
    show_logo: bool = True
    primary_color: str = "#FF0066"
    company_name: str = "Your Company"


def _dedupe(values: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(str(v) for v in values if v is not None and str(v).strip()))


def resolve_active_tab(allowed_tabs: Iterable[str], active_tab: Optional[str]) -> Tuple[Tuple[str, ...], str]:
    """Return ``(allowed, active)`` with ``active`` guaranteed to be a member of ``allowed``."""
    allowed = _dedupe(allowed_tabs)
    if not allowed:
        logger.warning("Share config has no allowed tabs; falling back to %s", FALLBACK_TABS)
        allowed = FALLBACK_TABS
    if active_tab not in allowed:
        if active_tab is not None:
            logger.warning("Active tab %r is not shared; using %r", active_tab, allowed[0])
        active_tab = allowed[0]
    return allowed, active_tab  # type: ignore[return-value]


@dataclass(frozen=True)
class ShareConfig:
    allowed_tabs: Tuple[str, ...] = FALLBACK_TABS
    active_tab: Optional[str] = None
    hide_retailers: bool = False
    hide_totals: bool = False
    show_only_percent: bool = False
    custom_excluded_dates: FrozenSet[date] = field(default_factory=frozenset)
    hidden_charts: Tuple[str, ...] = field(default_factory=tuple)
    branding: Branding = field(default_factory=Branding)
    client_note: str = ""
    client_name: Optional[str] = None
    brand_names: Tuple[str, ...] = field(default_factory=tuple)
    expiry_date: Optional[datetime] = None
    filters: FilterSpec = field(default_factory=FilterSpec)
    include_records: bool = False

    def __post_init__(self) -> None:
        allowed, active = resolve_active_tab(self.allowed_tabs, self.active_tab)
        object.__setattr__(self, "allowed_tabs", allowed)
        object.__setattr__(self, "active_tab", active)
        object.__setattr__(self, "hidden_charts", _dedupe(self.hidden_charts))
        object.__setattr__(self, "brand_names", _dedupe(self.brand_names))
        object.__setattr__(self, "custom_excluded_dates", frozenset(self.custom_excluded_dates))


def update_share_config(config: ShareConfig, **changes: Any) -> ShareConfig:
    """Whole-field replacement; the previous config object is left as it was."""
    return replace(config, **changes)


def toggle_tab(config: ShareConfig, tab: str) -> ShareConfig:
    if tab in config.allowed_tabs:
        if len(config.allowed_tabs) == 1:
            return config
        return replace(config, allowed_tabs=tuple(t for t in config.allowed_tabs if t != tab))
    if tab not in DEFAULT_TABS:
        logger.warning("Unknown dashboard tab %r; share config unchanged", tab)
        return config
    return replace(config, allowed_tabs=config.allowed_tabs + (tab,))


def resolve_client_name(config: ShareConfig) -> str:
    if config.client_name and config.client_name.strip():
        return config.client_name.strip()
    if config.brand_names:
        return ", ".join(config.brand_names)
    return DEFAULT_CLIENT_NAME


def _as_date(value: object) -> Optional[date]:
    ts = pd.to_datetime(value, errors="coerce")
    return None if pd.isna(ts) else ts.date()


def _as_datetime(value: object) -> Optional[datetime]:
    if value is None or value == "":
        return None
    ts = pd.to_datetime(value, errors="coerce", utc=True)
    return None if pd.isna(ts) else ts.to_pydatetime()


def share_config_to_dict(config: ShareConfig) -> Dict[str, Any]:
    return {
        "allowed_tabs": list(config.allowed_tabs),
        "active_tab": config.active_tab,
        "hide_retailers": config.hide_retailers,
        "hide_totals": config.hide_totals,
        "show_only_percent": config.show_only_percent,
        "custom_excluded_dates": sorted(d.isoformat() for d in config.custom_excluded_dates),
        "hidden_charts": list(config.hidden_charts),
        "branding": {
            "show_logo": config.branding.show_logo,
            "primary_color": config.branding.primary_color,
            "company_name": config.branding.company_name,
        },
        "client_note": config.client_note,
        "client_name": config.client_name,
        "brand_names": list(config.brand_names),
        "expiry_date": config.expiry_date.isoformat() if config.expiry_date else None,
        "filters": filters_to_dict(config.filters),
        "include_records": config.include_records,
    }


def share_config_from_dict(raw: Optional[Dict[str, Any]]) -> ShareConfig:
    raw = raw or {}
    b = raw.get("branding") or {}
    defaults = Branding()
    expiry = _as_datetime(raw.get("expiry_date"))
    if expiry is not None and expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    excluded = (_as_date(d) for d in raw.get("custom_excluded_dates") or [])
    return ShareConfig(
        allowed_tabs=tuple(raw.get("allowed_tabs") or ()),
        active_tab=raw.get("active_tab"),
        hide_retailers=bool(raw.get("hide_retailers", False)),
        hide_totals=bool(raw.get("hide_totals", False)),
        show_only_percent=bool(raw.get("show_only_percent", False)),
        custom_excluded_dates=frozenset(d for d in excluded if d is not None),
        hidden_charts=tuple(raw.get("hidden_charts") or ()),
        branding=Branding(
            show_logo=bool(b.get("show_logo", defaults.show_logo)),
            primary_color=str(b.get("primary_color") or defaults.primary_color),
            company_name=str(b.get("company_name") or defaults.company_name),
        ),
        client_note=str(raw.get("client_note") or ""),
        client_name=raw.get("client_name") or None,
        brand_names=tuple(raw.get("brand_names") or ()),
        expiry_date=expiry,
        filters=normalize_filters(raw.get("filters")),
        include_records=bool(raw.get("include_records", False)),
    )
