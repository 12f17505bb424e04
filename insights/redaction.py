"""Client-safe rendering of an aggregated view.

``redact`` never touches its input: the view is deep-copied and each
``ShareConfig`` rule is applied to the copy independently.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from insights.filters import ALL
from insights.sharing import ShareConfig, resolve_active_tab


logger = logging.getLogger(__name__)

PLACEHOLDER = "—"

METRIC_BLOCKS = ("metrics", "comparison")
TOTAL_FIELDS = ("total_records", "total_value")
GROWTH_TOTAL_FIELDS = ("record_growth", "value_growth")
DISTRIBUTION_KEYS = ("retailer_distribution", "product_distribution")
DEMOGRAPHIC_KEYS = ("gender_distribution", "age_distribution")
ABSOLUTE_FIELDS = ("value", "count")
TREND_KEYS = ("daily_trend", "comparison_trend")
FILTER_KEYS = ("filters", "comparison_filters")
SHARED_RECORD_COLUMNS = ("date", "month", "product_name", "chain", "receipt_total")


def retailer_labels(view: Dict[str, Any], labels: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Ordinal labels keyed by retailer name, in retailer-distribution order.

    Passing ``labels`` extends an existing mapping so one share uses a single
    numbering across its view, records and config.
    """
    labels = {} if labels is None else labels
    for item in view.get("retailer_distribution") or []:
        if isinstance(item, dict) and item.get("name") is not None:
            _label(labels, str(item["name"]))
    return labels


def _label(labels: Dict[str, str], name: str) -> str:
    if name not in labels:
        labels[name] = f"Retailer {len(labels) + 1}"
    return labels[name]


def _relabel_retailers(view: Dict[str, Any], labels: Dict[str, str]) -> None:
    for item in view.get("retailer_distribution") or []:
        if isinstance(item, dict) and item.get("name") is not None:
            item["name"] = _label(labels, str(item["name"]))

    for key in FILTER_KEYS:
        filters = view.get(key)
        if isinstance(filters, dict) and filters.get("selected_retailers") not in (None, ALL):
            filters["selected_retailers"] = [_label(labels, str(r)) for r in filters["selected_retailers"]]

    top = (view.get("insights") or {}).get("top_retailer")
    if isinstance(top, dict) and top.get("name") is not None:
        top["name"] = _label(labels, str(top["name"]))


def _hide_totals(view: Dict[str, Any]) -> None:
    for block in METRIC_BLOCKS:
        metrics = view.get(block)
        if isinstance(metrics, dict):
            for name in TOTAL_FIELDS:
                if name in metrics:
                    metrics[name] = PLACEHOLDER
    growth = view.get("growth")
    if isinstance(growth, dict):
        for name in GROWTH_TOTAL_FIELDS:
            if name in growth:
                growth[name] = PLACEHOLDER


def _blank_absolute(items: Iterable[Any]) -> None:
    for item in items:
        if isinstance(item, dict):
            for name in ABSOLUTE_FIELDS:
                if name in item:
                    item[name] = PLACEHOLDER


def _blank_breakdown(breakdown: Dict[str, Any]) -> None:
    counts = breakdown.get("response_counts")
    if isinstance(counts, dict):
        total = sum(v for v in counts.values() if isinstance(v, (int, float)))
        breakdown["response_percentages"] = {
            r: (n / total) * 100 if total else 0.0 for r, n in counts.items() if isinstance(n, (int, float))
        }
        breakdown["response_counts"] = {r: PLACEHOLDER for r in counts}
    if "total_responses" in breakdown:
        breakdown["total_responses"] = PLACEHOLDER
    for groups in (breakdown.get("demographic_cross_tab") or {}).values():
        for cell in (groups or {}).values():
            if not isinstance(cell, dict):
                continue
            cell["total"] = PLACEHOLDER
            _blank_absolute((cell.get("responses") or {}).values())


def _show_only_percent(view: Dict[str, Any]) -> None:
    for key in DISTRIBUTION_KEYS + DEMOGRAPHIC_KEYS:
        _blank_absolute(view.get(key) or [])
    insights = view.get("insights") or {}
    _blank_absolute(insights.get(k) for k in ("top_retailer", "top_product"))
    for breakdown in view.get("demographics") or []:
        if isinstance(breakdown, dict):
            _blank_breakdown(breakdown)


def _drop_dates(view: Dict[str, Any], excluded: Iterable[str]) -> None:
    skip = set(excluded)
    for key in TREND_KEYS:
        series = view.get(key)
        if isinstance(series, list):
            view[key] = [p for p in series if not (isinstance(p, dict) and str(p.get("date")) in skip)]


def redact_records(
    records: List[Dict[str, Any]],
    config: ShareConfig,
    labels: Optional[Dict[str, str]] = None,
) -> List[Dict[str, Any]]:
    """Shared raw rows: only the sales columns survive, never demographic or survey fields."""
    labels = {} if labels is None else labels
    skip = {d.isoformat() for d in config.custom_excluded_dates}
    out: List[Dict[str, Any]] = []
    for record in records:
        row = {k: copy.deepcopy(record[k]) for k in SHARED_RECORD_COLUMNS if k in record}
        if str(row.get("date")) in skip:
            continue
        if config.hide_retailers and row.get("chain") is not None:
            row["chain"] = _label(labels, str(row["chain"]))
        if config.hide_totals and "receipt_total" in row:
            row["receipt_total"] = PLACEHOLDER
        out.append(row)
    return out


def redact(view: Dict[str, Any], config: ShareConfig, labels: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    client_view = copy.deepcopy(view)

    labels = retailer_labels(client_view, labels)
    if config.hide_retailers:
        _relabel_retailers(client_view, labels)
    if isinstance(client_view.get("filtered_records"), list):
        client_view["filtered_records"] = redact_records(client_view["filtered_records"], config, labels)

    if config.hide_totals:
        _hide_totals(client_view)
        if config.show_only_percent:
            _show_only_percent(client_view)
    elif config.show_only_percent:
        logger.info("show_only_percent has no effect without hide_totals")

    if config.custom_excluded_dates:
        _drop_dates(client_view, (d.isoformat() for d in config.custom_excluded_dates))

    allowed, active = resolve_active_tab(config.allowed_tabs, config.active_tab)
    client_view["allowed_tabs"] = list(allowed)
    client_view["active_tab"] = active
    client_view["hidden_charts"] = list(config.hidden_charts)
    client_view["is_shared_view"] = True
    client_view["share"] = {
        "hide_retailers": config.hide_retailers,
        "hide_totals": config.hide_totals,
        "show_only_percent": config.show_only_percent,
        "branding": {
            "show_logo": config.branding.show_logo,
            "primary_color": config.branding.primary_color,
            "company_name": config.branding.company_name,
        },
        "client_note": config.client_note,
        "expiry_date": config.expiry_date.isoformat() if config.expiry_date else None,
    }
    return client_view


def redact_config(config: ShareConfig, labels: Dict[str, str]) -> ShareConfig:
    """The config as an external client may see it: retailer selections relabelled."""
    if not config.hide_retailers or config.filters.selected_retailers == ALL:
        return config
    relabelled = frozenset(_label(labels, name) for name in sorted(config.filters.selected_retailers))
    return replace(config, filters=replace(config.filters, selected_retailers=relabelled))


apply_redaction = redact
