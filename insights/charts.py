from __future__ import annotations

from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()

CHART_IDS = ("daily_trend", "retailer_distribution", "product_distribution", "age_distribution", "gender_distribution")


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _numeric(items: List[Dict[str, Any]], field: str) -> bool:
    return bool(items) and all(isinstance(item.get(field), (int, float)) for item in items)


def _bar(items: List[Dict[str, Any]], label: str, label_title: str, amount: str) -> Optional[alt.Chart]:
    if not items:
        return None
    # Redacted absolute values are placeholders; fall back to the share.
    measure = amount if _numeric(items, amount) else "percentage"
    df = pd.DataFrame(items)[[label, measure]]
    fmt = ".1f" if measure == "percentage" else ","
    hover = alt.selection_point(fields=[label], on="mouseover", empty=True)
    return (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X(f"{measure}:Q", title="Share (%)" if measure == "percentage" else "Records", axis=alt.Axis(format=fmt)),
            y=alt.Y(f"{label}:N", title=label_title, sort="-x"),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
            tooltip=[alt.Tooltip(f"{label}:N", title=label_title), alt.Tooltip(f"{measure}:Q", format=fmt)],
        )
        .add_params(hover)
    )


def _trend(points: List[Dict[str, Any]]) -> Optional[alt.Chart]:
    if not points:
        return None
    df = pd.DataFrame(points)
    return (
        alt.Chart(df)
        .mark_line(point={"filled": True, "size": 60})
        .encode(
            x=alt.X("date:T", title="Date", axis=alt.Axis(grid=False)),
            y=alt.Y("count:Q", title="Records", axis=alt.Axis(format="~s", gridDash=[4, 4], domain=False, ticks=False)),
            tooltip=[alt.Tooltip("date:T", title="Date"), alt.Tooltip("count:Q", title="Records", format=",")],
        )
        .properties(height=260)
    )


def build_view_charts(view: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Vega-Lite specs for a (possibly redacted) view, minus its hidden charts."""
    hidden = set(view.get("hidden_charts") or [])
    builders = {
        "daily_trend": lambda: _trend(view.get("daily_trend") or []),
        "retailer_distribution": lambda: _bar(view.get("retailer_distribution") or [], "name", "Retailer", "value"),
        "product_distribution": lambda: _bar(view.get("product_distribution") or [], "name", "Product", "count"),
        "age_distribution": lambda: _bar(view.get("age_distribution") or [], "age_group", "Age Group", "count"),
        "gender_distribution": lambda: _bar(view.get("gender_distribution") or [], "name", "Gender", "value"),
    }
    charts: Dict[str, Dict[str, Any]] = {}
    for chart_id in CHART_IDS:
        if chart_id in hidden:
            continue
        chart = builders[chart_id]()
        if chart is not None:
            charts[chart_id] = to_vega_spec(chart)
    return charts
