from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

import pandas as pd

from insights.data import round_half_up
from insights.demographics import age_distribution, gender_distribution
from insights.filters import FilterSpec, apply_filters, comparison_filters, filters_to_dict

if TYPE_CHECKING:
    from insights.data import Dataset


@dataclass(frozen=True)
class Metrics:
    total_records: int = 0
    distinct_retailers: int = 0
    distinct_products: int = 0
    min_date: Optional[date] = None
    max_date: Optional[date] = None
    days_spanned: int = 0
    active_days: int = 0
    average_records_per_day: int = 0
    total_value: float = 0.0


def _dates(df: pd.DataFrame) -> pd.Series:
    if "date" not in df.columns:
        return pd.Series(dtype="datetime64[ns]")
    return pd.to_datetime(df["date"], errors="coerce").dropna().dt.normalize()


def _distinct(df: pd.DataFrame, col: str) -> int:
    if col not in df.columns:
        return 0
    values = df[col].astype("string").str.strip()
    return int(values[values.notna() & (values != "")].nunique())


def day_divisor(min_date: Optional[date], max_date: Optional[date]) -> int:
    """Inclusive day span used for per-day averages; never below 1."""
    if min_date is None or max_date is None:
        return 1
    span = (max_date - min_date).days
    return span + 1 if span > 0 else 1


def aggregate(df: pd.DataFrame | Iterable[Dict[str, Any]]) -> Metrics:
    if not isinstance(df, pd.DataFrame):
        df = pd.DataFrame(list(df))
    total = int(len(df))
    dates = _dates(df)
    min_date = dates.min().date() if not dates.empty else None
    max_date = dates.max().date() if not dates.empty else None
    divisor = day_divisor(min_date, max_date)
    total_value = 0.0
    if "receipt_total" in df.columns:
        total_value = float(pd.to_numeric(df["receipt_total"], errors="coerce").fillna(0).sum())
    return Metrics(
        total_records=total,
        distinct_retailers=_distinct(df, "chain"),
        distinct_products=_distinct(df, "product_name"),
        min_date=min_date,
        max_date=max_date,
        days_spanned=divisor if min_date is not None else 0,
        active_days=int(dates.nunique()),
        average_records_per_day=int(round_half_up(total / divisor) or 0),
        total_value=total_value,
    )


def metrics_to_dict(m: Metrics) -> Dict[str, Any]:
    return {
        "total_records": m.total_records,
        "distinct_retailers": m.distinct_retailers,
        "distinct_products": m.distinct_products,
        "min_date": m.min_date.isoformat() if m.min_date else None,
        "max_date": m.max_date.isoformat() if m.max_date else None,
        "days_spanned": m.days_spanned,
        "active_days": m.active_days,
        "average_records_per_day": m.average_records_per_day,
        "total_value": m.total_value,
    }


def _pct(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole else 0.0


def compare_metrics(current: Metrics, previous: Metrics) -> Dict[str, float]:
    record_growth = current.total_records - previous.total_records
    value_growth = current.total_value - previous.total_value
    daily_growth = current.average_records_per_day - previous.average_records_per_day
    return {
        "record_growth": record_growth,
        "record_growth_pct": _pct(record_growth, previous.total_records),
        "value_growth": value_growth,
        "value_growth_pct": _pct(value_growth, previous.total_value),
        "daily_volume_growth": daily_growth,
        "daily_volume_growth_pct": _pct(daily_growth, previous.average_records_per_day),
    }


# ---------------- Breakdowns ----------------
def _counts(df: pd.DataFrame, col: str) -> List[tuple]:
    if df.empty or col not in df.columns:
        return []
    values = df[col].astype("string").str.strip()
    values = values[values.notna() & (values != "")]
    return sorted(((str(k), int(v)) for k, v in values.value_counts().items()), key=lambda kv: (-kv[1], kv[0]))


def retailer_distribution(df: pd.DataFrame) -> List[Dict[str, Any]]:
    total = len(df)
    return [{"name": name, "value": n, "percentage": _pct(n, total)} for name, n in _counts(df, "chain")]


def product_display_name(product: str) -> str:
    words = product.split(" ")
    if len(words) >= 3:
        return " ".join(words[2 if len(words) >= 5 else 1:])
    return product


def product_distribution(df: pd.DataFrame) -> List[Dict[str, Any]]:
    total = len(df)
    values: Dict[str, float] = {}
    if "receipt_total" in df.columns and "product_name" in df.columns and not df.empty:
        sums = pd.to_numeric(df["receipt_total"], errors="coerce").fillna(0).groupby(df["product_name"].astype("string").str.strip()).sum()
        values = {str(k): float(v) for k, v in sums.items()}
    return [
        {
            "name": name,
            "display_name": product_display_name(name),
            "count": n,
            "percentage": _pct(n, total),
            "value": values.get(name, 0.0),
        }
        for name, n in _counts(df, "product_name")
    ]


def daily_trend(df: pd.DataFrame) -> List[Dict[str, Any]]:
    dates = _dates(df)
    if dates.empty:
        return []
    counts = dates.value_counts().sort_index()
    return [{"date": ts.date().isoformat(), "count": int(n)} for ts, n in counts.items()]


def top_insights(df: pd.DataFrame) -> Dict[str, Any]:
    insights: Dict[str, Any] = {"top_retailer": None, "top_product": None, "busiest_day": None}
    if df.empty:
        return insights
    total = len(df)
    retailers = _counts(df, "chain")
    if retailers:
        name, n = retailers[0]
        insights["top_retailer"] = {"name": name, "value": n, "percentage": _pct(n, total)}
    products = _counts(df, "product_name")
    if products:
        name, n = products[0]
        insights["top_product"] = {"name": name, "count": n, "percentage": _pct(n, total)}
    dates = _dates(df)
    if not dates.empty:
        by_day = dates.dt.dayofweek.value_counts()
        day, n = sorted(by_day.items(), key=lambda kv: (-int(kv[1]), int(kv[0])))[0]
        insights["busiest_day"] = {"day": calendar.day_name[int(day)], "count": int(n)}
    return insights


def summarize(
    subset: pd.DataFrame,
    spec: FilterSpec,
    comparison_spec: Optional[FilterSpec] = None,
    comparison_subset: Optional[pd.DataFrame] = None,
) -> Dict[str, Any]:
    metrics = aggregate(subset)
    comp_metrics = aggregate(comparison_subset) if comparison_subset is not None else None
    return {
        "filters": filters_to_dict(spec),
        "comparison_filters": filters_to_dict(comparison_spec) if comparison_spec is not None else None,
        "metrics": metrics_to_dict(metrics),
        "comparison": metrics_to_dict(comp_metrics) if comp_metrics is not None else None,
        "growth": compare_metrics(metrics, comp_metrics) if comp_metrics is not None else None,
        "retailer_distribution": retailer_distribution(subset),
        "product_distribution": product_distribution(subset),
        "daily_trend": daily_trend(subset),
        "comparison_trend": daily_trend(comparison_subset) if comparison_subset is not None else [],
        "gender_distribution": gender_distribution(subset),
        "age_distribution": age_distribution(subset),
        "insights": top_insights(subset),
    }


def compute_filtered_view(
    dataset: "Dataset",
    spec: FilterSpec,
    *,
    comparison: Optional[FilterSpec] = None,
) -> Dict[str, Any]:
    """Primary-period view plus the comparison period.

    Without an explicit ``comparison`` the window immediately preceding the
    primary one is used; an ``"all"`` date mode has no comparison period.
    """
    frame = dataset.records
    subset = apply_filters(frame, spec)
    if comparison is None and spec.date_mode != "all":
        comparison = comparison_filters(spec, frame["date"] if "date" in frame.columns else None)
    comparison_subset = apply_filters(frame, comparison) if comparison is not None else None
    return summarize(subset, spec, comparison, comparison_subset)
