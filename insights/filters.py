from __future__ import annotations

import calendar
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Any, Dict, FrozenSet, Iterable, Literal, Optional, Tuple, Union

import pandas as pd


ALL = "all"
DATE_MODES = ("all", "month", "custom")

DateMode = Literal["all", "month", "custom"]
Selection = Union[str, FrozenSet[str]]


@dataclass(frozen=True)
class FilterSpec:
    selected_products: Selection = ALL
    selected_retailers: Selection = ALL
    date_mode: DateMode = "all"
    month: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


def _as_date(value: object) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.date()
    if isinstance(value, date):
        return value.date() if hasattr(value, "hour") else value
    ts = pd.to_datetime(str(value), errors="coerce")
    if pd.isna(ts):
        return None
    return ts.date()


def _as_month(value: object) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    ts = pd.to_datetime(s + "-01" if len(s) == 7 else s, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.strftime("%Y-%m")


def normalize_selection(values: Optional[Iterable[object]] | str) -> Selection:
    """Collapse a raw selection into either ``"all"`` or a non-empty frozenset."""
    if values is None or values == ALL:
        return ALL
    if isinstance(values, str):
        values = [values]
    cleaned = {str(v).strip() for v in values if v is not None and str(v).strip()}
    if not cleaned or ALL in cleaned:
        return ALL
    return frozenset(cleaned)


def toggle_selection(current: Selection, value: str) -> Selection:
    if value == ALL:
        return ALL
    if current == ALL:
        return frozenset({value})
    chosen = set(current)
    if value in chosen:
        chosen.discard(value)
    else:
        chosen.add(value)
    return frozenset(chosen) if chosen else ALL


def normalize_filters(raw: Optional[Dict[str, Any]]) -> FilterSpec:
    raw = raw or {}
    date_mode = str(raw.get("date_mode") or raw.get("date_range") or "all").strip().lower()
    if date_mode not in DATE_MODES:
        date_mode = "all"
    return FilterSpec(
        selected_products=normalize_selection(raw.get("selected_products")),
        selected_retailers=normalize_selection(raw.get("selected_retailers")),
        date_mode=date_mode,  # type: ignore[arg-type]
        month=_as_month(raw.get("month") or raw.get("selected_month")),
        start_date=_as_date(raw.get("start_date")),
        end_date=_as_date(raw.get("end_date")),
    )


def filters_to_dict(spec: FilterSpec) -> Dict[str, Any]:
    def _sel(value: Selection) -> Union[str, list]:
        return ALL if value == ALL else sorted(value)

    return {
        "selected_products": _sel(spec.selected_products),
        "selected_retailers": _sel(spec.selected_retailers),
        "date_mode": spec.date_mode,
        "month": spec.month,
        "start_date": spec.start_date.isoformat() if spec.start_date else None,
        "end_date": spec.end_date.isoformat() if spec.end_date else None,
    }


def _record_dates(df: pd.DataFrame) -> pd.Series:
    if "date" not in df.columns:
        return pd.Series(pd.NaT, index=df.index, dtype="datetime64[ns]")
    return pd.to_datetime(df["date"], errors="coerce").dt.normalize()


def _membership(df: pd.DataFrame, col: str, selection: Selection) -> pd.Series:
    if selection == ALL:
        return pd.Series(True, index=df.index)
    if col not in df.columns:
        return pd.Series(False, index=df.index)
    return df[col].astype("string").isin(set(selection)).fillna(False).astype(bool)


def _date_membership(df: pd.DataFrame, spec: FilterSpec) -> pd.Series:
    passes = pd.Series(True, index=df.index)
    if spec.date_mode == "month" and spec.month:
        if "month" in df.columns:
            months = df["month"].astype("string")
        else:
            months = _record_dates(df).dt.strftime("%Y-%m").astype("string")
        return (months == spec.month).fillna(False).astype(bool)
    if spec.date_mode == "custom" and (spec.start_date or spec.end_date):
        dates = _record_dates(df)
        if spec.start_date:
            passes &= (dates >= pd.Timestamp(spec.start_date)).fillna(False)
        if spec.end_date:
            passes &= (dates <= pd.Timestamp(spec.end_date)).fillna(False)
    return passes


def apply_filters(df: pd.DataFrame, spec: FilterSpec) -> pd.DataFrame:
    """Return the records matching all three predicates, in their original order."""
    if df.empty:
        return df.copy()
    mask = (
        _membership(df, "product_name", spec.selected_products)
        & _membership(df, "chain", spec.selected_retailers)
        & _date_membership(df, spec)
    )
    return df[mask]


# ---------------- Comparison period ----------------
def comparison_window(start: date, end: date) -> Tuple[date, date]:
    """The equal-length window ending the day before ``start``."""
    days = (end - start).days + 1
    return start - timedelta(days=days), start - timedelta(days=1)


def _date_bounds(dates: Optional[Iterable[object]]) -> Tuple[Optional[date], Optional[date]]:
    if dates is None:
        return None, None
    parsed = pd.to_datetime(pd.Series(list(dates), dtype="object"), errors="coerce").dropna()
    if parsed.empty:
        return None, None
    return parsed.min().date(), parsed.max().date()


def primary_window(spec: FilterSpec, dates: Optional[Iterable[object]] = None) -> Optional[Tuple[date, date]]:
    if spec.date_mode == "month" and spec.month:
        year, month = (int(part) for part in spec.month.split("-"))
        last_day = calendar.monthrange(year, month)[1]
        return date(year, month, 1), date(year, month, last_day)

    lo, hi = _date_bounds(dates)
    if spec.date_mode == "custom":
        lo = spec.start_date or lo
        hi = spec.end_date or hi
    if lo is None or hi is None or hi < lo:
        return None
    return lo, hi


def comparison_filters(spec: FilterSpec, dates: Optional[Iterable[object]] = None) -> Optional[FilterSpec]:
    window = primary_window(spec, dates)
    if window is None:
        return None
    start, end = comparison_window(*window)
    return replace(spec, date_mode="custom", month=None, start_date=start, end_date=end)
