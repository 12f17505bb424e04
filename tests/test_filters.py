from datetime import date

import pandas as pd

from insights.filters import (
    ALL,
    FilterSpec,
    apply_filters,
    comparison_filters,
    comparison_window,
    normalize_filters,
    normalize_selection,
    primary_window,
    toggle_selection,
)


def test_all_selectors_return_dataset_unchanged(records):
    out = apply_filters(records, FilterSpec())
    assert set(out.index) == set(records.index)
    assert len(out) == len(records)


def test_filter_is_subset_and_idempotent(records):
    spec = FilterSpec(selected_retailers=frozenset({"Walmart"}), date_mode="month", month="2024-03")
    once = apply_filters(records, spec)
    twice = apply_filters(once, spec)
    assert set(once.index) <= set(records.index)
    assert once.equals(twice)
    assert list(once["chain"].unique()) == ["Walmart"]
    assert len(once) == 2


def test_filter_keeps_original_order(records):
    spec = FilterSpec(selected_products=frozenset({"Acme Cola Zero Sugar Can"}))
    out = apply_filters(records, spec)
    assert list(out.index) == sorted(out.index)
    assert len(out) == 3


def test_custom_range_is_inclusive_and_open_ended(records):
    spec = FilterSpec(date_mode="custom", start_date=date(2024, 2, 20), end_date=date(2024, 3, 2))
    assert len(apply_filters(records, spec)) == 3
    open_end = FilterSpec(date_mode="custom", start_date=date(2024, 3, 2))
    assert len(apply_filters(records, open_end)) == 2


def test_missing_column_with_selection_matches_nothing():
    df = pd.DataFrame({"product_name": ["A", "B"]})
    out = apply_filters(df, FilterSpec(selected_retailers=frozenset({"Walmart"})))
    assert out.empty


def test_comparison_window_leap_year():
    start, end = comparison_window(date(2024, 3, 1), date(2024, 3, 31))
    assert (start, end) == (date(2024, 1, 30), date(2024, 2, 29))
    assert (end - start).days + 1 == 31


def test_comparison_filters_for_month(records):
    spec = FilterSpec(date_mode="month", month="2024-03")
    assert primary_window(spec) == (date(2024, 3, 1), date(2024, 3, 31))
    comp = comparison_filters(spec, records["date"])
    assert comp.date_mode == "custom"
    assert (comp.start_date, comp.end_date) == (date(2024, 1, 30), date(2024, 2, 29))
    assert len(apply_filters(records, comp)) == 2


def test_selection_helpers():
    assert normalize_selection([]) == ALL
    assert normalize_selection(["all", "X"]) == ALL
    assert normalize_selection(["X", " Y "]) == frozenset({"X", "Y"})

    chosen = toggle_selection(ALL, "Walmart")
    assert chosen == frozenset({"Walmart"})
    assert toggle_selection(chosen, "Walmart") == ALL
    assert toggle_selection(chosen, ALL) == ALL


def test_normalize_filters_accepts_aliases():
    spec = normalize_filters({"date_range": "month", "selected_month": "2024-03", "selected_products": ["A"]})
    assert spec.date_mode == "month"
    assert spec.month == "2024-03"
    assert spec.selected_products == frozenset({"A"})
    assert normalize_filters({"date_mode": "bogus"}).date_mode == "all"
