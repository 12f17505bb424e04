import math
from datetime import date

import pytest

from insights.filters import FilterSpec
from insights.metrics_summary import (
    aggregate,
    compare_metrics,
    compute_filtered_view,
    day_divisor,
    product_display_name,
    retailer_distribution,
)


def test_aggregate_empty_does_not_raise():
    m = aggregate([])
    assert m.total_records == 0
    assert m.average_records_per_day == 0
    assert not math.isnan(m.average_records_per_day)
    assert m.min_date is None


def test_day_divisor_guards_zero_span():
    assert day_divisor(None, None) == 1
    assert day_divisor(date(2024, 3, 1), date(2024, 3, 1)) == 1
    assert day_divisor(date(2024, 3, 1), date(2024, 3, 31)) == 31


def test_aggregate_counts(records):
    m = aggregate(records)
    assert m.total_records == 5
    assert m.distinct_retailers == 3
    assert m.distinct_products == 2
    assert (m.min_date, m.max_date) == (date(2024, 2, 10), date(2024, 3, 15))
    assert m.active_days == 5
    assert m.total_value == 24.5


def test_compare_metrics_handles_zero_previous():
    growth = compare_metrics(aggregate([{"date": "2024-03-01"}]), aggregate([]))
    assert growth["record_growth"] == 1
    assert growth["record_growth_pct"] == 0.0


def test_retailer_distribution_ordering(records):
    dist = retailer_distribution(records)
    assert [d["name"] for d in dist] == ["Walmart", "Kroger", "Target"]
    assert dist[0]["value"] == 3
    assert dist[0]["percentage"] == pytest.approx(60.0)


def test_product_display_name():
    assert product_display_name("Acme Cola Zero Sugar Can") == "Zero Sugar Can"
    assert product_display_name("Acme Lemon Soda") == "Lemon Soda"
    assert product_display_name("Cola") == "Cola"


def test_filtered_view_includes_comparison(dataset):
    view = compute_filtered_view(dataset, FilterSpec(date_mode="month", month="2024-03"))
    assert view["metrics"]["total_records"] == 3
    assert view["comparison"]["total_records"] == 2
    assert view["growth"]["record_growth"] == 1
    assert view["comparison_filters"]["start_date"] == "2024-01-30"
    assert [p["date"] for p in view["daily_trend"]] == ["2024-03-01", "2024-03-02", "2024-03-15"]
    assert view["insights"]["top_retailer"]["name"] == "Walmart"


def test_filtered_view_without_date_filter_has_no_comparison(dataset):
    view = compute_filtered_view(dataset, FilterSpec())
    assert view["comparison"] is None
    assert view["growth"] is None
    assert view["comparison_trend"] == []
