import pandas as pd
import pytest

from insights.data import DatasetStore


ROWS = [
    # date, product_name, chain, receipt_total, age_group, gender, question_01, proposition_01
    ("2024-03-01", "Acme Cola Zero Sugar Can", "Walmart", "10.0", "25-34", "Female", "Why did you buy?", "Price;Taste"),
    ("2024-03-02", "Acme Cola Zero Sugar Can", "Kroger", "5.5", "16-24", "Male", "Why did you buy?", "Price"),
    ("2024-03-15", "Acme Lemon Soda", "Walmart", "3.0", "65+", "Female", "", ""),
    ("2024-02-20", "Acme Lemon Soda", "Target", "2.0", "25-34", "Male", "Why did you buy?", "Taste"),
    ("2024-02-10", "Acme Cola Zero Sugar Can", "Walmart", "4.0", "Unknown", "Female", None, None),
]


@pytest.fixture
def raw_frame():
    return pd.DataFrame(
        ROWS,
        columns=["receipt_date", "Product Name", "retailer", "total", "age_group", "gender", "question_01", "proposition_01"],
    )


@pytest.fixture
def store(raw_frame):
    s = DatasetStore()
    s.load(raw_frame, source="fixture.csv")
    return s


@pytest.fixture
def dataset(store):
    return store.dataset


@pytest.fixture
def records(dataset):
    return dataset.records
