from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import IO, Any, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from insights.demographics import QuestionField, discover_questions
from insights.errors import ValidationError


logger = logging.getLogger(__name__)

MAX_REPORTED_ISSUES = 100

COLUMN_ALIASES = {
    "receipt_date": "date",
    "created_at": "date",
    "timestamp": "date",
    "product": "product_name",
    "productname": "product_name",
    "retailer": "chain",
    "retailer_chain": "chain",
    "retailerchain": "chain",
    "agegroup": "age_group",
    "age": "age_group",
    "total": "receipt_total",
    "offer_hit_id": "hit_id",
}

TEXT_COLUMNS = ["product_name", "chain", "age_group", "gender", "hit_id", "user_id", "offer_name"]
REQUIRED_COLUMNS = {
    "sales": ["date", "product_name", "chain"],
    "offers": ["hit_id"],
}


@dataclass(frozen=True, eq=False)
class Dataset:
    records: pd.DataFrame
    data_type: str = "sales"
    questions: Tuple[QuestionField, ...] = field(default_factory=tuple)
    source: str = ""
    loaded_at: Optional[datetime] = None

    @property
    def size(self) -> int:
        return int(len(self.records))


EMPTY_DATASET = Dataset(records=pd.DataFrame(columns=["date", "product_name", "chain"]))


# ---------------- Cleaning helpers ----------------
def drop_duplicate_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df.loc[:, ~df.columns.duplicated()]


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].astype("string").str.strip()
            series = series.replace({"nan": pd.NA, "None": pd.NA, "": pd.NA})
            df[col] = series
    return df


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def _canonical_column(name: object) -> str:
    key = str(name).strip().lower().replace(" ", "_")
    return COLUMN_ALIASES.get(key, key)


def detect_data_type(columns: Iterable[str]) -> Optional[str]:
    cols = {_canonical_column(c) for c in columns}
    if "date" in cols and "product_name" in cols:
        return "sales"
    if "hit_id" in cols:
        return "offers"
    return None


def _issue(kind: str, message: str, row: Optional[int] = None, column: Optional[str] = None) -> Dict[str, Any]:
    return {"type": kind, "message": message, "row": row, "column": column}


# ---------------- Ingestion ----------------
def normalize_records(raw: pd.DataFrame) -> Tuple[pd.DataFrame, str]:
    """Rename, clean, type and validate parsed rows.

    Raises ``ValidationError`` carrying every issue found; nothing is returned
    for a partially valid table.
    """
    df = raw.copy()
    df.columns = [_canonical_column(c) for c in df.columns]
    df = drop_duplicate_columns(df).reset_index(drop=True)

    data_type = detect_data_type(df.columns)
    if data_type is None:
        missing = [c for c in REQUIRED_COLUMNS["sales"] if c not in df.columns]
        raise ValidationError(
            "Unrecognized data layout: expected sales or offer columns",
            [_issue("missing_column", f"Missing required column '{c}'", column=c) for c in missing],
        )

    issues: List[Dict[str, Any]] = []
    for col in REQUIRED_COLUMNS[data_type]:
        if col not in df.columns:
            issues.append(_issue("missing_column", f"Missing required column '{col}'", column=col))
    if issues:
        raise ValidationError(f"{len(issues)} required column(s) missing", issues)

    df = coerce_str_safe(df, TEXT_COLUMNS)
    for col in REQUIRED_COLUMNS[data_type]:
        if col == "date":
            continue
        for idx in df.index[df[col].isna()]:
            issues.append(_issue("missing_value", "Cannot be empty", row=int(idx) + 1, column=col))

    if "date" in df.columns:
        raw_dates = df["date"].astype("string").str.strip()
        stamps = pd.to_datetime(raw_dates, errors="coerce", format="mixed")
        blank = (raw_dates.isna() | (raw_dates == "")).fillna(True).astype(bool)
        for idx in df.index[stamps.isna() & ~blank]:
            issues.append(_issue("invalid_date", "Must be a valid date (YYYY-MM-DD)", row=int(idx) + 1, column="date"))
        if data_type == "sales":
            for idx in df.index[blank]:
                issues.append(_issue("missing_value", "Cannot be empty", row=int(idx) + 1, column="date"))
        df["date"] = stamps.dt.normalize()
        if data_type == "sales":
            df["month"] = stamps.dt.strftime("%Y-%m")
            df["day_of_week"] = stamps.dt.dayofweek.astype("Int64")
            df["hour_of_day"] = stamps.dt.hour.astype("Int64")

    if issues:
        reported = issues[:MAX_REPORTED_ISSUES]
        raise ValidationError(f"{len(issues)} validation issue(s) found", reported)

    df = numericize(df, ["receipt_total"])
    return df, data_type


def read_table(source: Union[str, Path, IO[bytes]], filename: Optional[str] = None) -> pd.DataFrame:
    name = filename or (str(source) if isinstance(source, (str, Path)) else "")
    suffix = Path(name).suffix.lower()
    try:
        if suffix in {".xlsx", ".xls"}:
            return pd.read_excel(source, dtype=str)
        if suffix in {".csv", ""}:
            return pd.read_csv(source, dtype=str)
    except (ValueError, pd.errors.ParserError) as exc:
        raise ValidationError(f"Could not parse {name or 'upload'}: {exc}") from exc
    raise ValidationError(f"Unsupported file type '{suffix}'", [_issue("invalid_format", "Only CSV or XLSX files are supported")])


def dataset_summary(dataset: Dataset) -> Dict[str, Any]:
    dates = dataset.records["date"].dropna() if "date" in dataset.records.columns else pd.Series(dtype="datetime64[ns]")
    return {
        "source": dataset.source,
        "data_type": dataset.data_type,
        "rows": dataset.size,
        "loaded_at": dataset.loaded_at.isoformat() if dataset.loaded_at else None,
        "min_date": dates.min().date().isoformat() if not dates.empty else None,
        "max_date": dates.max().date().isoformat() if not dates.empty else None,
        "questions": [qf.number for qf in dataset.questions],
    }


class DatasetStore:
    """Holds the current dataset; a new load replaces it wholesale."""

    def __init__(self) -> None:
        self._dataset: Dataset = EMPTY_DATASET

    @property
    def dataset(self) -> Dataset:
        return self._dataset

    def load(self, frame: pd.DataFrame, source: str = "") -> Dataset:
        records, data_type = normalize_records(frame)
        dataset = Dataset(
            records=records,
            data_type=data_type,
            questions=tuple(discover_questions(records)),
            source=source,
            loaded_at=datetime.now(timezone.utc),
        )
        self._dataset = dataset
        logger.info("Loaded %s rows of %s data from %s", dataset.size, data_type, source or "<frame>")
        return dataset

    def load_file(self, source: Union[str, Path, IO[bytes]], filename: Optional[str] = None) -> Dataset:
        frame = read_table(source, filename)
        return self.load(frame, source=filename or str(source))

    def clear(self) -> None:
        self._dataset = EMPTY_DATASET

    def _options(self, col: str) -> List[str]:
        df = self._dataset.records
        if df.empty or col not in df.columns:
            return []
        return sorted(str(x) for x in df[col].dropna().unique().tolist())

    def products(self) -> List[str]:
        return self._options("product_name")

    def retailers(self) -> List[str]:
        return self._options("chain")

    def months(self) -> List[str]:
        return self._options("month")
