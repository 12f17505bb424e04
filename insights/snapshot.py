from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import pandas as pd

from insights.config import get_settings
from insights.data import Dataset
from insights.demographics import analyze_question
from insights.filters import apply_filters, comparison_filters
from insights.metrics_summary import summarize
from insights.redaction import PLACEHOLDER, SHARED_RECORD_COLUMNS, redact, redact_config
from insights.sharing import (
    ShareConfig,
    resolve_client_name,
    share_config_from_dict,
    share_config_to_dict,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotMetadata:
    created_at: datetime
    dataset_size: Optional[int]
    filtered_size: Optional[int]
    client_name: str
    brand_names: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created_at": self.created_at.isoformat(),
            "dataset_size": PLACEHOLDER if self.dataset_size is None else self.dataset_size,
            "filtered_size": PLACEHOLDER if self.filtered_size is None else self.filtered_size,
            "client_name": self.client_name,
            "brand_names": list(self.brand_names),
        }


@dataclass(frozen=True)
class Snapshot:
    id: str
    config: ShareConfig
    precomputed_data: Dict[str, Any]
    metadata: SnapshotMetadata
    expires_at: Optional[datetime] = None


def _records_payload(df: pd.DataFrame) -> List[Dict[str, Any]]:
    cols = [c for c in SHARED_RECORD_COLUMNS if c in df.columns]
    out = df[cols].copy()
    if "date" in out.columns:
        out["date"] = pd.to_datetime(out["date"], errors="coerce").dt.strftime("%Y-%m-%d")
    out = out.astype(object).where(out.notna(), None)
    return out.to_dict(orient="records")


def build_snapshot(
    dataset: Dataset,
    config: ShareConfig,
    *,
    now: Optional[datetime] = None,
    record_limit: Optional[int] = None,
    share_id: Optional[str] = None,
) -> Snapshot:
    """Filter, aggregate, analyze and redact one shared view.

    The returned snapshot holds its own copy of every computed structure and
    of the config as the client sees it (retailer selections relabelled when
    ``hide_retailers`` is set); nothing in it aliases the live dataset or config.
    """
    config = copy.deepcopy(config)
    created_at = now or datetime.now(timezone.utc)
    frame = dataset.records
    spec = config.filters

    subset = apply_filters(frame, spec)
    comparison = None
    comparison_subset = None
    if spec.date_mode != "all":
        comparison = comparison_filters(spec, frame["date"] if "date" in frame.columns else None)
        comparison_subset = apply_filters(frame, comparison) if comparison is not None else None

    view = summarize(subset, spec, comparison, comparison_subset)
    view["demographics"] = [analyze_question(subset, qf).to_dict() for qf in dataset.questions]

    data_reduced = False
    if config.include_records:
        limit = get_settings().snapshot_record_limit if record_limit is None else max(0, record_limit)
        view["filtered_records"] = _records_payload(subset.head(limit))
        data_reduced = len(subset) > limit

    labels: Dict[str, str] = {}
    client_view = redact(view, config, labels)
    shared_config = redact_config(config, labels)
    precomputed = {
        "metrics": client_view.pop("metrics"),
        "demographics": client_view.pop("demographics"),
        "filtered_records": client_view.pop("filtered_records", []),
        "data_reduced": data_reduced,
        "redacted": bool(config.hide_retailers or config.hide_totals or config.custom_excluded_dates),
        "view": client_view,
    }

    # Sizes are absolute totals too.
    metadata = SnapshotMetadata(
        created_at=created_at,
        dataset_size=None if config.hide_totals else dataset.size,
        filtered_size=None if config.hide_totals else int(len(subset)),
        client_name=resolve_client_name(config),
        brand_names=config.brand_names,
    )
    snapshot = Snapshot(
        id=share_id or str(uuid.uuid4()),
        config=shared_config,
        precomputed_data=copy.deepcopy(precomputed),
        metadata=metadata,
        expires_at=config.expiry_date,
    )
    logger.info(
        "Built snapshot %s for %s (%s of %s records)",
        snapshot.id,
        metadata.client_name,
        len(subset),
        dataset.size,
    )
    return snapshot


def snapshot_to_record(snapshot: Snapshot) -> Dict[str, Any]:
    precomputed = copy.deepcopy(snapshot.precomputed_data)
    precomputed["metadata"] = snapshot.metadata.to_dict()
    return {
        "share_id": snapshot.id,
        "config": share_config_to_dict(snapshot.config),
        "precomputedData": precomputed,
        "created_at": snapshot.metadata.created_at.isoformat(),
        "expires_at": snapshot.expires_at.isoformat() if snapshot.expires_at else None,
    }


def _size(value: Any) -> Optional[int]:
    return int(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else None


def snapshot_from_record(record: Dict[str, Any]) -> Snapshot:
    precomputed = copy.deepcopy(record.get("precomputedData") or {})
    meta = precomputed.pop("metadata", {}) or {}
    config = share_config_from_dict(record.get("config"))
    created_at = pd.to_datetime(record.get("created_at") or meta.get("created_at"), utc=True).to_pydatetime()
    return Snapshot(
        id=str(record["share_id"]),
        config=config,
        precomputed_data=precomputed,
        metadata=SnapshotMetadata(
            created_at=created_at,
            dataset_size=_size(meta.get("dataset_size")),
            filtered_size=_size(meta.get("filtered_size")),
            client_name=str(meta.get("client_name") or resolve_client_name(config)),
            brand_names=tuple(meta.get("brand_names") or ()),
        ),
        expires_at=config.expiry_date,
    )


def share_url(share_id: str, base_url: Optional[str] = None) -> str:
    base = (base_url if base_url is not None else get_settings().public_base_url).rstrip("/")
    return f"{base}/shared/{quote(share_id, safe='')}"
