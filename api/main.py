from __future__ import annotations

import io
import logging
import math
from functools import lru_cache

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, File, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.schemas import DemographicsRequest, FilterSpecModel, ShareConfigModel, ViewRequest
from insights.charts import build_view_charts
from insights.config import get_settings
from insights.data import DatasetStore, dataset_summary
from insights.demographics import DemographicSelection, compute_demographics, question_text
from insights.errors import PersistenceError, ShareNotFoundError, ValidationError
from insights.filters import FilterSpec, normalize_filters, normalize_selection
from insights.gateway import InMemorySnapshotGateway, SnapshotGateway, SnapshotPublisher, SqlSnapshotGateway
from insights.metrics_summary import compute_filtered_view
from insights.redaction import apply_redaction
from insights.sharing import ShareConfig, share_config_from_dict


settings = get_settings()
logging.basicConfig(level=settings.log_level)

app = FastAPI(title="Retail Share Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------- Dependencies ----------------
@lru_cache(maxsize=1)
def get_store() -> DatasetStore:
    return DatasetStore()


@lru_cache(maxsize=1)
def get_gateway() -> SnapshotGateway:
    if settings.gateway == "memory":
        return InMemorySnapshotGateway(base_url=settings.public_base_url)
    return SqlSnapshotGateway(settings.database_url, base_url=settings.public_base_url)


@lru_cache(maxsize=1)
def _publisher(gateway: SnapshotGateway) -> SnapshotPublisher:
    return SnapshotPublisher(gateway)


def get_publisher(gateway: SnapshotGateway = Depends(get_gateway)) -> SnapshotPublisher:
    return _publisher(gateway)


def _filters_from_model(model: FilterSpecModel) -> FilterSpec:
    return normalize_filters(model.model_dump(mode="json"))


def _config_from_model(model: ShareConfigModel) -> ShareConfig:
    return share_config_from_dict(model.model_dump(mode="json"))


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(exc: Exception, where: str) -> JSONResponse:
    if isinstance(exc, ValidationError):
        logger.warning("%s rejected: %s", where, exc.message)
        return JSONResponse(status_code=422, content=exc.to_dict())
    if isinstance(exc, ShareNotFoundError):
        logger.info("%s: %s", where, exc)
        return JSONResponse(status_code=404, content={"error": str(exc), "type": "ShareNotFoundError"})
    if isinstance(exc, PersistenceError):
        logger.error("%s: persistence failure during %s", where, exc.operation)
        return JSONResponse(status_code=503, content={"error": exc.message, "type": type(exc).__name__})
    logger.exception("%s failed", where)
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


# ---------------- Dataset ----------------
@app.post("/dataset")
async def upload_dataset(file: UploadFile = File(...), store: DatasetStore = Depends(get_store)):
    try:
        payload = await file.read()
        dataset = store.load_file(io.BytesIO(payload), filename=file.filename or "upload.csv")
        return _json(dataset_summary(dataset))
    except Exception as exc:
        return _error(exc, "upload_dataset")


@app.get("/meta/products")
def meta_products(store: DatasetStore = Depends(get_store)):
    return _json({"values": store.products()})


@app.get("/meta/retailers")
def meta_retailers(store: DatasetStore = Depends(get_store)):
    return _json({"values": store.retailers()})


@app.get("/meta/months")
def meta_months(store: DatasetStore = Depends(get_store)):
    return _json({"values": store.months()})


@app.get("/meta/questions")
def meta_questions(store: DatasetStore = Depends(get_store)):
    dataset = store.dataset
    questions = [{"number": qf.number, "text": question_text(dataset.records, qf)} for qf in dataset.questions]
    return _json({"questions": questions})


# ---------------- Views ----------------
@app.post("/view")
def view(request: ViewRequest, store: DatasetStore = Depends(get_store)):
    try:
        spec = _filters_from_model(request.filters)
        comparison = _filters_from_model(request.comparison) if request.comparison is not None else None
        return _json(compute_filtered_view(store.dataset, spec, comparison=comparison))
    except Exception as exc:
        return _error(exc, "view")


@app.post("/demographics")
def demographics(request: DemographicsRequest, store: DatasetStore = Depends(get_store)):
    try:
        selection = DemographicSelection(
            question_number=request.question_number,
            responses=tuple(request.selected_responses),
            age_groups=normalize_selection(request.age_groups),
            genders=normalize_selection(request.genders),
        )
        spec = _filters_from_model(request.filters)
        return _json(compute_demographics(store.dataset, spec, selection=selection))
    except Exception as exc:
        return _error(exc, "demographics")


@app.post("/redaction/preview")
def redaction_preview(config: ShareConfigModel, store: DatasetStore = Depends(get_store)):
    try:
        share_config = _config_from_model(config)
        data = compute_filtered_view(store.dataset, share_config.filters)
        client_view = apply_redaction(data, share_config)
        client_view["charts"] = build_view_charts(client_view)
        return _json(client_view)
    except Exception as exc:
        return _error(exc, "redaction_preview")


# ---------------- Sharing ----------------
@app.post("/shares")
async def create_share(
    config: ShareConfigModel,
    store: DatasetStore = Depends(get_store),
    publisher: SnapshotPublisher = Depends(get_publisher),
):
    try:
        link = await publisher.publish(store.dataset, _config_from_model(config))
        if link is None:
            return _json({"status": "ignored"}, status_code=202)
        return _json({"share_id": link.id, "url": link.url})
    except Exception as exc:
        return _error(exc, "create_share")


@app.get("/shares")
async def list_shares(gateway: SnapshotGateway = Depends(get_gateway)):
    try:
        return _json({"shares": await gateway.list()})
    except Exception as exc:
        return _error(exc, "list_shares")


@app.get("/shared/{share_id}")
async def shared_dashboard(share_id: str, gateway: SnapshotGateway = Depends(get_gateway)):
    try:
        record = await gateway.get(share_id)
        client_view = (record.get("precomputedData") or {}).get("view") or {}
        record["charts"] = build_view_charts(client_view)
        return _json(record)
    except Exception as exc:
        return _error(exc, "shared_dashboard")


@app.delete("/shares/{share_id}")
async def delete_share(share_id: str, gateway: SnapshotGateway = Depends(get_gateway)):
    try:
        await gateway.delete(share_id)
        return _json({"deleted": share_id})
    except Exception as exc:
        return _error(exc, "delete_share")
