"""Persistence for published snapshots.

Every gateway evaluates expiry lazily: a lapsed share stays in storage until
deleted but ``get`` reports it as not found.
"""

from __future__ import annotations

import abc
import asyncio
import copy
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from insights.data import Dataset
from insights.errors import ExpiredShareError, PersistenceError, ShareNotFoundError
from insights.sharing import ShareConfig
from insights.snapshot import Snapshot, build_snapshot, share_url, snapshot_to_record


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _parse_ts(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _aware(value)
    return _aware(datetime.fromisoformat(str(value)))


@dataclass(frozen=True)
class ShareLink:
    id: str
    url: str


class SnapshotGateway(abc.ABC):
    def __init__(self, *, base_url: Optional[str] = None, clock: Optional[Clock] = None) -> None:
        self.base_url = base_url
        self._clock: Clock = clock or utcnow

    def is_expired(self, expires_at: Optional[datetime]) -> bool:
        expires_at = _aware(expires_at)
        return expires_at is not None and expires_at <= _aware(self._clock())

    def _summary(self, record: Dict[str, Any]) -> Dict[str, Any]:
        meta = (record.get("precomputedData") or {}).get("metadata") or {}
        return {
            "share_id": record["share_id"],
            "url": share_url(record["share_id"], self.base_url),
            "created_at": record.get("created_at"),
            "expires_at": record.get("expires_at"),
            "client_name": meta.get("client_name"),
            "expired": self.is_expired(_parse_ts(record.get("expires_at"))),
        }

    @abc.abstractmethod
    async def create(self, snapshot: Snapshot) -> ShareLink:
        ...

    @abc.abstractmethod
    async def get(self, share_id: str) -> Dict[str, Any]:
        ...

    @abc.abstractmethod
    async def list(self) -> List[Dict[str, Any]]:
        ...

    @abc.abstractmethod
    async def delete(self, share_id: str) -> bool:
        ...


class InMemorySnapshotGateway(SnapshotGateway):
    def __init__(self, *, base_url: Optional[str] = None, clock: Optional[Clock] = None) -> None:
        super().__init__(base_url=base_url, clock=clock)
        self._rows: Dict[str, Dict[str, Any]] = {}

    async def create(self, snapshot: Snapshot) -> ShareLink:
        record = snapshot_to_record(snapshot)
        self._rows[snapshot.id] = copy.deepcopy(record)
        return ShareLink(id=snapshot.id, url=share_url(snapshot.id, self.base_url))

    async def get(self, share_id: str) -> Dict[str, Any]:
        record = self._rows.get(share_id)
        if record is None:
            raise ShareNotFoundError(share_id)
        expires_at = _parse_ts(record.get("expires_at"))
        if self.is_expired(expires_at):
            raise ExpiredShareError(share_id, expires_at)
        return copy.deepcopy(record)

    async def list(self) -> List[Dict[str, Any]]:
        rows = sorted(self._rows.values(), key=lambda r: r.get("created_at") or "", reverse=True)
        return [self._summary(r) for r in rows]

    async def delete(self, share_id: str) -> bool:
        if self._rows.pop(share_id, None) is None:
            raise ShareNotFoundError(share_id)
        return True


# ---------------- SQL storage ----------------
Base = declarative_base()


class SharedDashboard(Base):
    __tablename__ = "shared_dashboards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    share_id = Column(String(64), unique=True, index=True, nullable=False)
    config = Column(JSON, nullable=False)
    precomputed_data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)

    def to_record(self) -> Dict[str, Any]:
        expires_at = _aware(self.expires_at)
        return {
            "share_id": self.share_id,
            "config": self.config,
            "precomputedData": self.precomputed_data,
            "created_at": _aware(self.created_at).isoformat(),
            "expires_at": expires_at.isoformat() if expires_at else None,
        }


class SqlSnapshotGateway(SnapshotGateway):
    """SQLAlchemy-backed gateway; blocking session work runs in a worker thread."""

    def __init__(self, database_url: str, *, base_url: Optional[str] = None, clock: Optional[Clock] = None) -> None:
        super().__init__(base_url=base_url, clock=clock)
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        self.engine = create_engine(database_url, connect_args=connect_args)
        self.Session = sessionmaker(bind=self.engine)
        Base.metadata.create_all(self.engine)

    async def _run(self, operation: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as exc:
            logger.exception("Snapshot %s failed", operation)
            raise PersistenceError(f"Could not {operation} shared dashboard", operation=operation, cause=exc) from exc

    def _insert(self, record: Dict[str, Any]) -> None:
        with self.Session() as db:
            db.add(
                SharedDashboard(
                    share_id=record["share_id"],
                    config=record["config"],
                    precomputed_data=record["precomputedData"],
                    created_at=_parse_ts(record["created_at"]),
                    expires_at=_parse_ts(record.get("expires_at")),
                )
            )
            db.commit()

    def _fetch(self, share_id: str) -> Optional[Dict[str, Any]]:
        with self.Session() as db:
            row = db.query(SharedDashboard).filter(SharedDashboard.share_id == share_id).first()
            return row.to_record() if row else None

    def _fetch_all(self) -> List[Dict[str, Any]]:
        with self.Session() as db:
            rows = db.query(SharedDashboard).order_by(SharedDashboard.created_at.desc()).all()
            return [row.to_record() for row in rows]

    def _remove(self, share_id: str) -> int:
        with self.Session() as db:
            deleted = db.query(SharedDashboard).filter(SharedDashboard.share_id == share_id).delete()
            db.commit()
            return int(deleted)

    async def create(self, snapshot: Snapshot) -> ShareLink:
        await self._run("create", self._insert, snapshot_to_record(snapshot))
        return ShareLink(id=snapshot.id, url=share_url(snapshot.id, self.base_url))

    async def get(self, share_id: str) -> Dict[str, Any]:
        record = await self._run("get", self._fetch, share_id)
        if record is None:
            raise ShareNotFoundError(share_id)
        expires_at = _parse_ts(record.get("expires_at"))
        if self.is_expired(expires_at):
            raise ExpiredShareError(share_id, expires_at)
        return record

    async def list(self) -> List[Dict[str, Any]]:
        return [self._summary(r) for r in await self._run("list", self._fetch_all)]

    async def delete(self, share_id: str) -> bool:
        if not await self._run("delete", self._remove, share_id):
            raise ShareNotFoundError(share_id)
        return True


class SnapshotPublisher:
    """Builds and stores a snapshot, issuing at most one create at a time."""

    def __init__(self, gateway: SnapshotGateway) -> None:
        self.gateway = gateway
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def publish(self, dataset: Dataset, config: ShareConfig, **build_options: Any) -> Optional[ShareLink]:
        if self._in_flight:
            logger.info("Snapshot creation already in flight; ignoring duplicate request")
            return None
        self._in_flight = True
        try:
            snapshot = build_snapshot(dataset, config, **build_options)
            link = await self.gateway.create(snapshot)
            logger.info("Published snapshot %s", link.id)
            return link
        finally:
            self._in_flight = False
