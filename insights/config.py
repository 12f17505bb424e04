from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Tuple


DEFAULT_DATABASE_URL = "sqlite:///shared_dashboards.db"
DEFAULT_PUBLIC_BASE_URL = "http://localhost:3000"
DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")
SNAPSHOT_RECORD_LIMIT = 100
DEFAULT_CLIENT_NAME = "Client"


def _as_int(value: object, default: int) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except Exception:
        return default


def _as_list(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    public_base_url: str = DEFAULT_PUBLIC_BASE_URL
    snapshot_record_limit: int = SNAPSHOT_RECORD_LIMIT
    cors_origins: Tuple[str, ...] = field(default_factory=lambda: DEFAULT_CORS_ORIGINS)
    log_level: str = "INFO"
    gateway: str = "sql"

    @classmethod
    def from_env(cls, env: dict | None = None) -> "Settings":
        env = os.environ if env is None else env
        origins = _as_list(env.get("INSIGHTS_CORS_ORIGINS", ""))
        gateway = (env.get("INSIGHTS_GATEWAY") or "sql").strip().lower()
        return cls(
            database_url=env.get("INSIGHTS_DATABASE_URL") or DEFAULT_DATABASE_URL,
            public_base_url=(env.get("INSIGHTS_PUBLIC_BASE_URL") or DEFAULT_PUBLIC_BASE_URL).rstrip("/"),
            snapshot_record_limit=max(0, _as_int(env.get("INSIGHTS_SNAPSHOT_RECORD_LIMIT"), SNAPSHOT_RECORD_LIMIT)),
            cors_origins=tuple(origins) if origins else DEFAULT_CORS_ORIGINS,
            log_level=(env.get("INSIGHTS_LOG_LEVEL") or "INFO").upper(),
            gateway=gateway if gateway in {"sql", "memory"} else "sql",
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
