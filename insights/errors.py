from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional


class InsightsError(Exception):
    """Base class for errors that cross the ingestion or persistence boundary."""


class ValidationError(InsightsError):
    def __init__(self, message: str, issues: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.issues: List[Dict[str, Any]] = list(issues or [])

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "type": type(self).__name__, "issues": self.issues}


class PersistenceError(InsightsError):
    def __init__(self, message: str, *, operation: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.cause = cause


class ShareNotFoundError(InsightsError):
    def __init__(self, share_id: str) -> None:
        super().__init__(f"Shared dashboard {share_id!r} not found")
        self.share_id = share_id


class ExpiredShareError(ShareNotFoundError):
    # Handled exactly like a missing share; kept distinct for logging.
    def __init__(self, share_id: str, expires_at: Optional[datetime] = None) -> None:
        super().__init__(share_id)
        self.expires_at = expires_at
