"""
Workspace errors and the append-only error log.

Provides:
- QuerySpaceError and subclasses raised by backends and the workspace
- ErrorKind / ErrorEntry: serializable record of a failed action
- ErrorLog: append-only log with a `last` pointer
- error_entry_from_exception: map any exception to an ErrorEntry
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, Field


class QuerySpaceError(Exception):
    """Base class for workspace errors."""


class BackendRejectedError(QuerySpaceError):
    """The backend answered and refused the request."""

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.fields = fields or {}


class InconsistentStateError(QuerySpaceError):
    """Local stores disagree with each other (e.g. a promoted node without its tab)."""


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    BACKEND_REJECTED = "backend_rejected"
    INCONSISTENT_STATE = "inconsistent_state"
    NETWORK = "network"


class ErrorEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    action_type: str
    kind: ErrorKind
    message: str
    fields: Dict[str, str] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def error_entry_from_exception(action_type: str, exc: BaseException) -> ErrorEntry:
    """Classify an exception raised while running `action_type`."""
    if isinstance(exc, BackendRejectedError):
        return ErrorEntry(action_type=action_type, kind=ErrorKind.BACKEND_REJECTED,
                          message=exc.message, fields=dict(exc.fields))
    if isinstance(exc, InconsistentStateError):
        return ErrorEntry(action_type=action_type, kind=ErrorKind.INCONSISTENT_STATE, message=str(exc))
    return ErrorEntry(action_type=action_type, kind=ErrorKind.NETWORK,
                      message=str(exc) or exc.__class__.__name__)


class ErrorLog:
    """Append-only map of error entries; `last` points at the newest one."""

    def __init__(self):
        self.by_id: Dict[str, ErrorEntry] = {}
        self.last: Optional[str] = None

    def append(self, entry: ErrorEntry) -> ErrorEntry:
        self.by_id[entry.id] = entry
        self.last = entry.id
        logger.warning(f"[{entry.kind.value}] {entry.action_type}: {entry.message}")
        return entry

    def report(self, action_type: str, exc: BaseException) -> ErrorEntry:
        return self.append(error_entry_from_exception(action_type, exc))

    @property
    def last_entry(self) -> Optional[ErrorEntry]:
        return self.by_id.get(self.last) if self.last else None

    def entries(self) -> List[ErrorEntry]:
        return list(self.by_id.values())

    def __len__(self) -> int:
        return len(self.by_id)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "by_id": {eid: e.model_dump(mode="json") for eid, e in self.by_id.items()},
            "last": self.last,
        }
