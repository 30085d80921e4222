"""
QuerySpace workspace.

Stores and flows behind a query editor:
- Tabs, per-tab drafts and per-query records with change tracking
- Saved and unsaved query trees with ordering and move rules
- Save/promotion of queries with compensation on backend failure

Direct imports: from src.queryspace.workspace import QueryWorkspace
"""
from .actions import ActionResult
from .backend import QueryBackend
from .constraints import MoveViolation
from .errors import BackendRejectedError, ErrorKind, InconsistentStateError, QuerySpaceError
from .models import NodeKind, QueryFields, QueryRecord, Tab, Tabbar, TreeNode
from .promotion import SaveOutcome, SaveStatus
from .workspace import QueryWorkspace

__all__ = [
    "ActionResult",
    "QueryBackend",
    "MoveViolation",
    "BackendRejectedError",
    "ErrorKind",
    "InconsistentStateError",
    "QuerySpaceError",
    "NodeKind",
    "QueryFields",
    "QueryRecord",
    "Tab",
    "Tabbar",
    "TreeNode",
    "SaveOutcome",
    "SaveStatus",
    "QueryWorkspace",
]
