"""
Closed set of state-changing actions accepted by `QueryWorkspace.dispatch`.

Every store mutation goes through one of these. `Action` is the union of
all of them; the dispatcher matches it exhaustively.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from .constraints import MoveViolation
from .errors import ErrorEntry
from .models import CreateUnsavedQueryResult, FieldInvalid, QueryFields, SavedTreeData, Tab, Tabbar, TreeNode


# --- Tabs ---

@dataclass(frozen=True)
class SeedTabs:
    tabbar: Tabbar


@dataclass(frozen=True)
class AddTab:
    tab: Tab


@dataclass(frozen=True)
class CloseTab:
    tab_id: str


@dataclass(frozen=True)
class SetActiveTab:
    tab_id: str


@dataclass(frozen=True)
class FocusTabIndex:
    index: int


@dataclass(frozen=True)
class ReorderTabs:
    tab_ids: List[str]


@dataclass(frozen=True)
class MoveTab:
    from_index: int
    to_index: int


@dataclass(frozen=True)
class SetLastActiveUnsavedTab:
    tab_id: Optional[str]


# --- Query records ---

@dataclass(frozen=True)
class CreateQueryRecord:
    query_id: str
    name: str
    ext: Optional[str] = None


@dataclass(frozen=True)
class AddUnsavedQuery:
    """Adopt a backend-created draft: record fields, its tab and its unsaved node."""
    result: CreateUnsavedQueryResult


@dataclass(frozen=True)
class RemoveQuery:
    query_id: str


@dataclass(frozen=True)
class SetQueryFromBackend:
    fields: QueryFields


@dataclass(frozen=True)
class UpdateQueryName:
    query_id: str
    name: str


@dataclass(frozen=True)
class UpdateQueryText:
    query_id: str
    query_text: str


@dataclass(frozen=True)
class UpdateQuery:
    query_id: str
    changes: Dict[str, Any]


@dataclass(frozen=True)
class DiscardQueryChanges:
    query_id: str


@dataclass(frozen=True)
class MarkQuerySaved:
    query_id: str
    saved: Optional[Dict[str, Any]] = None


# --- Drafts ---

@dataclass(frozen=True)
class SetDraft:
    tab_id: str
    field: str
    value: Any


@dataclass(frozen=True)
class ClearDrafts:
    tab_id: str


# --- Trees ---

@dataclass(frozen=True)
class HydrateSavedTree:
    data: SavedTreeData


@dataclass(frozen=True)
class SetSavedChildren:
    parent_id: str
    rows: List[TreeNode]


@dataclass(frozen=True)
class UpsertSavedNode:
    node: TreeNode


@dataclass(frozen=True)
class InsertSavedNode:
    parent_id: str
    node: TreeNode


@dataclass(frozen=True)
class RenameSavedQuery:
    query_id: str
    label: str


@dataclass(frozen=True)
class MoveSavedNode:
    node_id: str
    target_id: str


@dataclass(frozen=True)
class ClearInvalidations:
    items: List[str] = field(default_factory=list)
    parents: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RemoveUnsavedNode:
    tab_id: Optional[str] = None
    mount_id: Optional[str] = None


# --- Errors ---

@dataclass(frozen=True)
class ReportError:
    entry: ErrorEntry


Action = Union[
    SeedTabs, AddTab, CloseTab, SetActiveTab, FocusTabIndex, ReorderTabs, MoveTab,
    SetLastActiveUnsavedTab,
    CreateQueryRecord, AddUnsavedQuery, RemoveQuery, SetQueryFromBackend,
    UpdateQueryName, UpdateQueryText, UpdateQuery, DiscardQueryChanges, MarkQuerySaved,
    SetDraft, ClearDrafts,
    HydrateSavedTree, SetSavedChildren, UpsertSavedNode, InsertSavedNode, RenameSavedQuery,
    MoveSavedNode, ClearInvalidations, RemoveUnsavedNode,
    ReportError,
]


@dataclass
class ActionResult:
    """
    Outcome of a dispatched action.

    Attributes:
        ok: False when the action was rejected or referred to missing state
        undo: Reverts the action, for mutations that support compensation
        invalid: Field validation failures (record updates)
        violation: Move rule result (MoveSavedNode)
        value: Action-specific value (e.g. previous label of a rename)
    """
    ok: bool = True
    undo: Optional[Callable[[], None]] = None
    invalid: Dict[str, FieldInvalid] = field(default_factory=dict)
    violation: Optional[MoveViolation] = None
    value: Any = None

    def revert(self) -> None:
        if self.undo is not None:
            undo, self.undo = self.undo, None
            undo()
