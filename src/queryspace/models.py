"""
Query workspace data models.

Pydantic models for the records shared between the stores and the
backend collaborator: tree nodes, tabs, query fields and per-query
records, plus the result shapes returned by backend calls.
"""
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class NodeKind(str, Enum):
    """Kind of a tree node."""
    FOLDER = "folder"
    FILE = "file"
    GROUP = "group"


class TreeNode(BaseModel):
    """
    A node of the saved or unsaved query forest.

    Nodes never embed their children; parent/child edges live in the
    owning forest's `children_by_parent_id` map.

    Attributes:
        node_id: Unique node identifier (backend-assigned for saved nodes,
            the owning tab id for unsaved file nodes)
        parent_node_id: Parent node id, or the forest root id
        kind: folder, file or group
        label: Display label
        sort_key: Precomputed `<kindRank>|<collatedLabel>|<nodeId>` string
        mount_id: Query id the node represents (file nodes only)
        level: Depth below the root (root children are level 1)
        ext: File extension (file nodes only)
        group_id: Tab group (unsaved nodes only)
        position: Tab position within the group (unsaved nodes only)
    """
    node_id: str
    parent_node_id: Optional[str] = None
    kind: NodeKind
    label: str = ""
    sort_key: Optional[str] = None
    mount_id: Optional[str] = None
    level: int = 1
    ext: Optional[str] = None
    group_id: Optional[int] = None
    position: Optional[int] = None


class Tab(BaseModel):
    """An open tab. `position` always equals the tab's index in the tab order."""
    tab_id: str
    mount_id: str
    group_id: int = 0
    position: int = 0


class Tabbar(BaseModel):
    """Serializable tab bar state, as listed by the backend on load."""
    tab_ids: List[str] = Field(default_factory=list)
    active_tab_id: Optional[str] = None
    focused_tab_index: Optional[int] = None
    entities: Dict[str, Tab] = Field(default_factory=dict)
    last_active_unsaved_tab_id: Optional[str] = None


class QueryFields(BaseModel):
    """Editable fields of a query."""
    query_id: str
    name: str
    ext: str = "sql"
    query_text: str = ""
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    color: Optional[str] = None


class FieldInvalid(BaseModel):
    """Validation failure attached to one field of a query record."""
    field: str
    action_type: str
    message: str
    schema_id: str


class QueryRecord(BaseModel):
    """
    In-memory state of one query.

    `persisted` is empty until the first confirmed save. `unsaved` holds
    either a `create` payload or an `update` diff, never both, and
    `is_unsaved` is true exactly when `unsaved` is non-empty.
    """
    current: QueryFields
    persisted: Dict[str, Any] = Field(default_factory=dict)
    unsaved: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    is_unsaved: bool = False
    is_invalid: bool = False
    invalid: Dict[str, FieldInvalid] = Field(default_factory=dict)

    @property
    def is_persisted(self) -> bool:
        return bool(self.persisted)


# --- Backend result shapes ---

class CreateUnsavedQueryResult(BaseModel):
    query_id: str
    name: str
    ext: str = "sql"
    tab: Tab
    tree: TreeNode


class SaveQueryResult(BaseModel):
    """`node_id` is present only on the first save of a query (promotion)."""
    query_id: Optional[str] = None
    node_id: Optional[str] = None


class SavedTreeData(BaseModel):
    """Initial saved tree as returned by the backend."""
    nodes: Dict[str, TreeNode] = Field(default_factory=dict)
    children_by_parent_id: Dict[str, List[str]] = Field(default_factory=dict)
    node_ids_by_query_id: Dict[str, List[str]] = Field(default_factory=dict)
