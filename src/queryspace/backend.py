"""
Backend collaborator contract.

The workspace never talks to a transport directly; it awaits a
`QueryBackend`. Implementations raise `BackendRejectedError` when the
backend refuses a request and let transport errors propagate as they are.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import CreateUnsavedQueryResult, SaveQueryResult, SavedTreeData, Tab, Tabbar, TreeNode


class QueryBackend(ABC):

    @abstractmethod
    async def create_unsaved_query(self, query_id: str, name: Optional[str] = None) -> CreateUnsavedQueryResult:
        """Create a draft query and the tab that holds it."""
        pass

    @abstractmethod
    async def save_query(self, query_id: str, payload: Dict[str, Any]) -> SaveQueryResult:
        """
        Persist a query.

        Args:
            query_id: Query to save
            payload: `{"name"?: str, "text"?: str}`

        Returns:
            SaveQueryResult; `node_id` is set on the first save only
        """
        pass

    @abstractmethod
    async def list_open_tabs(self) -> Tabbar:
        pass

    @abstractmethod
    async def set_active_tab(self, tab_id: str) -> None:
        pass

    @abstractmethod
    async def close_tab(self, tab_id: str) -> None:
        pass

    @abstractmethod
    async def open_tab(self, mount_id: str) -> Tab:
        pass

    @abstractmethod
    async def get_saved_tree(self) -> SavedTreeData:
        pass

    @abstractmethod
    async def get_node_children(self, node_id: str) -> List[TreeNode]:
        pass

    @abstractmethod
    async def create_folder(self, parent_id: str, name: str) -> TreeNode:
        pass

    @abstractmethod
    async def move_node(self, node_id: str, new_parent_id: str) -> None:
        pass


def to_wire_payload(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Map tracked record fields to the save request body."""
    payload = {}
    if "name" in fields:
        payload["name"] = fields["name"]
    if "query_text" in fields:
        payload["text"] = fields["query_text"]
    return payload
