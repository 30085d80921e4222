"""
In-process QueryBackend.

Keeps queries, tabs and the saved tree in dictionaries. Used by the demo
entry point and handy for scripting against a workspace without a server.
"""
import asyncio
import itertools
from typing import Any, Dict, List, Optional

from loguru import logger

from .errors import BackendRejectedError
from .backend import QueryBackend
from .models import (
    CreateUnsavedQueryResult, NodeKind, QueryFields, SaveQueryResult, SavedTreeData, Tab, Tabbar,
    TreeNode,
)


class InMemoryBackend(QueryBackend):
    """
    Attributes:
        latency: Seconds each call sleeps, to make interleavings visible
    """

    def __init__(self, saved_root_id: str = "queries", unsaved_root_id: str = "unsaved-root",
                 latency: float = 0.0):
        self.saved_root_id = saved_root_id
        self.unsaved_root_id = unsaved_root_id
        self.latency = latency
        self.queries: Dict[str, QueryFields] = {}
        self.saved_query_ids: set = set()
        self.tabs = Tabbar()
        self.nodes: Dict[str, TreeNode] = {}
        self._ids = itertools.count(1)

    async def _tick(self) -> None:
        await asyncio.sleep(self.latency)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    async def create_unsaved_query(self, query_id: str, name: Optional[str] = None) -> CreateUnsavedQueryResult:
        await self._tick()
        if query_id in self.queries:
            raise BackendRejectedError(f"Query {query_id} already exists")
        name = name or "Untitled"
        self.queries[query_id] = QueryFields(query_id=query_id, name=name)
        tab = Tab(tab_id=self._next_id("tab"), mount_id=query_id, position=len(self.tabs.tab_ids))
        self.tabs.tab_ids.append(tab.tab_id)
        self.tabs.entities[tab.tab_id] = tab
        self.tabs.active_tab_id = tab.tab_id
        node = TreeNode(node_id=tab.tab_id, parent_node_id=f"{self.unsaved_root_id}:group-0",
                        kind=NodeKind.FILE, label=name, mount_id=query_id, group_id=0)
        return CreateUnsavedQueryResult(query_id=query_id, name=name, tab=tab, tree=node)

    async def save_query(self, query_id: str, payload: Dict[str, Any]) -> SaveQueryResult:
        await self._tick()
        query = self.queries.get(query_id)
        if query is None:
            raise BackendRejectedError(f"Unknown query {query_id}")
        if "name" in payload:
            query.name = payload["name"]
        if "text" in payload:
            query.query_text = payload["text"]

        if query_id in self.saved_query_ids:
            for node in self.nodes.values():
                if node.mount_id == query_id:
                    node.label = query.name
            return SaveQueryResult(query_id=query_id)

        self.saved_query_ids.add(query_id)
        node_id = self._next_id("node")
        self.nodes[node_id] = TreeNode(node_id=node_id, parent_node_id=self.saved_root_id,
                                       kind=NodeKind.FILE, label=query.name, mount_id=query_id,
                                       ext=query.ext)
        logger.debug(f"InMemoryBackend: promoted {query_id} to {node_id}")
        return SaveQueryResult(query_id=query_id, node_id=node_id)

    async def list_open_tabs(self) -> Tabbar:
        await self._tick()
        return self.tabs.model_copy(deep=True)

    async def set_active_tab(self, tab_id: str) -> None:
        await self._tick()
        if tab_id in self.tabs.entities:
            self.tabs.active_tab_id = tab_id

    async def close_tab(self, tab_id: str) -> None:
        await self._tick()
        tab = self.tabs.entities.pop(tab_id, None)
        if tab is None:
            return
        self.tabs.tab_ids.remove(tab_id)
        if tab.mount_id not in self.saved_query_ids:
            self.queries.pop(tab.mount_id, None)
        if self.tabs.active_tab_id == tab_id:
            self.tabs.active_tab_id = self.tabs.tab_ids[-1] if self.tabs.tab_ids else None

    async def open_tab(self, mount_id: str) -> Tab:
        await self._tick()
        if mount_id not in self.queries:
            raise BackendRejectedError(f"Unknown query {mount_id}")
        tab = Tab(tab_id=self._next_id("tab"), mount_id=mount_id, position=len(self.tabs.tab_ids))
        self.tabs.tab_ids.append(tab.tab_id)
        self.tabs.entities[tab.tab_id] = tab
        return tab

    async def get_saved_tree(self) -> SavedTreeData:
        await self._tick()
        children: Dict[str, List[str]] = {self.saved_root_id: []}
        for node in self.nodes.values():
            children.setdefault(node.parent_node_id, []).append(node.node_id)
        return SavedTreeData(nodes={k: v.model_copy() for k, v in self.nodes.items()},
                             children_by_parent_id=children)

    async def get_node_children(self, node_id: str) -> List[TreeNode]:
        await self._tick()
        return [n.model_copy() for n in self.nodes.values() if n.parent_node_id == node_id]

    async def create_folder(self, parent_id: str, name: str) -> TreeNode:
        await self._tick()
        if parent_id != self.saved_root_id and parent_id not in self.nodes:
            raise BackendRejectedError(f"Unknown parent {parent_id}")
        node = TreeNode(node_id=self._next_id("folder"), parent_node_id=parent_id,
                        kind=NodeKind.FOLDER, label=name)
        self.nodes[node.node_id] = node
        return node.model_copy()

    async def move_node(self, node_id: str, new_parent_id: str) -> None:
        await self._tick()
        node = self.nodes.get(node_id)
        if node is None:
            raise BackendRejectedError(f"Unknown node {node_id}")
        node.parent_node_id = new_parent_id
