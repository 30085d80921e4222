import itertools

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from src.core.config import ConfigManager
from src.core.locator import ServiceLocator
from src.queryspace.backend import QueryBackend
from src.queryspace.models import (
    CreateUnsavedQueryResult, NodeKind, SaveQueryResult, SavedTreeData, Tab, Tabbar, TreeNode,
)
from src.queryspace.ordering import build_sort_key
from src.queryspace.workspace import QueryWorkspace


@pytest.fixture
def config(tmp_path):
    return ConfigManager(str(tmp_path / "config.json"))


@pytest.fixture
def backend():
    """AsyncMock backend that creates tabs/nodes with predictable ids."""
    mock = AsyncMock(spec=QueryBackend)
    counter = itertools.count(1)

    async def create_unsaved_query(query_id, name=None):
        n = next(counter)
        tab = Tab(tab_id=f"tab-{n}", mount_id=query_id)
        node = TreeNode(node_id=f"tab-{n}", parent_node_id="unsaved-root:group-0",
                        kind=NodeKind.FILE, label=name or "Untitled", mount_id=query_id, group_id=0)
        return CreateUnsavedQueryResult(query_id=query_id, name=name or "Untitled", tab=tab, tree=node)

    mock.create_unsaved_query.side_effect = create_unsaved_query
    mock.save_query.return_value = SaveQueryResult()
    mock.list_open_tabs.return_value = Tabbar()
    mock.get_saved_tree.return_value = SavedTreeData()
    mock.get_node_children.return_value = []
    mock.set_active_tab.return_value = None
    mock.close_tab.return_value = None
    mock.move_node.return_value = None
    return mock


@pytest.fixture
def locator(config):
    return ServiceLocator(config)


@pytest_asyncio.fixture
async def workspace(locator, backend):
    ws = locator.register_system(QueryWorkspace, backend)
    await locator.start_all()
    yield ws
    await locator.stop_all()


@pytest.fixture
def make_file():
    def factory(node_id, label, parent="queries", query_id=None, ext="sql"):
        return TreeNode(node_id=node_id, parent_node_id=parent, kind=NodeKind.FILE, label=label,
                        sort_key=build_sort_key(NodeKind.FILE, label, node_id),
                        mount_id=query_id, ext=ext)
    return factory


@pytest.fixture
def make_folder():
    def factory(node_id, label, parent="queries"):
        return TreeNode(node_id=node_id, parent_node_id=parent, kind=NodeKind.FOLDER, label=label,
                        sort_key=build_sort_key(NodeKind.FOLDER, label, node_id))
    return factory
