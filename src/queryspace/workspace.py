"""
Query workspace system.

Owns every store of one session (tabs, drafts, query records, the saved
and unsaved trees and the error log) and is the only place they are
mutated: synchronous changes go through `dispatch`, backend-facing flows
are the async methods below.

Usage:
    workspace = locator.register_system(QueryWorkspace, backend)
    await locator.start_all()

    query_id = await workspace.create_unsaved_query()
    workspace.dispatch(UpdateQueryText(query_id, "select 1"))
    outcome = await workspace.save_query(query_id)
"""
import asyncio
import uuid
from contextlib import contextmanager
from typing import Any, Awaitable, Dict, Iterator, Optional, Set, Tuple
from typing import assert_never

from loguru import logger

from src.core.base_system import BaseSystem
from src.core.events import Signal
from .actions import (
    Action, ActionResult, AddTab, AddUnsavedQuery, ClearDrafts, ClearInvalidations, CloseTab,
    CreateQueryRecord, DiscardQueryChanges, FocusTabIndex, HydrateSavedTree, InsertSavedNode,
    MarkQuerySaved, MoveSavedNode, MoveTab, RemoveQuery, RemoveUnsavedNode, RenameSavedQuery,
    ReorderTabs, ReportError, SeedTabs, SetActiveTab, SetDraft, SetLastActiveUnsavedTab,
    SetQueryFromBackend, SetSavedChildren, UpdateQuery, UpdateQueryName, UpdateQueryText,
    UpsertSavedNode,
)
from .backend import QueryBackend
from .constraints import MoveViolation, can_create_folder, is_duplicate_name_in_parent
from .drafts import NAME_DRAFT, TEXT_DRAFT, DraftStore
from .errors import ErrorEntry, ErrorLog, error_entry_from_exception
from .models import NodeKind, TreeNode
from .ordering import build_sort_key
from .promotion import PromotionCoordinator, SaveOutcome
from .query_records import QueryRecordStore
from .saved_tree import SavedTree
from .scheduling import DebouncedWriter, RefreshBatcher
from .tabs import TabStore
from .unsaved_tree import UnsavedTree
from .validation import QueryValidator

_DRAFT_RECORD_FIELD = {NAME_DRAFT: "name", TEXT_DRAFT: "query_text"}


class QueryWorkspace(BaseSystem):
    """
    Client-side state of a query editing session.

    `state_changed` is emitted with the dispatched action after every
    mutation, or once with None at the end of a `batch()`.
    """

    def __init__(self, locator, config, backend: QueryBackend):
        super().__init__(locator, config)
        self.backend = backend
        self.settings = config.data.workspace
        self.validator = QueryValidator(self.settings)

        self.records = QueryRecordStore(self.settings, self.validator)
        self.tabs = TabStore()
        self.drafts = DraftStore()
        self.unsaved_tree = UnsavedTree(self.settings.unsaved_root_id)
        self.saved_tree = SavedTree(self.settings.saved_root_id, self.settings.max_depth)
        self.errors = ErrorLog()

        self.state_changed = Signal("WorkspaceStateChanged")
        self.promotion = PromotionCoordinator(self)
        self.refresher = RefreshBatcher(self.refresh_children)

        self._writers: Dict[Tuple[str, str], DebouncedWriter] = {}
        self._background: Set[asyncio.Task] = set()
        self._batch_depth = 0
        self._dirty = False
        self._disconnect_config = config.on_changed.connect(self._on_config_changed)

    # --- BaseSystem ---

    async def initialize(self):
        await self.load()
        await super().initialize()

    async def shutdown(self):
        for writer in self._writers.values():
            writer.cancel()
        self._writers.clear()
        self.refresher.cancel()
        for task in list(self._background):
            task.cancel()
        self._disconnect_config()
        await super().shutdown()

    async def load(self) -> None:
        """Seed tabs and the saved tree from the backend. Failures are logged and recorded."""
        try:
            self.dispatch(SeedTabs(await self.backend.list_open_tabs()))
        except Exception as e:
            self._report("tabs/load", e)
        try:
            self.dispatch(HydrateSavedTree(await self.backend.get_saved_tree()))
        except Exception as e:
            self._report("tree/load", e)

    def _on_config_changed(self, section: str, key: str, value: Any) -> None:
        if section != "workspace":
            return
        self.settings = self.config.data.workspace
        self.validator = QueryValidator(self.settings)
        self.records.settings = self.settings
        self.records.validator = self.validator
        self.saved_tree.max_depth = self.settings.max_depth
        logger.debug(f"Workspace setting {key} changed to {value!r}")

    # --- Dispatch ---

    def dispatch(self, action: Action) -> ActionResult:
        """Apply one action to the stores and notify observers."""
        result = self._reduce(action)
        if self._batch_depth:
            self._dirty = True
        else:
            self.state_changed.emit(action)
        return result

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Group dispatches so observers are notified once, after the last one."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if not self._batch_depth and self._dirty:
                self._dirty = False
                self.state_changed.emit(None)

    def _reduce(self, action: Action) -> ActionResult:
        match action:
            # Tabs
            case SeedTabs(tabbar=tabbar):
                self.tabs.seed(tabbar)
                return ActionResult()
            case AddTab(tab=tab):
                return ActionResult(undo=self.tabs.add_tab(tab))
            case CloseTab(tab_id=tab_id):
                return ActionResult(ok=self.tabs.close_tab(tab_id))
            case SetActiveTab(tab_id=tab_id):
                return ActionResult(ok=self.tabs.set_active(tab_id))
            case FocusTabIndex(index=index):
                self.tabs.focus_index(index)
                return ActionResult()
            case ReorderTabs(tab_ids=tab_ids):
                return ActionResult(ok=self.tabs.reorder(tab_ids))
            case MoveTab(from_index=from_index, to_index=to_index):
                return ActionResult(ok=self.tabs.move_tab(from_index, to_index))
            case SetLastActiveUnsavedTab(tab_id=tab_id):
                previous = self.tabs.last_active_unsaved_tab_id
                self.tabs.set_last_active_unsaved(tab_id)
                return ActionResult(undo=lambda: self.tabs.set_last_active_unsaved(previous))

            # Query records
            case CreateQueryRecord(query_id=query_id, name=name, ext=ext):
                return ActionResult(undo=self.records.create_unsaved(query_id, name, ext))
            case AddUnsavedQuery(result=created):
                return self._add_unsaved_query(created)
            case RemoveQuery(query_id=query_id):
                ok = query_id in self.records
                return ActionResult(ok=ok, undo=self.records.remove(query_id))
            case SetQueryFromBackend(fields=fields):
                self.records.set_from_backend(fields)
                return ActionResult()
            case UpdateQueryName(query_id=query_id, name=name):
                invalid = self.records.update_name(query_id, name)
                return ActionResult(ok=not invalid, invalid=invalid)
            case UpdateQueryText(query_id=query_id, query_text=query_text):
                invalid = self.records.update_text(query_id, query_text)
                return ActionResult(ok=not invalid, invalid=invalid)
            case UpdateQuery(query_id=query_id, changes=changes):
                invalid = self.records.update(query_id, **changes)
                return ActionResult(ok=not invalid, invalid=invalid)
            case DiscardQueryChanges(query_id=query_id):
                self.records.discard_changes(query_id)
                return ActionResult()
            case MarkQuerySaved(query_id=query_id, saved=saved):
                return ActionResult(undo=self.records.mark_saved(query_id, saved))

            # Drafts
            case SetDraft(tab_id=tab_id, field=field, value=value):
                record = self.records.get(self.tabs.mount_for_tab(tab_id) or "")
                baseline = record.persisted.get(_DRAFT_RECORD_FIELD[field]) if record else None
                self.drafts.set(tab_id, field, value, baseline)
                return ActionResult()
            case ClearDrafts(tab_id=tab_id):
                self.drafts.clear(tab_id)
                return ActionResult()

            # Trees
            case HydrateSavedTree(data=data):
                self.saved_tree.hydrate(data)
                return ActionResult()
            case SetSavedChildren(parent_id=parent_id, rows=rows):
                self.saved_tree.set_children(parent_id, list(rows))
                return ActionResult()
            case UpsertSavedNode(node=node):
                self.saved_tree.upsert(node)
                return ActionResult()
            case InsertSavedNode(parent_id=parent_id, node=node):
                if self.saved_tree.has(node.node_id):
                    return ActionResult(ok=False)
                return ActionResult(undo=self.saved_tree.insert_query_node(parent_id, node))
            case RenameSavedQuery(query_id=query_id, label=label):
                previous = self.saved_tree.rename_query(query_id, label)
                if previous is None:
                    return ActionResult(ok=False)
                return ActionResult(value=previous,
                                    undo=lambda: self.saved_tree.rename_query(query_id, previous))
            case MoveSavedNode(node_id=node_id, target_id=target_id):
                outcome = self.saved_tree.move(node_id, target_id)
                return ActionResult(ok=outcome.check.ok, undo=outcome.undo, violation=outcome.code)
            case ClearInvalidations(items=items, parents=parents):
                self.saved_tree.clear_invalidations(items, parents)
                return ActionResult()
            case RemoveUnsavedNode(tab_id=tab_id, mount_id=mount_id):
                if tab_id is not None and self.unsaved_tree.has_tab(tab_id):
                    return ActionResult(undo=self.unsaved_tree.remove_by_tab_id(tab_id))
                if mount_id is not None and self.unsaved_tree.find_by_mount_id(mount_id):
                    return ActionResult(undo=self.unsaved_tree.remove_by_mount_id(mount_id))
                return ActionResult(ok=False)

            # Errors
            case ReportError(entry=entry):
                self.errors.append(entry)
                return ActionResult()

            case _:
                assert_never(action)

    def _add_unsaved_query(self, created) -> ActionResult:
        tab = created.tab
        if tab.mount_id != created.query_id:
            tab = tab.model_copy(update={"mount_id": created.query_id})

        self.records.apply_fetched(created.query_id, created.name, created.ext)
        undo_tab = self.tabs.add_tab(tab)
        node = created.tree.model_copy(update={
            "node_id": tab.tab_id,
            "kind": NodeKind.FILE,
            "label": created.name,
            "mount_id": created.query_id,
            "ext": created.ext,
            "group_id": tab.group_id,
            "position": tab.position,
        })
        undo_node = self.unsaved_tree.add_from_fetch(node)
        self.tabs.set_last_active_unsaved(tab.tab_id)

        def undo() -> None:
            undo_node()
            undo_tab()

        return ActionResult(undo=undo)

    def _report(self, action_type: str, exc: BaseException) -> ErrorEntry:
        entry = error_entry_from_exception(action_type, exc)
        self.dispatch(ReportError(entry))
        return entry

    def _spawn(self, coro: Awaitable[Any], action_type: str) -> asyncio.Task:
        """Run a backend call without awaiting it; failures are only logged."""
        task = asyncio.ensure_future(coro)
        self._background.add(task)

        def done(t: asyncio.Task) -> None:
            self._background.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.warning(f"{action_type} failed in background: {t.exception()}")

        task.add_done_callback(done)
        return task

    # --- Queries ---

    async def create_unsaved_query(self, name: Optional[str] = None) -> Optional[str]:
        """
        Create a never-saved query with its tab and unsaved tree node.

        The record exists locally before the backend answers; if the backend
        fails it is removed again and the error is recorded.

        Returns:
            The new query id, or None when validation or the backend failed
        """
        name = name or self.unsaved_tree.next_untitled_name(self.settings.default_query_name)
        query_id = str(uuid.uuid4())
        invalid = self.validator.validate_name(query_id, name, "queries/createUnsaved")
        if invalid:
            logger.info(f"Create query rejected: {invalid['name'].message}")
            return None

        created = self.dispatch(CreateQueryRecord(query_id, name, self.settings.default_query_ext))
        try:
            result = await self.backend.create_unsaved_query(query_id, name)
        except Exception as e:
            created.revert()
            self._notify_reverted()
            self._report("queries/createUnsaved", e)
            return None

        if result.query_id != query_id:
            logger.warning(f"Backend returned query id {result.query_id} for {query_id}")
            result = result.model_copy(update={"query_id": query_id})
        self.dispatch(AddUnsavedQuery(result))
        logger.info(f"Created unsaved query {query_id} ({result.name})")
        return query_id

    def rename_query(self, query_id: str, name: str) -> ActionResult:
        """Rename a query record and, when it has one, its saved tree node."""
        with self.batch():
            result = self.dispatch(UpdateQueryName(query_id, name))
            if result.ok and self.saved_tree.node_for_query(query_id) is not None:
                self.dispatch(RenameSavedQuery(query_id, name))
        return result

    async def save_query(self, query_id: str) -> SaveOutcome:
        """Flush pending draft writes for the query's tab, then save it."""
        tab = self.tabs.tab_for_mount(query_id)
        if tab is not None:
            self._flush_writers(tab.tab_id)
        outcome = await self.promotion.save(query_id)
        if outcome.ok and tab is not None:
            self.dispatch(ClearDrafts(tab.tab_id))
        return outcome

    async def save_active_query(self) -> Optional[SaveOutcome]:
        query_id = self.tabs.active_mount_id
        if query_id is None:
            return None
        return await self.save_query(query_id)

    # --- Drafts ---

    def edit_name_draft(self, tab_id: str, value: str) -> None:
        self._writer(tab_id, NAME_DRAFT)(tab_id, value)

    def edit_text_draft(self, tab_id: str, value: str) -> None:
        self._writer(tab_id, TEXT_DRAFT)(tab_id, value)

    def _writer(self, tab_id: str, field: str) -> DebouncedWriter:
        key = (tab_id, field)
        if key not in self._writers:
            write = self._write_name_draft if field == NAME_DRAFT else self._write_text_draft
            self._writers[key] = DebouncedWriter(self.settings.draft_debounce_ms, write, f"{field}:{tab_id}")
        return self._writers[key]

    def _write_name_draft(self, tab_id: str, value: str) -> None:
        query_id = self.tabs.mount_for_tab(tab_id)
        if query_id is None:
            logger.debug(f"Dropping name draft for closed tab {tab_id}")
            return
        with self.batch():
            self.dispatch(SetDraft(tab_id, NAME_DRAFT, value))
            self.rename_query(query_id, value)

    def _write_text_draft(self, tab_id: str, value: str) -> None:
        query_id = self.tabs.mount_for_tab(tab_id)
        if query_id is None:
            logger.debug(f"Dropping text draft for closed tab {tab_id}")
            return
        with self.batch():
            self.dispatch(SetDraft(tab_id, TEXT_DRAFT, value))
            self.dispatch(UpdateQueryText(query_id, value))

    def _flush_writers(self, tab_id: str) -> None:
        for field in (NAME_DRAFT, TEXT_DRAFT):
            writer = self._writers.get((tab_id, field))
            if writer is not None:
                writer.flush()

    def _drop_writers(self, tab_id: str) -> None:
        for field in (NAME_DRAFT, TEXT_DRAFT):
            writer = self._writers.pop((tab_id, field), None)
            if writer is not None:
                writer.cancel()

    # --- Tabs ---

    async def open_tab(self, mount_id: str) -> Optional[str]:
        """Activate the tab holding `mount_id`, opening one through the backend if needed."""
        existing = self.tabs.tab_for_mount(mount_id)
        if existing is not None:
            await self.set_active_tab(existing.tab_id)
            return existing.tab_id
        try:
            tab = await self.backend.open_tab(mount_id)
        except Exception as e:
            self._report("tabs/open", e)
            return None
        self.dispatch(AddTab(tab))
        return tab.tab_id

    async def set_active_tab(self, tab_id: str) -> bool:
        previous = self.tabs.active_tab_id
        if previous and previous != tab_id:
            self._flush_writers(previous)
        with self.batch():
            result = self.dispatch(SetActiveTab(tab_id))
            if result.ok and self.unsaved_tree.has_tab(tab_id):
                self.dispatch(SetLastActiveUnsavedTab(tab_id))
        if result.ok:
            self._spawn(self.backend.set_active_tab(tab_id), "tabs/setActive")
        return result.ok

    async def close_tab(self, tab_id: str) -> Optional[str]:
        """
        Close a tab. A query that was never saved is destroyed with it.
        The backend is told without waiting for its answer.

        Returns:
            The id of the tab that is active afterwards
        """
        if self.tabs.get(tab_id) is None:
            logger.warning(f"close_tab: unknown tab {tab_id}")
            return self.tabs.active_tab_id

        self._drop_writers(tab_id)
        query_id = self.tabs.mount_for_tab(tab_id)
        with self.batch():
            if self.unsaved_tree.has_tab(tab_id):
                self.dispatch(RemoveUnsavedNode(tab_id=tab_id))
                record = self.records.get(query_id) if query_id else None
                if record is not None and not record.is_persisted:
                    self.dispatch(RemoveQuery(query_id))
            self.dispatch(ClearDrafts(tab_id))
            self.dispatch(CloseTab(tab_id))

        self._spawn(self.backend.close_tab(tab_id), "tabs/close")
        return self.tabs.active_tab_id

    def focus_tab_index(self, index: int) -> None:
        self.dispatch(FocusTabIndex(index))

    def reorder_tabs(self, tab_ids) -> bool:
        return self.dispatch(ReorderTabs(list(tab_ids))).ok

    def move_tab(self, from_index: int, to_index: int) -> bool:
        return self.dispatch(MoveTab(from_index, to_index)).ok

    # --- Saved tree ---

    async def refresh_children(self, parent_id: str) -> None:
        try:
            rows = await self.backend.get_node_children(parent_id)
        except Exception as e:
            self._report("tree/refresh", e)
            return
        self.dispatch(SetSavedChildren(parent_id, rows))

    async def create_folder(self, parent_id: str, name: str) -> Optional[TreeNode]:
        """
        Create a folder under `parent_id` (the saved root or a folder).

        Depth and duplicate rules are checked locally first. On success the
        node is inserted and a refresh of the parent is scheduled.
        """
        tree = self.saved_tree
        if not can_create_folder(tree, parent_id, self.settings.max_depth):
            logger.info(f"create_folder: not allowed under {parent_id}")
            return None
        invalid = self.validator.validate_name(parent_id, name, "tree/createFolder")
        if invalid:
            logger.info(f"create_folder: {invalid['name'].message}")
            return None
        if is_duplicate_name_in_parent(tree, parent_id, name, kind=NodeKind.FOLDER):
            logger.info(f"create_folder: '{name}' already exists under {parent_id}")
            return None

        try:
            node = await self.backend.create_folder(parent_id, name)
        except Exception as e:
            self._report("tree/createFolder", e)
            return None

        node = node.model_copy(update={
            "kind": NodeKind.FOLDER,
            "sort_key": build_sort_key(NodeKind.FOLDER, node.label, node.node_id),
        })
        self.dispatch(InsertSavedNode(parent_id, node))
        self.refresher.request(parent_id)
        return node

    async def move_query_node(self, node_id: str, target_id: str) -> Tuple[MoveViolation, bool]:
        """
        Move a saved file node under `target_id`.

        The move is applied locally first and undone if the backend fails.

        Returns:
            (violation code, committed). A rejected move returns its code with
            committed False; a backend failure returns OK with committed False.
        """
        node = self.saved_tree.get(node_id)
        old_parent = node.parent_node_id if node else None
        result = self.dispatch(MoveSavedNode(node_id, target_id))
        if not result.ok:
            return result.violation, False

        try:
            await self.backend.move_node(node_id, target_id)
        except Exception as e:
            result.revert()
            self._notify_reverted()
            self._report("tree/move", e)
            return result.violation, False

        for parent in (old_parent, target_id):
            if parent:
                self.refresher.request(parent)
        return result.violation, True

    def clear_invalidations(self, items=None, parents=None) -> None:
        self.dispatch(ClearInvalidations(list(items or []), list(parents or [])))

    def _notify_reverted(self) -> None:
        if self._batch_depth:
            self._dirty = True
        else:
            self.state_changed.emit(None)

    # --- Snapshot ---

    def snapshot(self) -> Dict[str, Any]:
        """Plain, JSON-serializable copy of every store."""
        return {
            "tabs": self.tabs.snapshot(),
            "drafts": self.drafts.snapshot(),
            "queries": self.records.snapshot(),
            "unsaved_tree": self.unsaved_tree.snapshot(),
            "saved_tree": self.saved_tree.snapshot(),
            "errors": self.errors.snapshot(),
        }
