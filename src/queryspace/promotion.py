"""
Save and promotion of queries.

Saving a query that has a saved node optimistically relabels that node
and reverts the label if the backend rejects the save. The first save of
a never-saved query promotes it: once the backend returns the new node
id, the record is marked saved, the unsaved node is removed, the
last-active-unsaved-tab pointer is recomputed and the saved node is
inserted, all as one composite that observers see as a single change.
"""
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from loguru import logger

from src.core.commands import CallbackCommand, CompositeCommand, UndoableCommand
from .actions import (
    InsertSavedNode, MarkQuerySaved, RemoveUnsavedNode, RenameSavedQuery, ReportError,
    SetLastActiveUnsavedTab,
)
from .backend import to_wire_payload
from .errors import ErrorEntry, InconsistentStateError, error_entry_from_exception

if TYPE_CHECKING:
    from .workspace import QueryWorkspace

SAVE_ACTION = "queries/save"


class SaveStatus(str, Enum):
    NOOP = "noop"
    INVALID = "invalid"
    SAVED = "saved"
    PROMOTED = "promoted"
    FAILED = "failed"


@dataclass
class SaveOutcome:
    status: SaveStatus
    query_id: str
    node_id: Optional[str] = None
    error: Optional[ErrorEntry] = None

    @property
    def ok(self) -> bool:
        return self.status in (SaveStatus.SAVED, SaveStatus.PROMOTED)


class PromotionCoordinator:
    """
    Runs the save flow for one workspace.

    Saves of the same query are not serialized: each uses the payload
    captured when it started and the last response to arrive wins.
    """

    def __init__(self, workspace: "QueryWorkspace"):
        self.workspace = workspace

    async def save(self, query_id: str) -> SaveOutcome:
        ws = self.workspace
        record = ws.records.get(query_id)
        if record is None:
            logger.warning(f"Save: unknown query {query_id}")
            return SaveOutcome(SaveStatus.NOOP, query_id)
        if record.is_invalid:
            logger.info(f"Save: {query_id} has invalid fields ({', '.join(record.invalid)}), not sent")
            return SaveOutcome(SaveStatus.INVALID, query_id)

        pending = ws.records.save_payload(query_id)
        if pending is None:
            return SaveOutcome(SaveStatus.NOOP, query_id)
        phase, fields = pending

        rollback_label = self._optimistic_rename(query_id, fields)

        try:
            result = await ws.backend.save_query(query_id, to_wire_payload(fields))
        except Exception as e:
            if rollback_label is not None:
                ws.dispatch(RenameSavedQuery(query_id, rollback_label))
            entry = error_entry_from_exception(SAVE_ACTION, e)
            ws.dispatch(ReportError(entry))
            return SaveOutcome(SaveStatus.FAILED, query_id, error=entry)

        node_id = result.node_id
        if node_id and ws.saved_tree.node_for_query(query_id) is not None:
            logger.warning(f"Save: {query_id} already has a saved node, ignoring node id {node_id}")
            node_id = None

        with ws.batch():
            try:
                steps: List[UndoableCommand] = [
                    CallbackCommand(lambda: ws.dispatch(MarkQuerySaved(query_id, fields)).undo, "Mark saved"),
                ]
                if node_id:
                    steps.extend(self._promotion_steps(query_id, node_id, fields))
                CompositeCommand(steps, f"Save {query_id}").execute()
            except Exception as e:
                entry = error_entry_from_exception(SAVE_ACTION, InconsistentStateError(
                    f"Saved {query_id} but could not apply it locally: {e}"))
                ws.dispatch(ReportError(entry))
                return SaveOutcome(SaveStatus.FAILED, query_id, error=entry)

        logger.info(f"Save: {query_id} {'promoted to ' + node_id if node_id else 'saved'} ({phase})")
        status = SaveStatus.PROMOTED if node_id else SaveStatus.SAVED
        return SaveOutcome(status, query_id, node_id=node_id)

    def _optimistic_rename(self, query_id: str, fields: Dict[str, Any]) -> Optional[str]:
        """
        Relabel the saved node to the outgoing name.

        Returns:
            The label to restore if the save fails (the last confirmed
            name), or None when no rename happened
        """
        ws = self.workspace
        if "name" not in fields or ws.saved_tree.node_for_query(query_id) is None:
            return None
        record = ws.records.get(query_id)
        confirmed = record.persisted.get("name") if record else None
        previous = ws.dispatch(RenameSavedQuery(query_id, fields["name"])).value
        return confirmed if confirmed is not None else previous

    def _promotion_steps(self, query_id: str, node_id: str, fields: Dict[str, Any]) -> List[UndoableCommand]:
        ws = self.workspace
        record = ws.records.get(query_id)
        tab = ws.tabs.tab_for_mount(query_id)
        tab_id = tab.tab_id if tab else None
        if record is None:
            # the tab was closed while the first save was in flight
            logger.warning(f"Save: record for {query_id} is gone, promoting from the sent payload")
            label = fields.get("name") or ws.settings.default_query_name
            ext = ws.settings.default_query_ext
        else:
            label = fields["name"] if "name" in fields else record.current.name
            ext = record.current.ext
        node = ws.saved_tree.make_file_node(node_id, query_id, label, ext)

        def remove_unsaved():
            result = ws.dispatch(RemoveUnsavedNode(tab_id=tab_id, mount_id=query_id))
            if not result.ok:
                logger.warning(f"Save: no unsaved node for {query_id} (tab {tab_id})")
            return result.undo

        def repoint_unsaved_tab():
            return ws.dispatch(SetLastActiveUnsavedTab(self.next_unsaved_tab_id(tab_id))).undo

        def insert_saved():
            result = ws.dispatch(InsertSavedNode(ws.saved_tree.root_id, node))
            if not result.ok:
                raise InconsistentStateError(f"node {node_id} already exists in the saved tree")
            return result.undo

        return [
            CallbackCommand(remove_unsaved, "Remove unsaved node"),
            CallbackCommand(repoint_unsaved_tab, "Recompute last active unsaved tab"),
            CallbackCommand(insert_saved, "Insert saved node"),
        ]

    def next_unsaved_tab_id(self, promoted_tab_id: Optional[str]) -> Optional[str]:
        """
        Keep the current pointer if it still names another unsaved tab;
        otherwise scan the tab order after the promoted tab, wrapping
        around, for the next tab that still has an unsaved node.
        """
        ws = self.workspace
        current = ws.tabs.last_active_unsaved_tab_id
        if current and current != promoted_tab_id and ws.unsaved_tree.has_tab(current):
            return current

        order = ws.tabs.tab_ids
        start = order.index(promoted_tab_id) + 1 if promoted_tab_id in order else 0
        for offset in range(len(order)):
            candidate = order[(start + offset) % len(order)]
            if candidate != promoted_tab_id and ws.unsaved_tree.has_tab(candidate):
                return candidate
        return None
