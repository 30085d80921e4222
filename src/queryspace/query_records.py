"""
Per-query record store.

Owns the `QueryRecord` map. Field updates are validated first; an
invalid value is kept in `current` (so the editor shows what was typed)
and reported in the record's `invalid` map, but it is never added to the
unsaved diff.
"""
from typing import Any, Callable, Dict, Optional, Tuple

from loguru import logger

from src.core.config import WorkspaceSettings
from .change_tracker import TRACKED_FIELDS, ChangeTracker
from .models import FieldInvalid, QueryFields, QueryRecord
from .validation import QueryValidator

UPDATE_NAME = "queries/updateName"
UPDATE_TEXT = "queries/updateText"
UPDATE_QUERY = "queries/update"

_UNSET: Any = object()


class QueryRecordStore:
    """
    Map of query id to record plus the change tracker over it.

    Attributes:
        records: query_id -> QueryRecord
        tracker: ChangeTracker maintaining unsaved diffs
    """

    def __init__(self, settings: WorkspaceSettings, validator: Optional[QueryValidator] = None):
        self.settings = settings
        self.validator = validator or QueryValidator(settings)
        self.records: Dict[str, QueryRecord] = {}
        self.tracker = ChangeTracker(self.records)

    def get(self, query_id: str) -> Optional[QueryRecord]:
        return self.records.get(query_id)

    def __contains__(self, query_id: str) -> bool:
        return query_id in self.records

    # --- Lifecycle of a record ---

    def create_unsaved(self, query_id: str, name: str, ext: Optional[str] = None) -> Callable[[], None]:
        """Insert a never-saved record; returns a function that removes it again."""
        if query_id in self.records:
            logger.warning(f"QueryRecordStore: {query_id} already exists")
            return lambda: None
        self.records[query_id] = QueryRecord(
            current=QueryFields(query_id=query_id, name=name, ext=ext or self.settings.default_query_ext),
        )
        self.tracker.record_change(query_id, {})
        return lambda: self.remove(query_id)

    def apply_fetched(self, query_id: str, name: str, ext: Optional[str] = None) -> None:
        """Adopt name/ext echoed by the backend for a freshly created query."""
        record = self.records.get(query_id)
        if record is None:
            self.create_unsaved(query_id, name, ext)
            return
        record.current.name = name
        if ext:
            record.current.ext = ext
        if not record.is_persisted:
            create = record.unsaved.get("create", {})
            create["name"] = name
            record.unsaved["create"] = create
        self.tracker.refresh(query_id)

    def set_from_backend(self, fields: QueryFields) -> None:
        """
        Load a saved query from the backend.

        A record with unsaved edits keeps its `current` values: only
        `persisted` is replaced and the diff recomputed against it.
        Otherwise `current` and `persisted` both become the backend value.
        """
        record = self.records.get(fields.query_id)
        if record is not None and record.is_unsaved:
            record.persisted = fields.model_dump()
            self.tracker.discard(fields.query_id)
            self.tracker.refresh(fields.query_id)
            return
        self.records[fields.query_id] = QueryRecord(
            current=fields.model_copy(deep=True),
            persisted=fields.model_dump(),
        )
        self.tracker.discard(fields.query_id)

    def remove(self, query_id: str) -> Callable[[], None]:
        record = self.records.pop(query_id, None)
        changes = self.tracker.changes_by_id.pop(query_id, None)
        if record is None:
            return lambda: None

        def undo() -> None:
            self.records[query_id] = record
            if changes is not None:
                self.tracker.changes_by_id[query_id] = changes

        return undo

    # --- Field updates ---

    def update_name(self, query_id: str, name: Any) -> Dict[str, FieldInvalid]:
        return self.update(query_id, name=name, action_type=UPDATE_NAME)

    def update_text(self, query_id: str, query_text: Any) -> Dict[str, FieldInvalid]:
        return self.update(query_id, query_text=query_text, action_type=UPDATE_TEXT)

    def update(self, query_id: str, name: Any = _UNSET, query_text: Any = _UNSET,
               action_type: str = UPDATE_QUERY) -> Dict[str, FieldInvalid]:
        """
        Apply name and/or text updates.

        Fields whose value equals `current` are skipped. Valid fields clear
        their previous validation failure and are tracked as changes.

        Returns:
            Validation failures for this update (empty when all fields passed)
        """
        record = self.records.get(query_id)
        if record is None:
            logger.warning(f"QueryRecordStore: update for unknown query {query_id}")
            return {}

        requested = {k: v for k, v in (("name", name), ("query_text", query_text)) if v is not _UNSET}
        changes = {k: v for k, v in requested.items() if getattr(record.current, k) != v}
        if not changes:
            return {}

        if action_type == UPDATE_NAME:
            invalid = self.validator.validate_name(query_id, changes["name"], action_type)
        elif action_type == UPDATE_TEXT:
            invalid = self.validator.validate_text(query_id, changes["query_text"], action_type)
        else:
            invalid = self.validator.validate_update(query_id, action_type, **changes)

        accepted = {}
        for field, value in changes.items():
            if isinstance(value, str):
                setattr(record.current, field, value)
            if field in invalid:
                record.invalid[field] = invalid[field]
            else:
                record.invalid.pop(field, None)
                accepted[field] = value
        record.is_invalid = bool(record.invalid)

        if accepted:
            self.tracker.record_change(query_id, accepted)
        return invalid

    def discard_changes(self, query_id: str) -> None:
        """Revert a saved query's tracked fields to their persisted values."""
        record = self.records.get(query_id)
        if record is None or not record.is_persisted:
            return
        for field in TRACKED_FIELDS:
            if field in record.persisted:
                setattr(record.current, field, record.persisted[field])
        record.invalid = {}
        record.is_invalid = False
        self.tracker.discard(query_id)
        self.tracker.refresh(query_id)

    def mark_saved(self, query_id: str, saved: Optional[Dict[str, Any]] = None) -> Callable[[], None]:
        return self.tracker.mark_saved(query_id, saved)

    def save_payload(self, query_id: str) -> Optional[Tuple[str, Dict[str, Any]]]:
        """
        Copy of the pending payload as `(phase, fields)` where phase is
        "create" or "update". None when there is nothing to save.
        """
        record = self.records.get(query_id)
        if record is None or not record.is_unsaved:
            return None
        for phase in ("create", "update"):
            if phase in record.unsaved:
                fields = {k: v for k, v in record.unsaved[phase].items() if k in TRACKED_FIELDS}
                return phase, fields
        return None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "records": {qid: rec.model_dump(mode="json") for qid, rec in self.records.items()},
            "changes_by_id": {qid: dict(diff) for qid, diff in self.tracker.changes_by_id.items()},
        }
