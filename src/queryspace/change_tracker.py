"""
Unsaved-change tracking for query records.

Each record carries `current` (what the editor shows) and `persisted`
(the last value the backend confirmed). The tracker derives the
record's `unsaved` payload from the two:

- never saved: `{"create": {...}}` with every tracked field present
- saved before: `{"update": {...}}` holding only fields that differ from
  `persisted`; an empty diff clears the unsaved flag
"""
from typing import Any, Callable, Dict, Mapping, Optional

from loguru import logger

from .models import QueryRecord

TRACKED_FIELDS = ("name", "query_text")


class ChangeTracker:
    """
    Maintains `unsaved`/`is_unsaved` on the records it is given and keeps
    the latest diff per query in `changes_by_id`.
    """

    def __init__(self, records: Dict[str, QueryRecord]):
        self._records = records
        self.changes_by_id: Dict[str, Dict[str, Any]] = {}

    def record_change(self, query_id: str, changes: Mapping[str, Any]) -> None:
        """Merge allow-listed `changes` into the query's tracked diff."""
        record = self._records.get(query_id)
        if record is None:
            logger.warning(f"ChangeTracker: no record for {query_id}, change ignored")
            return

        allowed = {k: v for k, v in changes.items() if k in TRACKED_FIELDS}
        if record.is_persisted:
            merged = {**self.changes_by_id.get(query_id, {}), **allowed}
            self._apply_update_diff(query_id, record, merged)
        else:
            self._apply_create(query_id, record, allowed)

    def refresh(self, query_id: str) -> None:
        """Recompute the diff from `current` against `persisted`."""
        record = self._records.get(query_id)
        if record is None:
            return
        current = record.current.model_dump()
        if record.is_persisted:
            self._apply_update_diff(query_id, record, {f: current[f] for f in TRACKED_FIELDS})
        else:
            self._apply_create(query_id, record, {})

    def mark_saved(self, query_id: str, saved: Optional[Mapping[str, Any]] = None) -> Callable[[], None]:
        """
        Record a confirmed save.

        `persisted` becomes `current`, with the fields of the payload that
        was actually sent (`saved`) taking precedence. Edits made while the
        save was in flight therefore remain as an update diff.

        Returns:
            Function restoring the record and diff to their previous state
        """
        record = self._records.get(query_id)
        if record is None:
            logger.warning(f"ChangeTracker: mark_saved for unknown query {query_id}")
            return lambda: None

        previous_record = record.model_copy(deep=True)
        previous_changes = self.changes_by_id.get(query_id)

        persisted = record.current.model_dump()
        for field in TRACKED_FIELDS:
            if saved and field in saved:
                persisted[field] = saved[field]
        record.persisted = persisted
        record.unsaved = {}
        record.is_unsaved = False
        self.changes_by_id.pop(query_id, None)

        if saved:
            current = record.current.model_dump()
            drift = {f: current[f] for f in TRACKED_FIELDS if current[f] != persisted[f]}
            if drift:
                self._apply_update_diff(query_id, record, drift)

        def undo() -> None:
            self._records[query_id] = previous_record
            if previous_changes is None:
                self.changes_by_id.pop(query_id, None)
            else:
                self.changes_by_id[query_id] = previous_changes

        return undo

    def discard(self, query_id: str) -> None:
        self.changes_by_id.pop(query_id, None)

    def _apply_update_diff(self, query_id: str, record: QueryRecord, merged: Dict[str, Any]) -> None:
        diff = {k: v for k, v in merged.items() if record.persisted.get(k) != v}
        if diff:
            self.changes_by_id[query_id] = diff
            record.unsaved = {"update": {"query_id": query_id, **diff}}
            record.is_unsaved = True
        else:
            self.changes_by_id.pop(query_id, None)
            record.unsaved = {}
            record.is_unsaved = False

    def _apply_create(self, query_id: str, record: QueryRecord, allowed: Dict[str, Any]) -> None:
        create = {"query_id": query_id, **record.unsaved.get("create", {}), **allowed}
        current = record.current.model_dump()
        for field in TRACKED_FIELDS:
            create.setdefault(field, current[field])
        self.changes_by_id[query_id] = {k: v for k, v in create.items() if k != "query_id"}
        record.unsaved = {"create": create}
        record.is_unsaved = True
