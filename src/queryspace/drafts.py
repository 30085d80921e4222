"""Per-tab draft values that have not been merged into a saved query yet."""
from typing import Any, Dict, Optional

NAME_DRAFT = "name_draft"
TEXT_DRAFT = "text_draft"
DRAFT_FIELDS = (NAME_DRAFT, TEXT_DRAFT)


class DraftStore:
    """
    tab_id -> {draft field -> value}.

    A draft only exists while it differs from its baseline (the persisted
    value of the field); writing the baseline back removes it.
    """

    def __init__(self):
        self.drafts: Dict[str, Dict[str, Any]] = {}

    def set(self, tab_id: str, field: str, value: Any, baseline: Optional[Any] = None) -> None:
        if field not in DRAFT_FIELDS:
            raise ValueError(f"Unknown draft field: {field}")
        entry = self.drafts.setdefault(tab_id, {})
        if baseline is not None and value == baseline:
            entry.pop(field, None)
        else:
            entry[field] = value
        if not entry:
            del self.drafts[tab_id]

    def get(self, tab_id: str, field: Optional[str] = None) -> Any:
        entry = self.drafts.get(tab_id, {})
        if field is None:
            return dict(entry)
        return entry.get(field)

    def clear(self, tab_id: str) -> None:
        self.drafts.pop(tab_id, None)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {tab_id: dict(entry) for tab_id, entry in self.drafts.items()}
