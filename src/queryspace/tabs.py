"""
Tab bar state.

Tracks the ordered tab list, the active tab, the keyboard-focused index
and the last active tab that holds an unsaved query. Every tab's
`position` is kept equal to its index in `tab_ids`.
"""
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from .models import Tab, Tabbar


class TabStore:
    def __init__(self):
        self.tab_ids: List[str] = []
        self.entities: Dict[str, Tab] = {}
        self.active_tab_id: Optional[str] = None
        self.focused_tab_index: Optional[int] = None
        self.last_active_unsaved_tab_id: Optional[str] = None

    # --- Lookups ---

    def get(self, tab_id: Optional[str]) -> Optional[Tab]:
        if tab_id is None:
            return None
        return self.entities.get(tab_id)

    def index_of(self, tab_id: str) -> Optional[int]:
        try:
            return self.tab_ids.index(tab_id)
        except ValueError:
            return None

    def tab_for_mount(self, mount_id: str) -> Optional[Tab]:
        for tab_id in self.tab_ids:
            tab = self.entities[tab_id]
            if tab.mount_id == mount_id:
                return tab
        return None

    def mount_for_tab(self, tab_id: Optional[str]) -> Optional[str]:
        tab = self.get(tab_id)
        return tab.mount_id if tab else None

    @property
    def active_mount_id(self) -> Optional[str]:
        return self.mount_for_tab(self.active_tab_id)

    def ordered(self) -> List[Tab]:
        return [self.entities[tab_id] for tab_id in self.tab_ids]

    def __len__(self) -> int:
        return len(self.tab_ids)

    # --- Mutations ---

    def seed(self, tabbar: Tabbar) -> None:
        """Replace the whole tab bar with a backend listing."""
        self.tab_ids = [tab_id for tab_id in tabbar.tab_ids if tab_id in tabbar.entities]
        self.entities = {tab_id: tabbar.entities[tab_id].model_copy() for tab_id in self.tab_ids}
        self._sync_positions()
        self.active_tab_id = tabbar.active_tab_id if tabbar.active_tab_id in self.entities else None
        if self.active_tab_id is not None:
            self.focused_tab_index = self.tab_ids.index(self.active_tab_id)
        elif tabbar.focused_tab_index is not None and self.tab_ids:
            self.focused_tab_index = min(max(tabbar.focused_tab_index, 0), len(self.tab_ids) - 1)
        else:
            self.focused_tab_index = None
        unsaved = tabbar.last_active_unsaved_tab_id
        self.last_active_unsaved_tab_id = unsaved if unsaved in self.entities else None

    def add_tab(self, tab: Tab) -> Callable[[], None]:
        """
        Append a tab and make it active. An already open tab is only activated.

        Returns:
            Function that restores the previous tab bar
        """
        previous = self._capture()
        if tab.tab_id not in self.entities:
            self.entities[tab.tab_id] = tab.model_copy()
            self.tab_ids.append(tab.tab_id)
            self._sync_positions()
        self.set_active(tab.tab_id)
        return lambda: self._restore(previous)

    def close_tab(self, tab_id: str) -> bool:
        """
        Remove a tab and choose the next active/focused tab.

        Closing the active tab activates the tab now at the closed index
        (or the new last tab). Closing another tab keeps the active one and
        shifts focus left when it pointed past the closed tab.
        """
        index = self.index_of(tab_id)
        if index is None:
            logger.warning(f"TabStore: close of unknown tab {tab_id} ignored")
            return False

        was_active = self.active_tab_id == tab_id
        self.tab_ids.pop(index)
        del self.entities[tab_id]
        self._sync_positions()
        if self.last_active_unsaved_tab_id == tab_id:
            self.last_active_unsaved_tab_id = None

        if not self.tab_ids:
            self.active_tab_id = None
            self.focused_tab_index = None
            return True

        if was_active:
            next_index = min(index, len(self.tab_ids) - 1)
            self.active_tab_id = self.tab_ids[next_index]
            self.focused_tab_index = next_index
        elif self.focused_tab_index is not None:
            if self.focused_tab_index > index:
                self.focused_tab_index -= 1
            self.focused_tab_index = min(self.focused_tab_index, len(self.tab_ids) - 1)
        return True

    def set_active(self, tab_id: str) -> bool:
        index = self.index_of(tab_id)
        if index is None:
            logger.warning(f"TabStore: cannot activate unknown tab {tab_id}")
            return False
        self.active_tab_id = tab_id
        self.focused_tab_index = index
        return True

    def focus_index(self, index: int) -> None:
        """Move keyboard focus; the index wraps around the tab count."""
        if not self.tab_ids:
            self.focused_tab_index = None
            return
        self.focused_tab_index = index % len(self.tab_ids)

    def reorder(self, new_order: List[str]) -> bool:
        """Apply a full new order; it must be a permutation of the open tabs."""
        if sorted(new_order) != sorted(self.tab_ids):
            logger.warning("TabStore: reorder ignored, order is not a permutation of open tabs")
            return False
        self.tab_ids = list(new_order)
        self._sync_positions()
        self._refocus_active()
        return True

    def move_tab(self, from_index: int, to_index: int) -> bool:
        count = len(self.tab_ids)
        if not (0 <= from_index < count and 0 <= to_index < count):
            logger.warning(f"TabStore: move {from_index}->{to_index} out of range ({count} tabs)")
            return False
        tab_id = self.tab_ids.pop(from_index)
        self.tab_ids.insert(to_index, tab_id)
        self._sync_positions()
        self._refocus_active()
        return True

    def set_last_active_unsaved(self, tab_id: Optional[str]) -> None:
        self.last_active_unsaved_tab_id = tab_id if tab_id in self.entities else None

    # --- Internals ---

    def _sync_positions(self) -> None:
        for index, tab_id in enumerate(self.tab_ids):
            self.entities[tab_id].position = index

    def _refocus_active(self) -> None:
        if self.active_tab_id is not None:
            self.focused_tab_index = self.tab_ids.index(self.active_tab_id)

    def _capture(self) -> Dict[str, Any]:
        return {
            "tab_ids": list(self.tab_ids),
            "entities": {k: v.model_copy() for k, v in self.entities.items()},
            "active_tab_id": self.active_tab_id,
            "focused_tab_index": self.focused_tab_index,
            "last_active_unsaved_tab_id": self.last_active_unsaved_tab_id,
        }

    def _restore(self, state: Dict[str, Any]) -> None:
        for key, value in state.items():
            setattr(self, key, value)

    def to_tabbar(self) -> Tabbar:
        return Tabbar(
            tab_ids=list(self.tab_ids),
            active_tab_id=self.active_tab_id,
            focused_tab_index=self.focused_tab_index,
            entities={k: v.model_copy() for k, v in self.entities.items()},
            last_active_unsaved_tab_id=self.last_active_unsaved_tab_id,
        )

    def snapshot(self) -> Dict[str, Any]:
        return self.to_tabbar().model_dump(mode="json")
