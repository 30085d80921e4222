"""
Reusable command implementations.

Provides:
- CallbackCommand: wraps an apply function that returns its own inverse
- CompositeCommand: group multiple commands as one all-or-nothing unit
"""
from typing import Callable, List, Optional

from loguru import logger

from .base import UndoableCommand


class CallbackCommand(UndoableCommand):
    """
    Command built from a function that applies a mutation and returns the
    function that reverts it.

    Example:
        cmd = CallbackCommand(lambda: tree.move(node_id, target), "Move node")
        cmd.execute()
        ...
        cmd.undo()
    """

    def __init__(self, apply: Callable[[], Callable[[], None]], description: str = ""):
        self._apply = apply
        self._inverse: Optional[Callable[[], None]] = None
        self._description = description

    @property
    def description(self) -> str:
        return self._description or super().description

    def execute(self) -> None:
        self._inverse = self._apply()

    def undo(self) -> None:
        if self._inverse is None:
            return
        inverse, self._inverse = self._inverse, None
        inverse()


class CompositeCommand(UndoableCommand):
    """
    Groups multiple commands as a single undoable unit.

    Execution is all-or-nothing: if a sub-command raises, the ones that
    already ran are undone in reverse order before the error propagates,
    so a caller never observes a partially applied composite.

    Example:
        composite = CompositeCommand([mark_saved, detach_unsaved, insert_saved], "Promote")
        composite.execute()
    """

    def __init__(self, commands: List[UndoableCommand],
                 description: str = "Composite Command"):
        self._commands = commands
        self._description = description
        self._executed: List[UndoableCommand] = []

    @property
    def description(self) -> str:
        return self._description

    def execute(self) -> None:
        self._executed = []
        try:
            for cmd in self._commands:
                cmd.execute()
                self._executed.append(cmd)
        except Exception as e:
            logger.error(f"{self._description}: step failed, rolling back {len(self._executed)} step(s): {e}")
            self.undo()
            raise

    def undo(self) -> None:
        """Undo executed sub-commands in reverse order."""
        for cmd in reversed(self._executed):
            cmd.undo()
        self._executed = []
