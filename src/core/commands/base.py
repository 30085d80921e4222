"""
Compensating command interfaces.

Provides:
- UndoableCommand: an applied mutation that knows how to revert itself

Optimistic workspace mutations are expressed as commands so that the
caller holding the command can undo exactly that step when the backend
rejects the change.
"""
from abc import ABC, abstractmethod


class UndoableCommand(ABC):
    """
    Command that supports undo/redo operations.

    Example:
        class RelabelNodeCommand(UndoableCommand):
            def __init__(self, tree, node_id, new_label):
                self.tree = tree
                self.node_id = node_id
                self.new_label = new_label
                self.old_label = None

            def execute(self):
                self.old_label = self.tree.relabel(self.node_id, self.new_label)

            def undo(self):
                self.tree.relabel(self.node_id, self.old_label)
    """

    @property
    def description(self) -> str:
        """Human-readable description (default: class name)."""
        return self.__class__.__name__

    @abstractmethod
    def execute(self) -> None:
        """Apply the mutation. Called on first run and on redo."""
        pass

    @abstractmethod
    def undo(self) -> None:
        """
        Reverse the command.

        Must restore state to exactly what it was before execute().
        """
        pass

    def redo(self) -> None:
        self.execute()
