"""
Foundation Command System.

Provides compensating-action infrastructure:
- UndoableCommand: Commands with undo/redo support
- CallbackCommand: Apply-function returning its inverse
- CompositeCommand: All-or-nothing group of commands
"""
from .base import UndoableCommand
from .composite import CallbackCommand, CompositeCommand

__all__ = [
    "UndoableCommand",
    "CallbackCommand",
    "CompositeCommand",
]
