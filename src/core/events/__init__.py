"""
Event System - Synchronous observer signals.

Provides:
- Signal: observer pattern for sync notifications (config changes,
  workspace state changes)

Usage:
    from src.core.events import Signal

    changed = Signal("StateChanged")
    changed.connect(on_changed)
    changed.emit(snapshot)
"""
from .observer import Signal


__all__ = ["Signal"]
