"""
QuerySpace Core - Session Infrastructure.

Provides core systems for building a workspace session:
- ServiceLocator: Per-session system registry with ordered start/stop
- BaseSystem: Abstract base for all systems
- ConfigManager: Configuration with persistence and change signal
- Signal: Synchronous observer
- CompositeCommand: All-or-nothing compensating commands
- LifecycleManager: Session state machine

Usage:
    from src.core import ConfigManager, ServiceLocator

    config = ConfigManager("config.json")
    locator = ServiceLocator(config)
    locator.register_system(MyService)
    await locator.start_all()
"""
from .base_system import BaseSystem
from .locator import ServiceLocator
from .config import (
    ConfigManager,
    AppConfig,
    GeneralSettings,
    WorkspaceSettings,
)
from .lifecycle import LifecycleManager, SessionState, LifecycleError
from .events import Signal
from .commands import (
    UndoableCommand,
    CallbackCommand,
    CompositeCommand,
)

__all__ = [
    # Core infrastructure
    "BaseSystem",
    "ServiceLocator",

    # Configuration
    "ConfigManager",
    "AppConfig",
    "GeneralSettings",
    "WorkspaceSettings",

    # Lifecycle
    "LifecycleManager",
    "SessionState",
    "LifecycleError",

    # Events
    "Signal",

    # Commands
    "UndoableCommand",
    "CallbackCommand",
    "CompositeCommand",
]
