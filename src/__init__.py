"""
QuerySpace - Query Workspace State Framework

Client-side state for a query editor: tabs, drafts, per-query change
tracking and the saved/unsaved query trees, kept consistent across
asynchronous backend calls.
"""

# Core systems
from src.core.base_system import BaseSystem
from src.core.locator import ServiceLocator
from src.core.config import (
    ConfigManager,
    AppConfig,
    GeneralSettings,
    WorkspaceSettings,
)
from src.core.events import Signal
from src.core.logging import setup_logging

# Workspace
from src.queryspace.workspace import QueryWorkspace
from src.queryspace.backend import QueryBackend
from src.queryspace.session import WorkspaceSession, open_session, close_session, workspace_session

__version__ = "0.1.0"

__all__ = [
    # Core
    "BaseSystem",
    "ServiceLocator",
    "ConfigManager",
    "AppConfig",
    "GeneralSettings",
    "WorkspaceSettings",
    "Signal",
    "setup_logging",

    # Workspace
    "QueryWorkspace",
    "QueryBackend",
    "WorkspaceSession",
    "open_session",
    "close_session",
    "workspace_session",
]
