"""
Workspace sessions.

A session bundles one ConfigManager, one ServiceLocator and the
QueryWorkspace registered in it. Nothing is global: two sessions opened
side by side share no state.

Usage:
    session = await open_session(backend, "config.json")
    try:
        await session.workspace.create_unsaved_query()
    finally:
        await close_session(session)

    # or
    async with workspace_session(backend) as workspace:
        ...
"""
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional

from loguru import logger

from src.core.config import ConfigManager
from src.core.context import managed_locator
from src.core.lifecycle import LifecycleManager, SessionState
from src.core.locator import ServiceLocator
from src.core.logging import setup_logging_from_config
from .backend import QueryBackend
from .workspace import QueryWorkspace


@dataclass
class WorkspaceSession:
    config: ConfigManager
    locator: ServiceLocator
    workspace: QueryWorkspace
    lifecycle: LifecycleManager = field(default_factory=LifecycleManager)
    log_sinks: List[int] = field(default_factory=list)


def create_session(backend: QueryBackend, config_path: str = "config.json",
                   configure_logging: bool = False) -> WorkspaceSession:
    """Build a session without starting it."""
    config = ConfigManager(config_path)
    sinks = setup_logging_from_config(config) if configure_logging else []
    locator = ServiceLocator(config)
    workspace = locator.register_system(QueryWorkspace, backend)
    return WorkspaceSession(config=config, locator=locator, workspace=workspace, log_sinks=sinks)


async def open_session(backend: QueryBackend, config_path: str = "config.json",
                       configure_logging: bool = False) -> WorkspaceSession:
    """Build a session and start its systems (seeding tabs and the saved tree)."""
    session = create_session(backend, config_path, configure_logging)
    await session.locator.start_all()
    session.lifecycle.transition_to(SessionState.STARTED)
    return session


async def close_session(session: WorkspaceSession) -> None:
    if session.lifecycle.is_stopped:
        logger.debug("close_session: session already stopped")
        return
    await session.locator.stop_all()
    session.lifecycle.transition_to(SessionState.STOPPED)


@asynccontextmanager
async def workspace_session(backend: QueryBackend, config_path: str = "config.json",
                            configure_logging: bool = False) -> AsyncIterator[QueryWorkspace]:
    session = create_session(backend, config_path, configure_logging)
    async with managed_locator(session.locator, session.lifecycle):
        yield session.workspace


def get_workspace(locator: ServiceLocator) -> Optional[QueryWorkspace]:
    if not locator.has_system(QueryWorkspace):
        return None
    return locator.get_system(QueryWorkspace)
