"""
Context managers for session systems.

Provides async context managers for cleaner lifecycle handling in tests and scripts.
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Type, TypeVar
from loguru import logger

from .base_system import BaseSystem
from .lifecycle import LifecycleManager, SessionState
from .locator import ServiceLocator

T = TypeVar('T', bound=BaseSystem)


@asynccontextmanager
async def managed_service(locator: ServiceLocator, service_cls: Type[T], *args: Any) -> AsyncIterator[T]:
    """
    Async context manager for a single system.

    Registers the system if needed, initializes it on enter and shuts it
    down on exit.

    Example:
        async with managed_service(locator, QueryWorkspace, backend) as ws:
            await ws.create_unsaved_query()
    """
    if locator.has_system(service_cls):
        service = locator.get_system(service_cls)
    else:
        service = locator.register_system(service_cls, *args)

    if not service.is_ready:
        await service.initialize()
        logger.debug(f"managed_service: Initialized {service_cls.__name__}")

    try:
        yield service
    finally:
        if service.is_ready:
            await service.shutdown()
            logger.debug(f"managed_service: Shutdown {service_cls.__name__}")


@asynccontextmanager
async def managed_locator(locator: ServiceLocator,
                          lifecycle: LifecycleManager = None) -> AsyncIterator[ServiceLocator]:
    """
    Starts every registered system on enter and stops them on exit,
    driving `lifecycle` through STARTED and STOPPED when given.

    Example:
        async with managed_locator(locator):
            ...
    """
    await locator.start_all()
    if lifecycle is not None:
        lifecycle.transition_to(SessionState.STARTED)
    logger.info("managed_locator: All systems started")

    try:
        yield locator
    finally:
        await locator.stop_all()
        if lifecycle is not None and not lifecycle.is_stopped:
            lifecycle.transition_to(SessionState.STOPPED)
        logger.info("managed_locator: All systems stopped")
