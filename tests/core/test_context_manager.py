import pytest
from unittest.mock import MagicMock

from src.core.base_system import BaseSystem
from src.core.context import managed_locator, managed_service
from src.core.lifecycle import LifecycleManager, SessionState
from src.core.locator import ServiceLocator


class ContextService(BaseSystem):
    def __init__(self, locator, config, label="ctx"):
        super().__init__(locator, config)
        self.label = label

    async def initialize(self):
        await super().initialize()

    async def shutdown(self):
        await super().shutdown()


@pytest.mark.asyncio
async def test_async_context_manager():
    service = ContextService(MagicMock(), MagicMock())

    assert not service.is_ready

    async with service as s:
        assert s is service
        assert service.is_ready

    assert not service.is_ready


@pytest.mark.asyncio
async def test_managed_service_registers_and_stops():
    locator = ServiceLocator(MagicMock())

    async with managed_service(locator, ContextService, "custom") as service:
        assert service.is_ready
        assert service.label == "custom"
        assert locator.get_system(ContextService) is service

    assert not service.is_ready


@pytest.mark.asyncio
async def test_managed_locator_drives_lifecycle():
    locator = ServiceLocator(MagicMock())
    service = locator.register_system(ContextService)
    lifecycle = LifecycleManager()

    async with managed_locator(locator, lifecycle):
        assert service.is_ready
        assert lifecycle.state == SessionState.STARTED

    assert not service.is_ready
    assert lifecycle.state == SessionState.STOPPED
