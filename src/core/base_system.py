from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar, List, Type
from loguru import logger

if TYPE_CHECKING:
    from .locator import ServiceLocator
    from .config import ConfigManager

class BaseSystem(ABC):
    """
    Abstract Base Class for all session systems (workspace, schedulers, ...).
    Ensures consistent initialization and access to the session's Locator and Config.

    Systems are constructed by an explicit ServiceLocator; there is no
    global instance. Dependencies are declared with `depends_on`:

        class RefreshService(BaseSystem):
            depends_on = [QueryWorkspace]
    """
    depends_on: ClassVar[List[Type["BaseSystem"]]] = []

    def __init__(self, locator: 'ServiceLocator', config: 'ConfigManager'):
        self.locator = locator
        self.config = config
        self._is_ready = False

    @abstractmethod
    async def initialize(self):
        """
        Async initialization logic (e.g. seeding state from the backend).
        Called by the ServiceLocator during session start.
        """
        self._is_ready = True
        logger.debug(f"{self.__class__.__name__} ready")

    @abstractmethod
    async def shutdown(self):
        """
        Cleanup logic (e.g. cancelling pending timers).
        """
        self._is_ready = False

    @property
    def is_ready(self) -> bool:
        return self._is_ready

    async def __aenter__(self):
        """Async context manager entry: Initialize system."""
        if not self._is_ready:
            await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit: Shutdown system."""
        if self._is_ready:
            await self.shutdown()
