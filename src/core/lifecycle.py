"""
Session Lifecycle State Machine.

A workspace session is constructed once, started once and stopped once.
There is no transition back to CREATED: a stopped session is discarded
and a new one is opened instead.
"""
from enum import Enum
from typing import Callable, Dict, List
from loguru import logger


class SessionState(Enum):
    """Session lifecycle states."""
    CREATED = "created"
    STARTED = "started"
    STOPPED = "stopped"


class LifecycleError(Exception):
    """Exception raised for invalid lifecycle transitions."""
    pass


class LifecycleManager:
    """
    Manages session state transitions and hooks.

    Usage:
        lifecycle = LifecycleManager()
        lifecycle.register_hook(SessionState.STOPPED, on_stopped)
        lifecycle.transition_to(SessionState.STARTED)
    """

    VALID_TRANSITIONS = {
        SessionState.CREATED: [SessionState.STARTED, SessionState.STOPPED],
        SessionState.STARTED: [SessionState.STOPPED],
        SessionState.STOPPED: [],
    }

    def __init__(self):
        self._state = SessionState.CREATED
        self._hooks: Dict[SessionState, List[Callable]] = {s: [] for s in SessionState}

    @property
    def state(self) -> SessionState:
        return self._state

    def can_transition(self, target: SessionState) -> bool:
        return target in self.VALID_TRANSITIONS.get(self._state, [])

    def transition_to(self, target: SessionState) -> None:
        """
        Transition to target state and run its hooks.

        Raises:
            LifecycleError: If transition is invalid
        """
        if not self.can_transition(target):
            raise LifecycleError(
                f"Invalid transition: {self._state.value} -> {target.value}"
            )

        old_state = self._state
        self._state = target
        logger.info(f"Lifecycle: {old_state.value} -> {target.value}")

        for hook in self._hooks[target]:
            try:
                hook()
            except Exception as e:
                logger.error(f"Hook error for {target.value}: {e}")

    def register_hook(self, state: SessionState, hook: Callable) -> None:
        if hook not in self._hooks[state]:
            self._hooks[state].append(hook)

    @property
    def is_started(self) -> bool:
        return self._state == SessionState.STARTED

    @property
    def is_stopped(self) -> bool:
        return self._state == SessionState.STOPPED
