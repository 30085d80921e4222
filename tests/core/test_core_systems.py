import pytest
from unittest.mock import MagicMock

from src.core.base_system import BaseSystem
from src.core.commands import CallbackCommand, CompositeCommand
from src.core.config import ConfigManager
from src.core.lifecycle import LifecycleError, LifecycleManager, SessionState
from src.core.locator import ServiceLocator


# --- Config Tests ---
def test_config_manager_defaults(tmp_path):
    config = ConfigManager(str(tmp_path / "config.json"))
    assert config.data.workspace.max_depth == 4
    assert config.data.workspace.saved_root_id == "queries"
    assert (tmp_path / "config.json").exists()


def test_config_reactivity(tmp_path):
    config = ConfigManager(str(tmp_path / "config.json"))
    observer = MagicMock()
    config.on_changed.connect(observer)

    config.update("workspace", "draft_debounce_ms", 300)

    assert config.data.workspace.draft_debounce_ms == 300
    observer.assert_called_once_with("workspace", "draft_debounce_ms", 300)
    assert ConfigManager(str(tmp_path / "config.json")).data.workspace.draft_debounce_ms == 300


def test_config_update_validates(tmp_path):
    config = ConfigManager(str(tmp_path / "config.json"))
    with pytest.raises(ValueError):
        config.update("workspace", "unknown_key", 1)
    with pytest.raises(ValueError):
        config.update("nope", "max_depth", 1)
    with pytest.raises(ValueError):
        config.update("workspace", "max_depth", 0)
    assert config.data.workspace.max_depth == 4


def test_config_reads_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('[workspace]\nmax_depth = 6\n\n[general]\ndebug_mode = false\n', encoding="utf-8")
    config = ConfigManager(str(path))
    assert config.data.workspace.max_depth == 6
    assert config.data.general.debug_mode is False


# --- Command Tests ---
def test_composite_command_rolls_back_on_failure():
    log = []

    def step(name):
        def apply():
            log.append(f"do {name}")
            return lambda: log.append(f"undo {name}")
        return CallbackCommand(apply, name)

    def failing():
        raise RuntimeError("boom")

    composite = CompositeCommand([step("a"), step("b"), CallbackCommand(failing, "c")], "Test")
    with pytest.raises(RuntimeError):
        composite.execute()

    assert log == ["do a", "do b", "undo b", "undo a"]


def test_callback_command_undo_runs_once():
    inverse = MagicMock()
    cmd = CallbackCommand(lambda: inverse, "step")
    cmd.execute()
    cmd.undo()
    cmd.undo()
    inverse.assert_called_once()


# --- Lifecycle Tests ---
def test_lifecycle_transitions():
    lifecycle = LifecycleManager()
    hook = MagicMock()
    lifecycle.register_hook(SessionState.STOPPED, hook)

    lifecycle.transition_to(SessionState.STARTED)
    assert lifecycle.is_started
    lifecycle.transition_to(SessionState.STOPPED)
    assert lifecycle.is_stopped
    hook.assert_called_once()

    with pytest.raises(LifecycleError):
        lifecycle.transition_to(SessionState.STARTED)


# --- Locator Tests ---
class _Recorder(BaseSystem):
    events = []

    async def initialize(self):
        self.events.append(("start", self.__class__.__name__))
        await super().initialize()

    async def shutdown(self):
        self.events.append(("stop", self.__class__.__name__))
        await super().shutdown()


class _Store(_Recorder):
    pass


class _View(_Recorder):
    depends_on = [_Store]


@pytest.mark.asyncio
async def test_locator_orders_start_and_stop(tmp_path):
    _Recorder.events = []
    locator = ServiceLocator(ConfigManager(str(tmp_path / "config.json")))
    view = locator.register_system(_View)
    locator.register_system(_Store)

    await locator.start_all()
    assert view.is_ready
    await locator.stop_all()

    assert _Recorder.events == [
        ("start", "_Store"), ("start", "_View"),
        ("stop", "_View"), ("stop", "_Store"),
    ]


def test_locators_are_independent(tmp_path):
    a = ServiceLocator(ConfigManager(str(tmp_path / "a.json")))
    b = ServiceLocator(ConfigManager(str(tmp_path / "b.json")))
    a.register_system(_Store)
    assert a.has_system(_Store)
    assert not b.has_system(_Store)
    with pytest.raises(KeyError):
        b.get_system(_Store)
