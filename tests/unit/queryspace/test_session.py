import pytest

from src.core.lifecycle import SessionState
from src.queryspace.session import close_session, get_workspace, open_session, workspace_session


@pytest.mark.asyncio
async def test_open_and_close_session(tmp_path, backend):
    session = await open_session(backend, str(tmp_path / "config.json"))
    assert session.lifecycle.state == SessionState.STARTED
    assert session.workspace.is_ready
    assert get_workspace(session.locator) is session.workspace
    backend.list_open_tabs.assert_awaited_once()

    await close_session(session)
    assert session.lifecycle.is_stopped
    assert not session.workspace.is_ready
    await close_session(session)


@pytest.mark.asyncio
async def test_sessions_share_no_state(tmp_path, backend):
    first = await open_session(backend, str(tmp_path / "a.json"))
    second = await open_session(backend, str(tmp_path / "b.json"))
    try:
        await first.workspace.create_unsaved_query()
        assert len(first.workspace.tabs) == 1
        assert len(second.workspace.tabs) == 0
        assert first.locator is not second.locator
    finally:
        await close_session(first)
        await close_session(second)


@pytest.mark.asyncio
async def test_workspace_session_context(tmp_path, backend):
    async with workspace_session(backend, str(tmp_path / "config.json")) as workspace:
        assert workspace.is_ready
    assert not workspace.is_ready
