import pytest

from src.core.config import WorkspaceSettings
from src.queryspace.models import QueryFields
from src.queryspace.query_records import QueryRecordStore


@pytest.fixture
def store():
    return QueryRecordStore(WorkspaceSettings())


@pytest.fixture
def saved_store(store):
    store.set_from_backend(QueryFields(query_id="Q1", name="Revenue", query_text="select 1"))
    return store


def test_create_unsaved_builds_create_payload(store):
    store.create_unsaved("Q1", "Untitled")
    record = store.get("Q1")
    assert record.is_unsaved
    assert record.persisted == {}
    assert record.unsaved == {"create": {"query_id": "Q1", "name": "Untitled", "query_text": ""}}


def test_text_edit_on_unsaved_query_extends_create(store):
    store.create_unsaved("Q1", "Untitled")
    store.update_text("Q1", "select 1")
    record = store.get("Q1")
    assert record.unsaved["create"]["query_text"] == "select 1"
    assert store.save_payload("Q1") == ("create", {"name": "Untitled", "query_text": "select 1"})


def test_update_diff_against_persisted(saved_store):
    saved_store.update_name("Q1", "Revenue 2024")
    record = saved_store.get("Q1")
    assert record.is_unsaved
    assert record.unsaved == {"update": {"query_id": "Q1", "name": "Revenue 2024"}}
    assert saved_store.tracker.changes_by_id["Q1"] == {"name": "Revenue 2024"}


def test_reverting_to_persisted_clears_unsaved(saved_store):
    saved_store.update_name("Q1", "Revenue 2024")
    saved_store.update_name("Q1", "Revenue")
    record = saved_store.get("Q1")
    assert not record.is_unsaved
    assert record.unsaved == {}
    assert "Q1" not in saved_store.tracker.changes_by_id


def test_same_value_is_a_noop(saved_store):
    assert saved_store.update_text("Q1", "select 1") == {}
    assert not saved_store.get("Q1").is_unsaved


def test_invalid_name_is_reported_not_tracked(saved_store):
    invalid = saved_store.update_name("Q1", "ab")
    record = saved_store.get("Q1")
    assert "name" in invalid
    assert invalid["name"].action_type == "queries/updateName"
    assert "at least 3" in invalid["name"].message
    assert record.is_invalid
    assert record.current.name == "ab"
    assert not record.is_unsaved

    saved_store.update_name("Q1", "abc")
    record = saved_store.get("Q1")
    assert not record.is_invalid
    assert record.invalid == {}
    assert record.unsaved["update"]["name"] == "abc"


def test_text_length_limit():
    store = QueryRecordStore(WorkspaceSettings(query_text_max_length=5))
    store.create_unsaved("Q1", "Untitled")
    invalid = store.update_text("Q1", "select 1")
    assert "query_text" in invalid
    assert store.get("Q1").is_invalid


def test_combined_update(saved_store):
    invalid = saved_store.update("Q1", name="Costs", query_text="select 2")
    assert invalid == {}
    assert saved_store.get("Q1").unsaved["update"] == {
        "query_id": "Q1", "name": "Costs", "query_text": "select 2",
    }


def test_mark_saved_sets_persisted_and_clears(saved_store):
    saved_store.update_text("Q1", "select 2")
    saved_store.mark_saved("Q1")
    record = saved_store.get("Q1")
    assert record.persisted["query_text"] == "select 2"
    assert not record.is_unsaved
    assert "Q1" not in saved_store.tracker.changes_by_id


def test_mark_saved_keeps_edits_made_in_flight(saved_store):
    saved_store.update_text("Q1", "select 2")
    _, sent = saved_store.save_payload("Q1")
    saved_store.update_text("Q1", "select 3")
    saved_store.mark_saved("Q1", sent)
    record = saved_store.get("Q1")
    assert record.persisted["query_text"] == "select 2"
    assert record.unsaved == {"update": {"query_id": "Q1", "query_text": "select 3"}}


def test_mark_saved_undo_restores(saved_store):
    saved_store.update_text("Q1", "select 2")
    undo = saved_store.mark_saved("Q1")
    undo()
    record = saved_store.get("Q1")
    assert record.persisted["query_text"] == "select 1"
    assert record.is_unsaved
    assert saved_store.tracker.changes_by_id["Q1"] == {"query_text": "select 2"}


def test_discard_changes(saved_store):
    saved_store.update("Q1", name="Costs", query_text="select 2")
    saved_store.discard_changes("Q1")
    record = saved_store.get("Q1")
    assert record.current.name == "Revenue"
    assert record.current.query_text == "select 1"
    assert not record.is_unsaved


def test_remove_and_undo(saved_store):
    undo = saved_store.remove("Q1")
    assert "Q1" not in saved_store
    undo()
    assert saved_store.get("Q1").current.name == "Revenue"


def test_backend_reload_keeps_pending_edits(saved_store):
    saved_store.update_text("Q1", "select 2")
    saved_store.set_from_backend(QueryFields(query_id="Q1", name="Revenue (shared)", query_text="select 1"))
    record = saved_store.get("Q1")
    assert record.current.query_text == "select 2"
    assert record.persisted["name"] == "Revenue (shared)"
    assert record.unsaved == {"update": {"query_id": "Q1", "name": "Revenue", "query_text": "select 2"}}


def test_backend_reload_replaces_clean_record(saved_store):
    saved_store.set_from_backend(QueryFields(query_id="Q1", name="Renamed", query_text="select 3"))
    record = saved_store.get("Q1")
    assert record.current.name == "Renamed"
    assert not record.is_unsaved
