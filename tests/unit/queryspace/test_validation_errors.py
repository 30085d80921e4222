import pytest

from src.core.config import WorkspaceSettings
from src.queryspace.errors import (
    BackendRejectedError, ErrorKind, ErrorLog, InconsistentStateError, error_entry_from_exception,
)
from src.queryspace.validation import QueryValidator


@pytest.fixture
def validator():
    return QueryValidator(WorkspaceSettings())


def test_name_bounds(validator):
    assert validator.validate_name("Q1", "abc", "queries/updateName") == {}
    assert validator.validate_name("Q1", "x" * 64, "queries/updateName") == {}
    too_long = validator.validate_name("Q1", "x" * 65, "queries/updateName")
    assert "at most 64" in too_long["name"].message
    assert too_long["name"].schema_id == "queries/update-name"


def test_name_must_be_string(validator):
    invalid = validator.validate_name("Q1", 42, "queries/updateName")
    assert invalid["name"].field == "name"


def test_update_requires_a_field(validator):
    invalid = validator.validate_update("Q1", "queries/update")
    assert set(invalid) == {"name", "query_text"}


def test_update_reports_each_bad_field(validator):
    invalid = validator.validate_update("Q1", "queries/update", name="no", query_text="select 1")
    assert set(invalid) == {"name"}


def test_limits_follow_settings():
    validator = QueryValidator(WorkspaceSettings(name_min_length=1, name_max_length=4))
    assert validator.validate_name("Q1", "a", "x") == {}
    assert "name" in validator.validate_name("Q1", "abcde", "x")


def test_error_classification():
    rejected = error_entry_from_exception("queries/save", BackendRejectedError("name taken", {"name": "taken"}))
    assert rejected.kind == ErrorKind.BACKEND_REJECTED
    assert rejected.fields == {"name": "taken"}

    broken = error_entry_from_exception("queries/save", InconsistentStateError("no tab"))
    assert broken.kind == ErrorKind.INCONSISTENT_STATE

    network = error_entry_from_exception("queries/save", ConnectionError())
    assert network.kind == ErrorKind.NETWORK
    assert network.message == "ConnectionError"


def test_error_log_is_append_only():
    log = ErrorLog()
    first = log.report("tabs/open", RuntimeError("boom"))
    second = log.report("tree/move", RuntimeError("bang"))
    assert len(log) == 2
    assert log.last == second.id
    assert log.last_entry.message == "bang"
    assert log.by_id[first.id].action_type == "tabs/open"
    assert log.snapshot()["last"] == second.id
