from src.core.errors import (
    PersistenceFailure,
    QueryFailed,
    QueryTimeout,
    ReportingError,
    SnapshotUnreadable,
    SourceError,
    SourceUnavailable,
)


def test_hierarchy():
    for cls in (SourceUnavailable, QueryTimeout, QueryFailed):
        assert issubclass(cls, SourceError)
    for cls in (SnapshotUnreadable, PersistenceFailure):
        assert issubclass(cls, ReportingError)
        assert not issubclass(cls, SourceError)


def test_to_dict():
    cause = RuntimeError("socket closed")
    err = SourceUnavailable("fetch failed", source_name="PublishIn.Success", original_error=cause)
    data = err.to_dict()
    assert data["error_type"] == "SourceUnavailable"
    assert data["error"] == "fetch failed"
    assert data["source_name"] == "PublishIn.Success"
    assert data["original_error"] == "socket closed"
    assert data["context"] == {}


def test_str_includes_source_and_cause():
    err = SourceUnavailable("fetch failed", source_name="m", original_error=ValueError("x"))
    assert str(err) == "fetch failed [source=m] (caused by: x)"


def test_marker():
    assert QueryTimeout("no result", attempts=60).marker == "QueryTimeout: no result"


def test_query_failed_reason():
    err = QueryFailed("failed", reason="syntax error")
    assert err.reason == "syntax error"
