import io
import json
import uuid

import pytest

from orderdesk.logger import Logger, current_request_id, get_logger, intercept


def read_lines(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def test_info_writes_message_and_fields():
    stream = io.StringIO()
    Logger(stream=stream).info("hello", item="book", quantity=2)
    [entry] = read_lines(stream)
    assert entry["msg"] == "hello"
    assert entry["item"] == "book"
    assert entry["quantity"] == 2
    assert entry["level"] == "info"
    assert "request_id" not in entry


def test_error_serialises_exception():
    stream = io.StringIO()
    Logger(stream=stream).error("CreateOrder failed", error=ValueError("boom"))
    [entry] = read_lines(stream)
    assert entry["msg"] == "CreateOrder failed"
    assert entry["error"] == "boom"
    assert entry["level"] == "error"


def test_fatal_logs_and_exits():
    stream = io.StringIO()
    with pytest.raises(SystemExit) as exc:
        Logger(stream=stream).fatal("Failed to listen")
    assert exc.value.code == 1
    [entry] = read_lines(stream)
    assert entry["msg"] == "Failed to listen"
    assert entry["level"] == "fatal"


def test_get_logger_returns_shared_logger_writing_to_stderr(capsys):
    first = get_logger()
    second = get_logger()
    assert first is second
    first.info("ping", count=1)
    logged = [json.loads(line) for line in capsys.readouterr().err.splitlines()]
    pings = [entry for entry in logged if entry["msg"] == "ping"]
    assert len(pings) == 1
    assert pings[0]["count"] == 1
    assert pings[0]["level"] == "info"


def test_no_request_id_outside_intercept():
    assert current_request_id() is None


def test_intercept_sets_request_id_and_logs(capsys):
    stream = io.StringIO()
    inner = Logger(stream=stream)
    seen = []

    def handler(request):
        seen.append(current_request_id())
        inner.info("inside")
        return request * 2

    result = intercept("/orders.OrderService/GetOrder", handler, 21)
    assert result == 42
    [request_id] = seen
    assert str(uuid.UUID(request_id)) == request_id
    assert current_request_id() is None

    logged = [json.loads(line) for line in capsys.readouterr().err.splitlines()]
    request_lines = [entry for entry in logged if entry["msg"] == "request"]
    assert len(request_lines) == 1
    assert request_lines[0]["method"] == "/orders.OrderService/GetOrder"
    assert request_lines[0]["request_id"] == request_id

    [inner_entry] = read_lines(stream)
    assert inner_entry["request_id"] == request_id


def test_intercept_uses_fresh_id_per_call():
    ids = [intercept("m", lambda _: current_request_id(), None) for _ in range(3)]
    assert len(set(ids)) == 3


def test_intercept_resets_id_on_error():
    def handler(request):
        raise KeyError(request)

    with pytest.raises(KeyError):
        intercept("m", handler, "x")
    assert current_request_id() is None