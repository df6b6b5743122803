import json
import logging

from intellimeet.logging import JsonFormatter, RequestContextFilter, _resolve_level, request_id_var


def _record(msg="hello %s", args=("team",)):
    return logging.LogRecord("app.transcript", logging.INFO, __file__, 1, msg, args, None)


def test_json_line_carries_request_and_utterance_context():
    record = _record()
    record.utterance_id = "u1"
    token = request_id_var.set("req-1")
    try:
        assert RequestContextFilter().filter(record) is True
    finally:
        request_id_var.reset(token)

    data = json.loads(JsonFormatter().format(record))
    assert data["message"] == "hello team"
    assert data["logger"] == "app.transcript"
    assert data["request_id"] == "req-1"
    assert data["utterance_id"] == "u1"
    assert "event" not in data


def test_record_outside_a_request_has_no_request_id():
    record = _record()
    RequestContextFilter().filter(record)
    assert "request_id" not in json.loads(JsonFormatter().format(record))


def test_log_level_from_env(monkeypatch):
    monkeypatch.setenv("WORKER_LOG_LEVEL", "debug")
    assert _resolve_level() == logging.DEBUG
    monkeypatch.setenv("WORKER_LOG_LEVEL", "30")
    assert _resolve_level() == logging.WARNING
    monkeypatch.setenv("WORKER_LOG_LEVEL", "chatty")
    assert _resolve_level() == logging.INFO
