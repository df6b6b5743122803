import asyncio
import json

from intellimeet.services.assembler import (
    StreamFold,
    assemble,
    assemble_body,
    assemble_lines,
    assemble_stream,
    clean_text,
)


async def _chunks(*parts):
    for p in parts:
        yield p


def test_stream_with_trailing_model_timestamp_stop_artifact():
    text = asyncio.run(assemble_stream(_chunks(
        '{"response":"Hello"}\n{"response":" world"}\ngemma:2b2024-01-01T00:00:00.000Zstop'
    )))
    assert text == "Hello world"


def test_stream_lines_split_across_chunks():
    text = asyncio.run(assemble_stream(_chunks(
        b'{"respo', b'nse":"Stand', b'up "}\n{"response":"notes"}', b"\n",
    )))
    assert text == "Standup notes"


def test_ollama_done_line_is_flattened_then_dropped():
    done = '{"model":"gemma:2b","created_at":"2025-11-15T14:44:25.5708784Z","response":"","done":true,"done_reason":"stop"}'
    text = asyncio.run(assemble_stream(_chunks('{"response":"Minutes"}\n', done + "\n")))
    assert text == "Minutes"


def test_unknown_json_fields_are_concatenated_inside_a_stream():
    fold = StreamFold()
    fold.feed('{"response":"foo"}\n{"a":"bar","b":1,"c":"baz"}\n')
    assert fold.finish() == "foobarbaz"


def test_pretty_printed_array_is_kept_verbatim():
    body = (
        "[\n"
        ' {"task": "Send the report", "assigned_to": "Alice"},\n'
        ' {"task": "Book the room", "assigned_to": "Bob"}\n'
        "]\n"
    )
    text = asyncio.run(assemble_stream(_chunks(body[:30], body[30:])))
    assert text == body.strip()
    assert [t["task"] for t in json.loads(text)] == ["Send the report", "Book the room"]


def test_empty_ollama_stream_gives_empty_text():
    done = '{"model":"gemma:2b","created_at":"2025-11-15T14:44:25.57Z","response":"","done":true,"done_reason":"stop"}'
    assert assemble_lines([done + "\n"]) == ""


def test_plain_text_stream_keeps_lines():
    text = asyncio.run(assemble_stream(_chunks("Topic: Launch\n", "Key Points:\n- ship\n", "stop")))
    assert text == "Topic: Launch\nKey Points:\n- ship"


def test_body_field_priority():
    assert assemble_body({"response": "r", "output": "o"}) == "r"
    assert assemble_body({"output": "o", "choices": [{"text": "c"}]}) == "o"
    assert assemble_body({"choices": [{"text": "one"}, {"message": {"content": "two"}}]}) == "one\ntwo"
    assert assemble_body({"id": 7, "result": "first string"}) == "first string"


def test_body_without_text_is_stringified():
    assert assemble_body({"done": True, "count": 2}) == '{\n "done": true,\n "count": 2\n}'


def test_body_string_and_bytes():
    assert assemble_body('{"response": "from json"}') == "from json"
    assert assemble_body(b"plain   text\n\n\n\nmore") == "plain text\n\nmore"
    assert assemble(['{"response":"a"}\n', '{"response":"b"}']) == "ab"


def test_clean_text_collapses_and_strips_artifacts():
    assert clean_text("a  \t b\n\n\n\nc\ngemma:2b") == "a b\n\nc"
    assert clean_text("Done.\n2024-05-01T10:00:00Z") == "Done."
    assert clean_text("All set gpt:4o2024-05-01T10:00:00.123Zstop") == "All set"
    assert clean_text("Due 2024-05-01") == "Due 2024-05-01"
    assert clean_text("Deadline:2024-05-01") == "Deadline:2024-05-01"


def test_clean_text_strips_standalone_trailing_tokens():
    assert clean_text("Minutes ready. stop") == "Minutes ready."
    assert clean_text("Minutes ready. gemma:2b") == "Minutes ready."
    assert clean_text("Minutes ready. 2025-11-15T14:44:25.57Z") == "Minutes ready."
    assert clean_text("Minutes ready.\nSTOP") == "Minutes ready."
    assert clean_text("Keep nonstop") == "Keep nonstop"


def test_empty_input_gives_empty_text():
    assert asyncio.run(assemble_stream(_chunks())) == ""
    assert assemble_body(None) == ""
    assert assemble_body({"response": "", "model": "gemma:2b"}) == ""
