import time

from intellimeet.services.normalizer import clean_speaker, normalize_event, synthesize_utterance_id


def test_nested_words_payload_with_bracketed_speaker():
    payload = {
        "data": {
            "data": {
                "words": [{"text": "Hello"}, {"text": "team"}],
                "participant": {"name": "[0:01] Alice"},
                "is_final": True,
            }
        }
    }
    utt = normalize_event(payload)
    assert utt is not None
    assert utt.speaker == "Alice"
    assert utt.text == "Hello team"
    assert utt.is_final is True
    assert utt.utterance_id.startswith("auto-")


def test_flat_payload_uses_text_and_speaker_fields():
    utt = normalize_event({"text": "  ship it  ", "speaker": "Bob", "utterance_id": "u-9", "timestamp": 12.5})
    assert utt is not None
    assert (utt.utterance_id, utt.speaker, utt.text, utt.timestamp, utt.is_final) == ("u-9", "Bob", "ship it", 12.5, False)


def test_text_fallback_order_when_words_empty():
    utt = normalize_event({"words": [], "text": "", "transcript": "from transcript"})
    assert utt is not None
    assert utt.text == "from transcript"


def test_event_without_text_is_dropped():
    assert normalize_event({"data": {"data": {"words": [], "participant": {"name": "Alice"}}}}) is None
    assert normalize_event({"words": [{"text": "  "}]}) is None
    assert normalize_event("not a dict") is None
    assert normalize_event(None) is None


def test_speaker_priority_and_defaults():
    both = {"text": "hi", "participant": {"display_name": "Disp", "user_id": 42}, "speaker": "Flat"}
    assert normalize_event(both).speaker == "Disp"
    assert normalize_event({"text": "hi", "participant": {"user_id": 42}}).speaker == "42"
    assert normalize_event({"text": "hi", "user": {"name": "U"}, "owner": "O"}).speaker == "U"
    assert normalize_event({"text": "hi", "owner": "O"}).speaker == "O"
    assert normalize_event({"text": "hi", "speaker": "[00:03]  "}).speaker == "Unknown"
    assert normalize_event({"text": "hi"}).speaker == "Unknown"


def test_clean_speaker_strips_only_leading_tag():
    assert clean_speaker("[12:00] Harshini K ") == "Harshini K"
    assert clean_speaker("Dana [remote]") == "Dana [remote]"
    assert clean_speaker(None) == "Unknown"


def test_timestamp_priority():
    words_ts = {"words": [{"text": "a", "start_timestamp": {"relative": 3.25}}], "start_timestamp": {"relative": 9}}
    assert normalize_event(words_ts).timestamp == 3.25
    top_ts = {"words": [{"text": "a"}], "start_timestamp": {"relative": 9}}
    assert normalize_event(top_ts).timestamp == 9
    zero = {"words": [{"text": "a", "start_timestamp": {"relative": 0}}]}
    assert normalize_event(zero).timestamp == 0

    before = int(time.time() * 1000)
    wall = normalize_event({"text": "a"}).timestamp
    assert wall >= before


def test_is_final_coercion():
    assert normalize_event({"text": "a", "is_final": 1}).is_final is True
    assert normalize_event({"text": "a", "is_final": "true"}).is_final is True
    assert normalize_event({"text": "a", "is_final": "false"}).is_final is False
    assert normalize_event({"text": "a"}).is_final is False


def test_malformed_fields_degrade_to_defaults():
    payload = {
        "words": [{"text": "ok"}, 5, None, {"no_text": True}],
        "participant": "not-a-dict",
        "start_timestamp": "soon",
        "utterance_id": {"weird": 1},
    }
    utt = normalize_event(payload)
    assert utt is not None
    assert utt.text == "ok"
    assert utt.speaker == "Unknown"
    assert utt.utterance_id.startswith("auto-")


def test_synthesized_ids_do_not_collide():
    ids = {synthesize_utterance_id() for _ in range(10_000)}
    assert len(ids) == 10_000
