import asyncio

from intellimeet.models.tasks import TaskRecord
from intellimeet.models.utterance import Utterance
from intellimeet.services.bus import EventBus
from intellimeet.services.dedup import Deduplicator, task_signature
from intellimeet.services.transcript_log import TranscriptLog, UtteranceBoard
from intellimeet.state import MeetingSession


def _task(text, tid="t"):
    return TaskRecord(task=text, task_id=tid)


def test_dedup_ignores_case_and_surrounding_whitespace():
    dedup = Deduplicator()
    admitted = dedup.admit([_task("Send the report", "a"), _task("  send THE report ", "b")])
    assert [t.task_id for t in admitted] == ["a"]
    assert dedup.has("SEND the report")
    assert "send the report" in dedup
    assert len(dedup) == 1


def test_dedup_persists_across_batches_until_cleared():
    dedup = Deduplicator()
    assert dedup.add("Book venue") is True
    assert dedup.add("book venue") is False
    assert dedup.clear() == 1
    assert dedup.add("Book venue") is True
    assert task_signature("  MiXeD ") == "mixed"


def test_transcript_log_append_snapshot_clear():
    log = TranscriptLog()
    assert log.snapshot() == ""
    log.append("first", "Alice", 1.0)
    log.append("second")
    assert log.snapshot() == "first\nsecond"
    assert [e.speaker for e in log.entries()] == ["Alice", None]
    assert log.clear() == 2
    assert len(log) == 0


def test_board_updates_in_place():
    board = UtteranceBoard()
    assert board.upsert(Utterance(utterance_id="u1", text="hel", timestamp=1, speaker="A"))
    assert board.upsert(Utterance(utterance_id="u2", text="other", timestamp=2, speaker="B"))
    assert not board.upsert(Utterance(utterance_id="u1", text="hello", timestamp=1, speaker="A", is_final=True))
    items = board.items()
    assert [u.utterance_id for u in items] == ["u1", "u2"]
    assert items[0].text == "hello" and items[0].is_final
    assert board.speaker_counts() == {"A": 1, "B": 1}


def test_session_commits_each_utterance_once():
    session = MeetingSession()
    assert session.commit_final("u1", "Ship it", "Alice", 3)
    assert not session.commit_final("u1", "Ship it", "Alice", 3)
    assert session.log.snapshot() == "Ship it"
    assert session.final_count == 1
    session.board.upsert(Utterance(utterance_id="u1", text="Ship it", timestamp=3))
    assert session.clear() == (1, 1)
    assert session.commit_final("u1", "Ship it again", "Alice", 4)


def test_bus_fans_out_and_drops_when_full():
    async def scenario():
        bus = EventBus(queue_size=1)
        a = bus.subscribe()
        b = bus.subscribe()
        assert bus.publish("transcript", {"n": 1}) == 2
        await a.get()
        # b still holds the first event, so the second is dropped for b only
        assert bus.publish("transcript", {"n": 2}) == 1
        assert b.dropped == 1
        got_a = await a.get()
        got_b = await b.get()
        bus.unsubscribe(a)
        bus.unsubscribe(b)
        late = bus.subscribe()
        return got_a, got_b, late.queue.empty(), bus.subscriber_count

    got_a, got_b, late_empty, count = asyncio.run(scenario())
    assert got_a == {"event": "transcript", "data": {"n": 2}}
    assert got_b == {"event": "transcript", "data": {"n": 1}}
    assert late_empty
    assert count == 1


def test_transcript_log_speaker_text():
    log = TranscriptLog()
    log.append("I will send the deck", "Alice", 1.0)
    log.append("no speaker here")
    log.append("who said this", "Unknown")
    assert log.speaker_text() == "Alice: I will send the deck\nno speaker here\nwho said this"
    assert TranscriptLog().speaker_text() == ""
