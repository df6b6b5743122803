import asyncio
import json

import httpx

from conftest import LLM_URL
from intellimeet.config import Settings
from intellimeet.services.pipeline import ingest_event, run_auto_extraction
from intellimeet.state import State


SETTINGS = Settings(llm_endpoint=LLM_URL, llm_model="gemma:2b", llm_timeout_s=5)
DECK_TASKS = [{"task": "Send the deck", "original_line": "I will send the deck", "assigned_to": "Unassigned"}]


def _state(handler, prompts):
    def _recording(request):
        prompts.append(json.loads(request.content)["prompt"])
        return handler(request)

    return State(llm_transport=httpx.MockTransport(_recording))


def _event(uid, text, speaker):
    return {"utterance_id": uid, "text": text, "speaker": speaker, "is_final": True, "timestamp": 1}


def _reply(tasks):
    return lambda request: httpx.Response(200, json={"response": json.dumps(tasks)})


def test_live_extraction_resolves_owner_from_speaker():
    prompts = []
    state = _state(_reply(DECK_TASKS), prompts)

    async def scenario():
        await ingest_event(state, SETTINGS, _event("u1", "I will send the deck", "Alice"))
        await ingest_event(state, SETTINGS, _event("u2", "Thanks", "Bob"))
        return await run_auto_extraction(state, SETTINGS)

    result = asyncio.run(scenario())
    assert "Known speakers: Alice, Bob" in prompts[0]
    assert "Alice: I will send the deck\nBob: Thanks" in prompts[0]
    assert [(t.task, t.owner, t.assigned_to) for t in result.tasks] == [("Send the deck", "Alice", "Unassigned")]


def test_unknown_speaker_is_not_offered_as_owner():
    prompts = []
    state = _state(_reply(DECK_TASKS), prompts)

    async def scenario():
        await ingest_event(state, SETTINGS, {"utterance_id": "u1", "text": "I will send the deck", "is_final": True})
        return await run_auto_extraction(state, SETTINGS)

    result = asyncio.run(scenario())
    assert "Known speakers: (none identified)" in prompts[0]
    assert result.tasks[0].owner == "Unassigned"


def test_auto_extraction_does_not_hold_up_ingest():
    prompts = []

    async def scenario():
        gate = asyncio.Event()

        async def slow_backend(request):
            await gate.wait()
            return _reply(DECK_TASKS)(request)

        state = _state(slow_backend, prompts)
        state.auto_extract = True
        state.auto_extract_every = 1
        sub = state.bus.subscribe()

        utt = await ingest_event(state, SETTINGS, _event("u1", "I will send the deck", "Alice"))
        assert utt is not None
        # ingest returned while the backend is still waiting
        assert len(state.background) == 1
        assert len(state.session.dedup) == 0

        gate.set()
        await asyncio.gather(*list(state.background))
        events = []
        while not sub.queue.empty():
            events.append(sub.queue.get_nowait())
        return state, events

    state, events = asyncio.run(scenario())
    assert [e["event"] for e in events] == ["transcript", "notes", "tasks"]
    assert events[-1]["data"]["tasks"][0]["owner"] == "Alice"
    assert state.background == set()
    assert state.auto_busy is False


def test_overlapping_auto_runs_are_skipped():
    state = State()
    state.auto_busy = True
    assert asyncio.run(run_auto_extraction(state, SETTINGS)) is None
