from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from ..config import Settings
from ..models.utterance import Utterance
from ..state import State
from .llm import client_from_settings
from .normalizer import normalize_event
from .notes import take_notes
from .tasks import ExtractionResult, TaskExtractionService

logger = logging.getLogger("app.transcript")


def extraction_service(state: State, settings: Settings) -> TaskExtractionService:
    client = client_from_settings(settings, transport=state.llm_transport)
    return TaskExtractionService(client, max_tasks=settings.max_tasks)


async def run_auto_extraction(state: State, settings: Settings) -> Optional[ExtractionResult]:
    if state.auto_busy:
        return None
    state.auto_busy = True
    try:
        result = await extraction_service(state, settings).extract(
            state.session.log.speaker_text(), dedup=state.session.dedup
        )
        if result.status == "failed":
            logger.warning("auto extraction failed: %s", result.error)
        elif result.tasks:
            state.bus.publish("tasks", {"tasks": [t.dict() for t in result.tasks]})
        return result
    finally:
        state.auto_busy = False


async def _auto_extraction_logged(state: State, settings: Settings) -> None:
    try:
        await run_auto_extraction(state, settings)
    except Exception:
        logger.exception("auto extraction crashed")


def schedule_auto_extraction(state: State, settings: Settings) -> "asyncio.Task[None]":
    """Run auto-extraction off the ingest path; the task is tracked on ``state``."""
    task = asyncio.create_task(_auto_extraction_logged(state, settings))
    state.background.add(task)
    task.add_done_callback(state.background.discard)
    return task


async def ingest_event(state: State, settings: Settings, payload: Any) -> Optional[Utterance]:
    """Normalize one inbound event and push it through the live pipeline.

    Runs after the webhook has been acknowledged, so nothing here may raise:
    every failure is logged and the event is dropped or partially applied.
    """
    try:
        utt = normalize_event(payload)
    except Exception:
        logger.exception("transcript event could not be normalized")
        return None
    if utt is None:
        event = payload.get("event") if isinstance(payload, dict) else None
        logger.info("transcript event without words/text ignored", extra={"event": event})
        return None

    session = state.session
    session.board.upsert(utt)
    state.bus.publish("transcript", utt.dict())

    if not utt.is_final:
        return utt
    if not session.commit_final(utt.utterance_id, utt.text, utt.speaker, utt.timestamp):
        logger.info("utterance already committed; not appending again", extra={"utterance_id": utt.utterance_id})
        return utt

    try:
        notes = take_notes(session.log.snapshot())
        if notes:
            state.bus.publish("notes", {"notes": notes})
    except Exception:
        logger.exception("notes generation failed", extra={"utterance_id": utt.utterance_id})

    if state.auto_extract and session.final_count % max(1, state.auto_extract_every) == 0:
        logger.info(
            "scheduling auto extraction after %s final utterances",
            session.final_count,
            extra={"utterance_id": utt.utterance_id},
        )
        schedule_auto_extraction(state, settings)
    return utt
