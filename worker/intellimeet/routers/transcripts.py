from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

import anyio
from fastapi import APIRouter, BackgroundTasks, Depends, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse

from ..config import Settings
from ..models.notes import SpeakerStatsResponse
from ..models.utterance import ClearTranscriptResponse, TranscriptSnapshotResponse, UtteranceListResponse
from ..services.bus import Subscription
from ..services.notes import speaker_stats
from ..services.pipeline import ingest_event
from ..state import State, get_state

router = APIRouter(tags=["transcripts"])
logger = logging.getLogger("app.transcript")


@router.post("/webhook/transcription")
async def v1_webhook_transcription(request: Request, background: BackgroundTasks, state: State = Depends(get_state)) -> Dict[str, Any]:
    # Acknowledge first; everything downstream runs after the response is sent
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("webhook body is not JSON; ignoring")
        return {"ok": True}
    settings: Settings = request.app.state.settings  # type: ignore[assignment]
    background.add_task(ingest_event, state, settings, payload)
    return {"ok": True}


@router.get("/transcript", response_model=TranscriptSnapshotResponse)
def v1_transcript(state: State = Depends(get_state)) -> TranscriptSnapshotResponse:
    log = state.session.log
    return TranscriptSnapshotResponse(text=log.snapshot(), entries=len(log))


@router.get("/transcript/utterances", response_model=UtteranceListResponse)
def v1_transcript_utterances(state: State = Depends(get_state)) -> UtteranceListResponse:
    return UtteranceListResponse(items=state.session.board.items())


@router.post("/transcript/clear", response_model=ClearTranscriptResponse)
def v1_transcript_clear(state: State = Depends(get_state)) -> ClearTranscriptResponse:
    entries, utterances = state.session.clear()
    state.bus.publish("clear", {})
    return ClearTranscriptResponse(cleared_entries=entries, cleared_utterances=utterances)


@router.get("/transcript/export.md", response_class=PlainTextResponse)
def v1_export_transcript_markdown(title: str = "Meeting transcript", state: State = Depends(get_state)) -> str:
    header_lines: List[str] = [f"# {title}", ""]
    lines: List[str] = []
    for e in state.session.log.entries():
        ts = "" if e.timestamp is None else str(e.timestamp)
        if e.speaker:
            lines.append(f"- **{e.speaker}** [{ts}] {e.text}")
        else:
            lines.append(f"- [{ts}] {e.text}")
    return "\n".join(header_lines + lines) + "\n"


@router.get("/transcript/export.txt", response_class=PlainTextResponse)
def v1_export_transcript_text(state: State = Depends(get_state)) -> str:
    text = state.session.log.speaker_text()
    return text + "\n" if text else ""


@router.get("/analytics/speakers", response_model=SpeakerStatsResponse)
def v1_speaker_analytics(state: State = Depends(get_state)) -> SpeakerStatsResponse:
    return SpeakerStatsResponse(**speaker_stats(state.session.board.speaker_counts()))


async def _forward(websocket: WebSocket, sub: Subscription) -> None:
    try:
        while True:
            message = await sub.get()
            await websocket.send_json(message)
    except WebSocketDisconnect:
        return


async def _receive(websocket: WebSocket, state: State, settings: Settings) -> None:
    while True:
        data = await websocket.receive_text()
        try:
            message = json.loads(data)
        except ValueError:
            await websocket.send_json({"type": "error", "detail": "Invalid JSON"})
            continue
        msg_type = message.get("type", "") if isinstance(message, dict) else ""
        if msg_type == "ping":
            await websocket.send_json({"type": "pong"})
        elif msg_type == "transcript":
            await ingest_event(state, settings, message)
        else:
            await websocket.send_json({"type": "error", "detail": f"Unknown message type: {msg_type}"})


@router.websocket("/ws")
async def v1_events_websocket(websocket: WebSocket) -> None:
    """Live fanout of ``transcript``, ``notes``, ``tasks`` and ``clear`` events.

    Sends ``{"event": ..., "data": ...}`` frames. Clients may send
    ``{"type": "ping"}`` or ``{"type": "transcript", ...}`` (ingested like a
    webhook event). Forwarding runs in a task group next to the receive loop,
    so it ends with the connection however the connection ends.
    """
    state: State = websocket.app.state.state
    settings: Settings = websocket.app.state.settings
    sub = state.bus.subscribe()
    await websocket.accept()
    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(_forward, websocket, sub)
            try:
                await _receive(websocket, state, settings)
            except WebSocketDisconnect as e:
                logger.info("websocket client disconnected (code=%s)", e.code)
            finally:
                tg.cancel_scope.cancel()
    finally:
        state.bus.unsubscribe(sub)
        if sub.dropped:
            logger.warning("websocket subscriber missed %s events", sub.dropped)
