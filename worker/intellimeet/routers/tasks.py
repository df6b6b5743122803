from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from ..config import Settings
from ..models.tasks import ExtractTasksRequest, ExtractTasksResponse, ResetTasksResponse
from ..services.pipeline import extraction_service
from ..state import State, get_state

router = APIRouter(tags=["tasks"])
logger = logging.getLogger("app.tasks")


@router.post("/extract-tasks", response_model=ExtractTasksResponse)
async def v1_extract_tasks(payload: ExtractTasksRequest, request: Request, state: State = Depends(get_state)) -> ExtractTasksResponse:
    transcript = payload.resolved_transcript()
    logger.info("task extraction requested (%s chars)", len(transcript))
    settings: Settings = request.app.state.settings  # type: ignore[assignment]
    dedup = state.session.dedup if payload.dedupe else None
    result = await extraction_service(state, settings).extract(transcript, dedup=dedup)
    return ExtractTasksResponse(
        ok=result.ok,
        status=result.status,
        tasks=result.tasks,
        count=len(result.tasks),
        error=result.error,
    )


@router.post("/tasks/reset", response_model=ResetTasksResponse)
def v1_reset_tasks(state: State = Depends(get_state)) -> ResetTasksResponse:
    return ResetTasksResponse(cleared=state.session.dedup.clear())
