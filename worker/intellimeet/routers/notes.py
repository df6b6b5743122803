from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from ..config import Settings
from ..models.notes import MomRequest, MomResponse, NotesResponse
from ..services.llm import LLMError, client_from_settings
from ..services.notes import generate_mom, take_notes
from ..state import State, get_state

router = APIRouter(tags=["notes"])


@router.get("/notes", response_model=NotesResponse)
def v1_notes(state: State = Depends(get_state)) -> NotesResponse:
    return NotesResponse(notes=take_notes(state.session.log.snapshot()))


@router.post("/generate-mom", response_model=MomResponse)
async def v1_generate_mom(payload: MomRequest, request: Request, state: State = Depends(get_state)) -> MomResponse:
    if not payload.transcript.strip():
        raise HTTPException(status_code=400, detail="Transcript is required to generate MoM.")
    settings: Settings = request.app.state.settings  # type: ignore[assignment]
    client = client_from_settings(settings, transport=state.llm_transport, timeout=settings.mom_timeout_s)
    try:
        mom = await generate_mom(client, payload.transcript)
    except LLMError as e:
        logging.getLogger("app.llm").warning("MoM generation failed: %s", e)
        raise HTTPException(status_code=502, detail="Failed to generate MoM. Please try again later.")
    return MomResponse(mom=mom)
