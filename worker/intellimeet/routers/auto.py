from __future__ import annotations

from typing import Optional, Dict, Any
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..state import State, get_state


class AutoConfigRequest(BaseModel):
    auto_extract: Optional[bool] = Field(default=None, description="Enable/disable live task extraction")
    auto_extract_every: Optional[int] = Field(default=None, ge=1, le=1000, description="Final utterances between auto runs")


router = APIRouter(tags=["auto-config"])


@router.get("/auto_config")
def v1_get_auto_config(state: State = Depends(get_state)) -> Dict[str, Any]:
    return {
        "ok": True,
        "auto_extract": state.auto_extract,
        "auto_extract_every": int(state.auto_extract_every),
        "auto_busy": state.auto_busy,
    }


@router.post("/auto_config")
def v1_set_auto_config(payload: AutoConfigRequest, state: State = Depends(get_state)) -> Dict[str, Any]:
    if payload.auto_extract is not None:
        state.auto_extract = bool(payload.auto_extract)
    if payload.auto_extract_every is not None:
        state.auto_extract_every = int(payload.auto_extract_every)
    return v1_get_auto_config(state)
