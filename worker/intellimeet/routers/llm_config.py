from __future__ import annotations

from typing import Dict, Any

from fastapi import APIRouter, Request

from ..config import Settings
from ..models.notes import LLMConfigRequest


router = APIRouter(tags=["llm-config"])


def _describe(settings: Settings) -> Dict[str, Any]:
    return {
        "ok": True,
        "endpoint": settings.llm_endpoint,
        "model": settings.llm_model,
        "timeout_s": float(settings.llm_timeout_s),
        "mom_timeout_s": float(settings.mom_timeout_s),
    }


@router.get("/llm_config")
def v1_get_llm_config(request: Request) -> Dict[str, Any]:
    return _describe(request.app.state.settings)


@router.post("/llm_config")
def v1_llm_config(payload: LLMConfigRequest, request: Request) -> Dict[str, Any]:
    settings: Settings = request.app.state.settings  # type: ignore[assignment]
    if payload.endpoint is not None and payload.endpoint.strip():
        settings.llm_endpoint = payload.endpoint.strip()
    if payload.model is not None and payload.model.strip():
        settings.llm_model = payload.model.strip()
    if payload.timeout_s is not None:
        settings.llm_timeout_s = float(payload.timeout_s)
    return _describe(settings)
