from __future__ import annotations

from typing import Dict, Optional
from pydantic import BaseModel, Field


class NotesResponse(BaseModel):
    ok: bool = True
    notes: str


class MomRequest(BaseModel):
    transcript: str = ""


class MomResponse(BaseModel):
    ok: bool = True
    mom: str


class SpeakerStatsResponse(BaseModel):
    ok: bool = True
    total: int
    max_count: int
    counts: Dict[str, int]
    shares: Dict[str, float] = Field(default_factory=dict, description="Fraction of utterances per speaker")


class LLMConfigRequest(BaseModel):
    endpoint: Optional[str] = Field(default=None, description="Completion endpoint URL")
    model: Optional[str] = Field(default=None, description="Model identifier")
    timeout_s: Optional[float] = Field(default=None, ge=1.0, le=600.0)
