from __future__ import annotations

from typing import List, Optional, Union
from pydantic import BaseModel, Field


class Utterance(BaseModel):
    utterance_id: str
    speaker: str = "Unknown"
    text: str
    timestamp: Union[int, float] = Field(..., description="Relative seconds or epoch ms")
    is_final: bool = False


class TranscriptEntry(BaseModel):
    text: str
    speaker: Optional[str] = None
    timestamp: Optional[Union[int, float]] = None


class TranscriptSnapshotResponse(BaseModel):
    ok: bool = True
    text: str
    entries: int


class UtteranceListResponse(BaseModel):
    ok: bool = True
    items: List[Utterance]


class ClearTranscriptResponse(BaseModel):
    ok: bool = True
    cleared_entries: int
    cleared_utterances: int
