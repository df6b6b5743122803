from __future__ import annotations

from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class TaskRecord(BaseModel):
    """One action item, in the field names downstream sinks map from."""

    task: str = Field(..., min_length=1)
    original_line: str = ""
    assigned_to: str = "Unassigned"
    owner: str = "Unassigned"
    deadline: Optional[str] = Field(None, description="ISO date when the model gave one")
    timestamp: Optional[str] = None
    labels: List[str] = []
    task_id: str
    source: Literal["llm", "llm-raw"] = "llm"
    extracted_at: Optional[str] = None


class ExtractTasksRequest(BaseModel):
    transcript: Optional[str] = None
    text: Optional[str] = Field(default=None, description="Alias for transcript")
    dedupe: bool = Field(default=True, description="Drop tasks already surfaced in this session")

    def resolved_transcript(self) -> str:
        return self.transcript or self.text or ""


class ExtractTasksResponse(BaseModel):
    ok: bool
    status: Literal["ok", "empty", "failed"]
    tasks: List[TaskRecord] = []
    count: int = 0
    error: Optional[str] = None


class ResetTasksResponse(BaseModel):
    ok: bool = True
    cleared: int
