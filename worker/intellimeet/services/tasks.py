from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Literal, Optional

from ..models.tasks import TaskRecord
from .artifacts import parse_artifacts
from .dedup import Deduplicator
from .llm import LLMClient, LLMError, LLMRequestError

logger = logging.getLogger("app.tasks")

_TS = r"(\d{1,2}:\d{2}(?::\d{2})?)"
_TS_SPEAKER_MSG = re.compile(rf"^\s*\[?{_TS}\]?\s*[-–—]?\s*([^:]+?):\s*(.+)$")
_TS_DASH_SPEAKER_MSG = re.compile(rf"^\s*{_TS}\s*-\s*([^:]+?):\s*(.+)$")
_TS_MSG = re.compile(rf"^\s*\[?{_TS}\]?\s*[-–—]?\s*(.+)$")
_SPEAKER_MSG = re.compile(r"^\s*([^:]+?):\s*(.+)$")
_SPEAKER_DASH_MSG = re.compile(r"^\s*([A-Z][\w.'’ ]*?)\s+[-–—]\s+(.+)$")

_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")
_NO_VALUE = {"", "null", "none", "n/a", "na", "not set", "tbd", "unknown", "unassigned", "-"}


@dataclass
class ParsedLine:
    timestamp: Optional[str]
    speaker: Optional[str]
    message: str


def _speaker_ok(name: str) -> bool:
    name = name.strip()
    return 0 < len(name) <= 48 and len(name.split()) <= 5


def parse_line_with_speaker(line: str) -> ParsedLine:
    """Split ``[0:01] Alice: hi``, ``0:01 - Alice: hi``, ``Alice: hi`` style lines."""
    m = _TS_SPEAKER_MSG.match(line) or _TS_DASH_SPEAKER_MSG.match(line)
    if m and _speaker_ok(m.group(2)):
        return ParsedLine(m.group(1), m.group(2).strip(), m.group(3).strip())
    m = _TS_MSG.match(line)
    if m:
        return ParsedLine(m.group(1), None, m.group(2).strip())
    for pattern in (_SPEAKER_MSG, _SPEAKER_DASH_MSG):
        m = pattern.match(line)
        if m and _speaker_ok(m.group(1)):
            return ParsedLine(None, m.group(1).strip(), m.group(2).strip())
    return ParsedLine(None, None, line.strip())


def known_speakers(transcript: str) -> List[str]:
    seen: List[str] = []
    for line in transcript.splitlines():
        if not line.strip():
            continue
        sp = parse_line_with_speaker(line).speaker
        if sp and sp not in seen:
            seen.append(sp)
    return seen


def build_prompt(transcript: str, speakers: List[str], year: Optional[int] = None) -> str:
    year = year or datetime.now().year
    names = ", ".join(speakers) if speakers else "(none identified)"
    return (
        "You extract action items from meeting transcripts.\n"
        "Return ONLY a JSON array (no prose, no code fences). Each element is an object with keys:\n"
        '- "task": short description of the action to be done\n'
        '- "original_line": the transcript line the task comes from, copied verbatim\n'
        '- "assigned_to": the responsible person, using a known speaker name when possible, else "Unassigned"\n'
        '- "deadline": ISO date (YYYY-MM-DD) or null\n'
        '- "labels": array of short lowercase tags\n'
        "Requirements:\n"
        f"- Deadlines without an explicit year are in {year} unless the transcript says otherwise.\n"
        "- Do not invent tasks, owners or dates that are not in the transcript.\n"
        "- Return [] if there are no action items.\n\n"
        f"Known speakers: {names}\n\n"
        "Transcript:\n" + transcript.strip() + "\n"
    )


def request_bodies(model: str, prompt: str) -> List[Dict[str, Any]]:
    # Backends disagree on the field names; tried in order
    return [
        {"model": model, "prompt": prompt, "stream": False},
        {"model": model, "input": prompt, "stream": False},
        {"prompt": prompt, "stream": False},
    ]


@dataclass
class ExtractionResult:
    status: Literal["ok", "empty", "failed"]
    tasks: List[TaskRecord] = field(default_factory=list)
    error: Optional[str] = None
    raw_fallback: bool = False

    @property
    def ok(self) -> bool:
        return self.status != "failed"


def _clean_value(val: Any) -> Optional[str]:
    if val is None or isinstance(val, (dict, list)):
        return None
    s = str(val).strip()
    if s.lower() in _NO_VALUE:
        return None
    return s


def normalize_deadline(val: Any) -> Optional[str]:
    s = _clean_value(val)
    if s is None:
        return None
    m = _ISO_DATE.search(s)
    return m.group(0) if m else s


def _labels(val: Any) -> List[str]:
    if isinstance(val, str):
        val = val.split(",")
    if not isinstance(val, list):
        return []
    return [str(v).strip() for v in val if v is not None and str(v).strip()]


class TaskExtractionService:
    def __init__(
        self,
        client: LLMClient,
        max_tasks: int = 20,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.client = client
        self.max_tasks = max_tasks
        self.clock = clock

    async def _complete_first(self, prompt: str) -> str:
        last_err: Optional[Exception] = None
        for idx, body in enumerate(request_bodies(self.client.model, prompt)):
            try:
                text = await self.client.complete(body)
            except LLMRequestError as e:
                logger.warning("body shape %s rejected: %s", idx, e)
                last_err = e
                continue
            if text:
                return text
            logger.warning("body shape %s returned no text", idx)
            last_err = LLMError("empty completion")
        raise last_err or LLMError("no request body accepted")

    def _speaker_for(self, original_line: str, parsed_lines: List[ParsedLine]) -> ParsedLine:
        own = parse_line_with_speaker(original_line)
        if own.speaker:
            return own
        needle = own.message.lower()
        if needle:
            for pl in parsed_lines:
                if pl.speaker and (needle in pl.message.lower() or pl.message.lower() in needle):
                    return pl
        return own

    def enrich(self, records: List[Dict[str, Any]], transcript: str) -> List[TaskRecord]:
        parsed_lines = [parse_line_with_speaker(l) for l in transcript.splitlines() if l.strip()]
        extracted_at = self.clock().strftime("%Y-%m-%d %H:%M:%S")
        ids: set = set()
        out: List[TaskRecord] = []
        for rec in records[: self.max_tasks]:
            original_line = rec.get("original_line")
            original_line = original_line.strip() if isinstance(original_line, str) else ""
            line = self._speaker_for(original_line, parsed_lines) if original_line else ParsedLine(None, None, "")
            assigned = _clean_value(rec.get("assigned_to") or rec.get("owner"))
            owner = assigned or line.speaker or "Unassigned"

            task_id = f"task-{uuid.uuid4().hex[:12]}"
            while task_id in ids:
                task_id = f"task-{uuid.uuid4().hex[:12]}"
            ids.add(task_id)

            out.append(TaskRecord(
                task=rec["task"],
                original_line=original_line,
                assigned_to=assigned or "Unassigned",
                owner=owner,
                deadline=normalize_deadline(rec.get("deadline")),
                timestamp=_clean_value(rec.get("timestamp")) or line.timestamp,
                labels=_labels(rec.get("labels")),
                task_id=task_id,
                source=rec.get("source") if rec.get("source") in ("llm", "llm-raw") else "llm",
                extracted_at=extracted_at,
            ))
        return out

    async def extract(self, transcript: Optional[str], dedup: Optional[Deduplicator] = None) -> ExtractionResult:
        """Run one extraction; never raises, failures come back as ``status="failed"``."""
        if not transcript or not transcript.strip():
            return ExtractionResult(status="empty")

        prompt = build_prompt(transcript, known_speakers(transcript), year=self.clock().year)
        try:
            text = await asyncio.wait_for(self._complete_first(prompt), timeout=self.client.timeout)
        except asyncio.TimeoutError:
            logger.warning("task extraction timed out after %ss", self.client.timeout)
            return ExtractionResult(status="failed", error=f"timed out after {self.client.timeout:.0f}s")
        except LLMError as e:
            logger.warning("task extraction failed: %s", e)
            return ExtractionResult(status="failed", error=str(e))

        parsed = parse_artifacts(text)
        tasks = self.enrich(parsed.records, transcript)
        if dedup is not None:
            tasks = dedup.admit(tasks)
        logger.info(
            "extracted %s tasks (strategy=%s, provenance=%s)", len(tasks), parsed.strategy, parsed.provenance
        )
        return ExtractionResult(
            status="ok" if tasks else "empty",
            tasks=tasks,
            raw_fallback=parsed.is_raw,
        )
