"""Recover task records from model output that is only mostly JSON.

Strategies run in order: fenced ```json block, whole-text parse, outermost
``[...]``, outermost ``{...}``. When nothing parses, the trimmed text itself
becomes a single ``llm-raw`` record so the output is not lost.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

Provenance = Literal["structured", "raw", "empty"]

_FENCE = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)\s*```")
_TASK_KEYS = ("task", "title", "action", "item", "description")


@dataclass
class ParsedArtifacts:
    records: List[Dict[str, Any]] = field(default_factory=list)
    provenance: Provenance = "empty"
    strategy: Optional[str] = None

    @property
    def is_raw(self) -> bool:
        return self.provenance == "raw"


def strip_fence(text: str) -> str:
    m = _FENCE.search(text)
    if m and m.group(1).strip():
        return m.group(1).strip()
    return text


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def _as_record(item: Any) -> Optional[Dict[str, Any]]:
    if isinstance(item, str):
        item = {"task": item}
    if not isinstance(item, dict):
        return None
    rec = dict(item)
    task = rec.get("task")
    if not isinstance(task, str) or not task.strip():
        # Models sometimes rename the field
        task = next(
            (rec[k] for k in _TASK_KEYS if isinstance(rec.get(k), str) and rec[k].strip()),
            None,
        )
    if task is None:
        return None
    rec["task"] = task.strip()
    rec["source"] = "llm"
    return rec


def _structured(items: List[Any], strategy: str) -> ParsedArtifacts:
    records = [r for r in (_as_record(i) for i in items) if r is not None]
    return ParsedArtifacts(records=records, provenance="structured", strategy=strategy)


def _slice(text: str, open_ch: str, close_ch: str) -> Optional[str]:
    start = text.find(open_ch)
    end = text.rfind(close_ch)
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def parse_artifacts(text: Optional[str]) -> ParsedArtifacts:
    if not text or not text.strip():
        return ParsedArtifacts()
    raw = text.strip()
    body = strip_fence(raw)

    parsed = _loads(body)
    if isinstance(parsed, list):
        return _structured(parsed, "direct")
    if isinstance(parsed, dict):
        # {"tasks": [...]} envelopes are unwrapped
        inner = parsed.get("tasks")
        if isinstance(inner, list) and "task" not in parsed:
            return _structured(inner, "direct")
        return _structured([parsed], "direct")

    frag = _slice(body, "[", "]")
    if frag is not None:
        parsed = _loads(frag)
        if isinstance(parsed, list):
            return _structured(parsed, "array-slice")

    frag = _slice(body, "{", "}")
    if frag is not None:
        parsed = _loads(frag)
        if isinstance(parsed, dict):
            return _structured([parsed], "object-slice")

    return ParsedArtifacts(
        records=[{
            "task": raw,
            "assigned_to": None,
            "deadline": None,
            "timestamp": None,
            "source": "llm-raw",
        }],
        provenance="raw",
        strategy="raw",
    )
