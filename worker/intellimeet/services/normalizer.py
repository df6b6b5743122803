"""Turn vendor transcription events into canonical Utterance records.

Upstream payloads arrive either nested (``{"data": {"data": {...}}}`` from the
meeting-bot webhook) or flat (socket messages). Every field is probed
defensively; a missing or malformed field degrades to its default and the only
way to get ``None`` back is an event with no usable text.
"""

from __future__ import annotations

import re
import time
import uuid
from typing import Any, Dict, List, Optional, Union

from ..models.utterance import Utterance


_TEXT_FIELDS = ("text", "transcript", "chunk")
_BRACKET_PREFIX = re.compile(r"^\[.*?\]\s*")
_TRUE_STRINGS = {"true", "1", "yes", "y", "final"}

Number = Union[int, float]


def _has_content(node: Dict[str, Any]) -> bool:
    if isinstance(node.get("words"), list):
        return True
    return any(isinstance(node.get(k), str) for k in _TEXT_FIELDS)


def _unwrap(payload: Dict[str, Any]) -> Dict[str, Any]:
    node = payload
    # Descend through nested "data" envelopes until something carries content
    for _ in range(8):
        if _has_content(node):
            break
        inner = node.get("data")
        if not isinstance(inner, dict):
            break
        node = inner
    return node


def _words_text(words: Any) -> str:
    if not isinstance(words, list):
        return ""
    parts: List[str] = []
    for w in words:
        if isinstance(w, dict):
            t = w.get("text")
        elif isinstance(w, str):
            t = w
        else:
            t = None
        if t is None:
            continue
        t = str(t).strip()
        if t:
            parts.append(t)
    return " ".join(parts).strip()


def extract_text(node: Dict[str, Any]) -> str:
    text = _words_text(node.get("words"))
    if text:
        return text
    for key in _TEXT_FIELDS:
        val = node.get(key)
        if isinstance(val, (str, int, float)) and not isinstance(val, bool):
            val = str(val).strip()
            if val:
                return val
    return ""


def clean_speaker(raw: Any) -> str:
    """Strip a leading ``[...]`` tag (e.g. ``[0:01] Alice``) and whitespace."""
    if raw is None:
        return "Unknown"
    return _BRACKET_PREFIX.sub("", str(raw)).strip() or "Unknown"


def extract_speaker(node: Dict[str, Any]) -> str:
    participant = node.get("participant")
    participant = participant if isinstance(participant, dict) else {}
    user = node.get("user")
    user = user if isinstance(user, dict) else {}
    candidates = (
        participant.get("name"),
        participant.get("display_name"),
        participant.get("user_id"),
        node.get("speaker"),
        user.get("name"),
        node.get("owner"),
    )
    for cand in candidates:
        if cand is None or isinstance(cand, (dict, list)):
            continue
        cleaned = clean_speaker(cand)
        if cleaned != "Unknown":
            return cleaned
    return "Unknown"


def _relative(ts: Any) -> Optional[Number]:
    if isinstance(ts, dict):
        ts = ts.get("relative")
    if isinstance(ts, bool):
        return None
    if isinstance(ts, (int, float)):
        return ts
    if isinstance(ts, str):
        try:
            return float(ts)
        except ValueError:
            return None
    return None


def extract_timestamp(node: Dict[str, Any]) -> Number:
    words = node.get("words")
    if isinstance(words, list) and words and isinstance(words[0], dict):
        ts = _relative(words[0].get("start_timestamp"))
        if ts is not None:
            return ts
    ts = _relative(node.get("start_timestamp"))
    if ts is not None:
        return ts
    ts = _relative(node.get("timestamp"))
    if ts is not None:
        return ts
    return int(time.time() * 1000)


def synthesize_utterance_id() -> str:
    return f"auto-{int(time.time() * 1000)}-{uuid.uuid4().hex}"


def extract_is_final(node: Dict[str, Any]) -> bool:
    val = node.get("is_final")
    if isinstance(val, str):
        return val.strip().lower() in _TRUE_STRINGS
    return bool(val)


def normalize_event(payload: Any) -> Optional[Utterance]:
    """Build an Utterance from one inbound event, or None when it has no text.

    Upstream ``utterance_id`` values are used verbatim. Without one a fresh id
    is synthesized, so repeated deliveries of the same logical utterance can
    only be merged when the upstream supplies its id.
    """
    if not isinstance(payload, dict):
        return None
    node = _unwrap(payload)
    text = extract_text(node)
    if not text:
        return None

    raw_id = node.get("utterance_id")
    if raw_id is None or isinstance(raw_id, (dict, list)) or not str(raw_id).strip():
        utterance_id = synthesize_utterance_id()
    else:
        utterance_id = str(raw_id).strip()

    return Utterance(
        utterance_id=utterance_id,
        speaker=extract_speaker(node),
        text=text,
        timestamp=extract_timestamp(node),
        is_final=extract_is_final(node),
    )
