from __future__ import annotations

import re
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .llm import LLMClient, LLMError


NOTE_KEYWORDS: Tuple[str, ...] = (
    # tasks
    "task", "action", "todo", "to-do", "follow up", "follow-up", "assign", "owner",
    "responsible", "deliver", "complete", "finish", "submit", "send", "prepare", "update",
    # priority
    "priority", "urgent", "important", "asap", "critical", "blocker", "risk", "issue",
    # deadlines
    "deadline", "due", "by tomorrow", "next week", "schedule", "milestone", "timeline",
    # decisions
    "decide", "decision", "agreed", "approve", "conclude", "resolve", "plan",
    # meeting
    "meeting", "agenda", "review", "discuss", "next step", "goal",
)

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


def _truncate_text(t: str, max_chars: int = 12000) -> str:
    if len(t) <= max_chars:
        return t
    return t[: max_chars - 1000] + "\n...[truncated]...\n" + t[-1000:]


def _join_sentences(sentences: List[str]) -> str:
    out: List[str] = []
    for s in sentences:
        out.append(s if s.endswith((".", "?", "!")) else s + ".")
    joined = " ".join(out)
    # Keep the source's own ending for the final sentence
    if sentences and not sentences[-1].endswith((".", "?", "!")):
        joined = joined[:-1]
    return joined


def take_notes(text: Optional[str], keywords: Tuple[str, ...] = NOTE_KEYWORDS) -> str:
    """Sentences of ``text`` that mention any note keyword, in order.

    Recall over precision: any case-insensitive substring hit keeps the
    sentence. Returns "" for blank input or when nothing matches.
    """
    if not text or not text.strip():
        return ""
    kws = [k.lower() for k in keywords]
    kept: List[str] = []
    for s in _SENTENCE_SPLIT.split(text.strip()):
        s = s.strip()
        if not s:
            continue
        low = s.lower()
        if any(k in low for k in kws):
            kept.append(s)
    if not kept:
        return ""
    return _join_sentences(kept)


def speaker_stats(counts: Dict[str, int]) -> Dict[str, object]:
    total = sum(counts.values())
    shares = {k: (v / total if total else 0.0) for k, v in counts.items()}
    return {
        "total": total,
        "max_count": max(counts.values(), default=0),
        "counts": dict(counts),
        "shares": shares,
    }


def build_mom_prompt(transcript: str, today: Optional[datetime] = None) -> str:
    today = today or datetime.now()
    return (
        "You convert raw meeting transcripts into clear, structured Minutes of Meeting (MoM).\n"
        "Requirements:\n"
        "- Preserve speaker names exactly as written in the transcript; never guess gender.\n"
        "- Use neutral phrasing: the speaker's name or \"they\", never gendered pronouns.\n"
        "- Plain text with these labeled sections: Date, Time (if present), Attendees, Topic (one line), "
        "Key Points (bullets), Decisions Made (bullets), Action Items (bullets, with assignee when known).\n"
        "- Be concise and factual; do not invent anything that is not in the transcript.\n"
        "- Keep timestamps such as [0:00] in parentheses next to the point they belong to.\n"
        f"- If the transcript gives no date, use {today.strftime('%Y-%m-%d')}.\n\n"
        "Transcript:\n" + _truncate_text(transcript.strip()) + "\n\n"
        "Produce only the MoM, no commentary."
    )


async def generate_mom(client: LLMClient, transcript: str) -> str:
    """Stream a minutes-of-meeting completion; raises LLMError when nothing usable comes back."""
    if not transcript or not transcript.strip():
        raise ValueError("Transcript is empty. Cannot generate MoM.")
    text = await client.complete({"model": client.model, "prompt": build_mom_prompt(transcript)})
    if not text:
        raise LLMError("Empty response from the completion backend")
    return text
