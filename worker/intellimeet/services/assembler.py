"""Assemble completion text from whatever shape the backend answered with.

The backend may reply with one JSON body, a newline-delimited stream of JSON
fragments, or plain text. Streams are folded line by line as chunks arrive
(``StreamFold``); bodies go through the same field priority
(``response`` -> ``output`` -> ``choices[].text`` -> first string field).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, Dict, Iterable, List, Union


_ISO_TS = r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?Z"
_MODEL_TAG = r"[A-Za-z][A-Za-z0-9_\-./]*:[A-Za-z0-9_\-.]*?[A-Za-z][A-Za-z0-9_\-.]*?"
# "gemma:2b2024-01-01T00:00:00.000Zstop", "stop", "gemma:2b", a bare timestamp
_ARTIFACT = re.compile(
    rf"(?:{_MODEL_TAG})?\s*(?:{_ISO_TS})?\s*(?:stop)?",
    re.IGNORECASE,
)

# Whole trailing tokens, tried in order: "gemma:2b2024-...Zstop", "stop",
# "gemma:2b", a leftover timestamp. Each must start the text or follow whitespace.
_TRAILING = tuple(
    re.compile(rf"(?:^|\s+){p}\s*$", re.IGNORECASE)
    for p in (rf"{_MODEL_TAG}\s*{_ISO_TS}\s*stop", r"stop", _MODEL_TAG, _ISO_TS)
)

_SPACES = re.compile(r"[ \t]{2,}")
_NEWLINES = re.compile(r"\n{3,}")

Chunk = Union[str, bytes]


def _is_artifact(text: str) -> bool:
    t = text.strip()
    return bool(t) and _ARTIFACT.fullmatch(t) is not None


def _join_parts(parts: Iterable[Any], sep: str = "") -> str:
    out: List[str] = []
    for p in parts:
        if isinstance(p, str):
            out.append(p)
        elif isinstance(p, dict):
            for key in ("content", "text"):
                val = p.get(key)
                if isinstance(val, str):
                    out.append(val)
                    break
                if isinstance(val, dict) and isinstance(val.get("content"), str):
                    out.append(val["content"])
                    break
    return sep.join(out)


def _choice_text(choice: Any) -> str:
    if isinstance(choice, str):
        return choice
    if not isinstance(choice, dict):
        return ""
    if isinstance(choice.get("text"), str):
        return choice["text"]
    for key in ("message", "delta"):
        inner = choice.get(key)
        if isinstance(inner, str):
            return inner
        if isinstance(inner, dict) and isinstance(inner.get("content"), str):
            return inner["content"]
    return ""


def known_field_text(obj: Any) -> str:
    """Text from a recognized completion field, or "" if none carries any."""
    if isinstance(obj, str):
        return obj
    if not isinstance(obj, dict):
        return ""
    resp = obj.get("response")
    if isinstance(resp, str) and resp:
        return resp
    output = obj.get("output")
    if isinstance(output, str) and output:
        return output
    if isinstance(output, list):
        txt = _join_parts(output)
        if txt:
            return txt
    choices = obj.get("choices")
    if isinstance(choices, list):
        txt = "\n".join(t for t in (_choice_text(c) for c in choices) if t)
        if txt:
            return txt
    for key in ("text", "content", "data"):
        val = obj.get(key)
        if isinstance(val, str) and val:
            return val
    return ""


def flat_string_fields(obj: Dict[str, Any]) -> str:
    return "".join(v for v in obj.values() if isinstance(v, str))


def first_string_field(obj: Any) -> str:
    if isinstance(obj, dict):
        for v in obj.values():
            if isinstance(v, str) and v.strip():
                return v
        for v in obj.values():
            found = first_string_field(v)
            if found:
                return found
    elif isinstance(obj, list):
        for v in obj:
            found = first_string_field(v)
            if found:
                return found
    return ""


@dataclass
class StreamFold:
    """Incremental NDJSON/plain-text accumulator.

    ``feed`` takes raw chunks in arrival order; ``finish`` flushes the
    trailing partial line and returns the cleaned text. Pieces are kept
    separately so trailing stream artifacts can be dropped whole.

    A reply is only treated as a stream once some line carries a known
    completion field (``known_lines``). Until then the raw text is kept as
    well, and a reply with no such line comes back verbatim, so a
    pretty-printed JSON array is never flattened line by line.
    """

    pieces: List[str] = field(default_factory=list)
    raw: List[str] = field(default_factory=list)
    buffer: str = ""
    encoding: str = "utf-8"
    known_lines: int = 0
    raw_lines: int = 0

    def feed(self, chunk: Chunk) -> "StreamFold":
        if isinstance(chunk, (bytes, bytearray)):
            chunk = bytes(chunk).decode(self.encoding, errors="replace")
        if not self.known_lines:
            self.raw.append(chunk)
        self.buffer += chunk
        lines = re.split(r"\r?\n", self.buffer)
        self.buffer = lines.pop()
        for line in lines:
            self._take_line(line, last=False)
        return self

    def _mark_stream(self) -> None:
        self.known_lines += 1
        self.raw = []

    def _take_line(self, line: str, last: bool) -> None:
        stripped = line.strip()
        if not stripped:
            # Paragraph breaks only matter in plain-text replies
            if self.raw_lines and not last:
                self.pieces.append("\n")
            return
        try:
            parsed = json.loads(stripped)
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            txt = known_field_text(parsed)
            if txt or isinstance(parsed.get("response"), str):
                self._mark_stream()
            if not txt:
                txt = flat_string_fields(parsed)
            if txt:
                self.pieces.append(txt)
            return
        if isinstance(parsed, str):
            self._mark_stream()
            self.pieces.append(parsed)
            return
        self.raw_lines += 1
        self.pieces.append(line if last else line + "\n")

    def finish(self) -> str:
        if self.buffer:
            self._take_line(self.buffer, last=True)
            self.buffer = ""
        if not self.known_lines:
            return clean_text("".join(self.raw))
        return clean_text(self.pieces)


def clean_text(pieces: Union[str, List[str]]) -> str:
    """Collapse whitespace, drop trailing stream artifacts, trim."""
    if isinstance(pieces, str):
        pieces = [pieces]
    pieces = list(pieces)
    while pieces and (_is_artifact(pieces[-1]) or not pieces[-1].strip()):
        pieces.pop()
    text = "".join(pieces)
    text = _SPACES.sub(" ", text)
    text = _NEWLINES.sub("\n\n", text)
    text = text.rstrip()
    lines = text.split("\n")
    while lines and (_is_artifact(lines[-1]) or not lines[-1].strip()):
        lines.pop()
    text = "\n".join(lines)
    for pattern in _TRAILING:
        text = pattern.sub("", text)
    return text.strip()


async def assemble_stream(chunks: AsyncIterable[Chunk]) -> str:
    fold = StreamFold()
    async for chunk in chunks:
        fold.feed(chunk)
    return fold.finish()


def assemble_lines(chunks: Iterable[Chunk]) -> str:
    fold = StreamFold()
    for chunk in chunks:
        fold.feed(chunk)
    return fold.finish()


def assemble_body(body: Any) -> str:
    """Text from a non-streamed response body (parsed JSON or a string)."""
    if body is None:
        return ""
    if isinstance(body, (bytes, bytearray)):
        body = bytes(body).decode("utf-8", errors="replace")
    if isinstance(body, str):
        try:
            parsed = json.loads(body)
        except ValueError:
            # NDJSON bodies read in one go still fold per line
            return assemble_lines([body])
        if isinstance(parsed, (dict, list)):
            return assemble_body(parsed)
        return clean_text(str(parsed))
    txt = known_field_text(body) or first_string_field(body)
    if not txt:
        txt = json.dumps(body, indent=2, ensure_ascii=False)
    return clean_text(txt)


def assemble(source: Any) -> str:
    """Sync entry point for already-received content of any known shape."""
    if isinstance(source, (list, tuple)) and all(isinstance(c, (str, bytes)) for c in source):
        return assemble_lines(source)
    return assemble_body(source)
