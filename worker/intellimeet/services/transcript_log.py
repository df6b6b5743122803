from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Dict, List, Optional, Union

from ..models.utterance import TranscriptEntry, Utterance


class TranscriptLog:
    """Append-only ordered log of finalized utterance text.

    Appends and snapshots are serialized by one lock, so a reader never sees a
    half-written entry. The log does not dedupe; callers append once per
    utterance id.
    """

    def __init__(self) -> None:
        self._entries: List[TranscriptEntry] = []
        self._lock = threading.Lock()

    def append(self, text: str, speaker: Optional[str] = None, timestamp: Optional[Union[int, float]] = None) -> None:
        entry = TranscriptEntry(text=text, speaker=speaker, timestamp=timestamp)
        with self._lock:
            self._entries.append(entry)

    def snapshot(self) -> str:
        with self._lock:
            return "\n".join(e.text for e in self._entries)

    def speaker_text(self, unknown: str = "Unknown") -> str:
        """The log as ``Speaker: text`` lines; entries without a known speaker stay bare."""
        with self._lock:
            entries = list(self._entries)
        return "\n".join(
            f"{e.speaker}: {e.text}" if e.speaker and e.speaker != unknown else e.text for e in entries
        )

    def entries(self) -> List[TranscriptEntry]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> int:
        with self._lock:
            n = len(self._entries)
            self._entries = []
        return n

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class UtteranceBoard:
    """The subscriber-visible utterance list.

    A re-delivered utterance id replaces the earlier version in its original
    position (interim -> final corrections) instead of adding a row.
    """

    def __init__(self) -> None:
        self._items: "OrderedDict[str, Utterance]" = OrderedDict()
        self._lock = threading.Lock()

    def upsert(self, utt: Utterance) -> bool:
        """Store ``utt``; returns True when its id was new."""
        with self._lock:
            is_new = utt.utterance_id not in self._items
            self._items[utt.utterance_id] = utt
            return is_new

    def items(self) -> List[Utterance]:
        with self._lock:
            return list(self._items.values())

    def get(self, utterance_id: str) -> Optional[Utterance]:
        with self._lock:
            return self._items.get(utterance_id)

    def speaker_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for u in self.items():
            speaker = u.speaker or "Unknown"
            counts[speaker] = counts.get(speaker, 0) + 1
        return counts

    def clear(self) -> int:
        with self._lock:
            n = len(self._items)
            self._items.clear()
        return n

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
