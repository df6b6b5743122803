from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from typing import Any, Optional, Set

from fastapi import Request

from .services.bus import EventBus
from .services.dedup import Deduplicator
from .services.transcript_log import TranscriptLog, UtteranceBoard


@dataclass
class MeetingSession:
    """Everything accumulated for one live meeting.

    ``committed_ids`` remembers which utterance ids already reached the log so
    a repeated final delivery is not appended twice.
    """

    log: TranscriptLog = field(default_factory=TranscriptLog)
    board: UtteranceBoard = field(default_factory=UtteranceBoard)
    dedup: Deduplicator = field(default_factory=Deduplicator)
    committed_ids: Set[str] = field(default_factory=set)
    final_count: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)

    def commit_final(self, utterance_id: str, text: str, speaker: Optional[str], timestamp: Any) -> bool:
        """Append to the log on the first final delivery of ``utterance_id``."""
        with self.lock:
            if utterance_id in self.committed_ids:
                return False
            self.committed_ids.add(utterance_id)
            self.log.append(text, speaker, timestamp)
            self.final_count += 1
            return True

    def clear(self) -> tuple[int, int]:
        with self.lock:
            entries = self.log.clear()
            utterances = self.board.clear()
            self.committed_ids = set()
            self.final_count = 0
        return entries, utterances


@dataclass
class State:
    """Mutable application state shared across services.

    Attached to FastAPI's app.state; one meeting session per process.
    """

    session: MeetingSession = field(default_factory=MeetingSession)
    bus: EventBus = field(default_factory=EventBus)
    auto_extract: bool = False
    auto_extract_every: int = 5
    auto_busy: bool = False

    # Auto-extraction runs scheduled off the ingest path
    background: Set["asyncio.Task[None]"] = field(default_factory=set)

    # Injected httpx transport for the completion backend (tests use MockTransport)
    llm_transport: Any | None = None


def get_state(request: Request) -> State:  # FastAPI dependency helper
    return request.app.state.state
