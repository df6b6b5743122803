from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..config import Settings
from .assembler import assemble_body, assemble_stream


class LLMError(RuntimeError):
    """Completion backend did not produce a usable answer."""


class LLMRequestError(LLMError):
    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"HTTP {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class LLMTimeoutError(LLMError):
    pass


class LLMUnavailableError(LLMError):
    pass


class LLMClient:
    """Async client for an Ollama-style text-completion endpoint.

    Streamed replies (NDJSON or plain text) are folded chunk by chunk as they
    arrive; ``application/json`` replies are read whole. The whole call,
    including stream consumption, is bounded by ``timeout`` seconds.
    """

    def __init__(
        self,
        endpoint: str,
        model: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verify: bool = True,
    ) -> None:
        self.endpoint = endpoint
        self.model = model
        self.timeout = float(timeout)
        self._transport = transport
        self._verify = verify
        self.logger = logging.getLogger("app.llm")

    def _client(self) -> httpx.AsyncClient:
        kwargs: Dict[str, Any] = {
            "timeout": httpx.Timeout(self.timeout),
            "headers": {
                "Content-Type": "application/json",
                "User-Agent": "intellimeet-worker/1.0 python-httpx",
            },
            "verify": self._verify,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    async def complete(self, body: Dict[str, Any]) -> str:
        """POST ``body`` and return the assembled, cleaned completion text."""
        try:
            return await asyncio.wait_for(self._complete(body), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise LLMTimeoutError(f"completion exceeded {self.timeout:.0f}s") from e

    async def _complete(self, body: Dict[str, Any]) -> str:
        async with self._client() as client:
            try:
                async with client.stream("POST", self.endpoint, json=body) as resp:
                    if resp.status_code >= 400:
                        raw = await resp.aread()
                        raise LLMRequestError(resp.status_code, raw.decode("utf-8", errors="replace")[:500])
                    ctype = resp.headers.get("content-type", "").lower()
                    if "application/json" in ctype:
                        return assemble_body(await resp.aread())
                    return await assemble_stream(resp.aiter_text())
            except httpx.TimeoutException as e:
                raise LLMTimeoutError(str(e) or "backend timed out") from e
            except httpx.HTTPError as e:
                raise LLMUnavailableError(str(e) or e.__class__.__name__) from e


def client_from_settings(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: Optional[float] = None,
) -> LLMClient:
    return LLMClient(
        endpoint=settings.llm_endpoint,
        model=settings.llm_model,
        timeout=timeout if timeout is not None else settings.llm_timeout_s,
        transport=transport,
        verify=not settings.llm_ssl_no_verify,
    )
