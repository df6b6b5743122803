import json

import httpx
import pytest
from fastapi.testclient import TestClient

from intellimeet.app import create_app
from intellimeet.config import Settings


LLM_URL = "http://llm.test/api/generate"


@pytest.fixture
def settings():
    return Settings(llm_endpoint=LLM_URL, llm_model="gemma:2b", llm_timeout_s=5, mom_timeout_s=5)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def llm_calls():
    return []


@pytest.fixture
def use_llm(app, llm_calls):
    """Route the app's completion calls to a handler: ``use_llm(handler)``."""

    def _install(handler):
        def _recording(request: httpx.Request):
            llm_calls.append(json.loads(request.content or b"{}"))
            return handler(request)

        app.state.state.llm_transport = httpx.MockTransport(_recording)

    return _install


def make_event(uid=None, words=None, name="Alice", final=True, text=None):
    inner = {"participant": {"name": name}, "is_final": final}
    if uid is not None:
        inner["utterance_id"] = uid
    if words is not None:
        inner["words"] = [
            {"text": w, "start_timestamp": {"relative": 1.5 + i}} for i, w in enumerate(words)
        ]
    if text is not None:
        inner["text"] = text
    return {"event": "transcript.data", "data": {"data": inner}}
