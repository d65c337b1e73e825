"""Test fixtures and fakes for the CargaInteligente back office."""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from requests.structures import CaseInsensitiveDict

from carga_web import AppConfig, create_app, limiter
from carga_web.flows.llm import set_llm
from carga_web.repositories import CollectionRepository


@pytest.fixture()
def app(tmp_path: Path):
    """Return a Flask app configured for testing."""

    db_path = tmp_path / "test.db"
    config = AppConfig(
        database_url=f"sqlite:///{db_path}",
        secret_key="testing",
    )
    application = create_app(config)
    application.config.update(TESTING=True)
    limiter.reset()
    yield application
    limiter.reset()
    set_llm(None)


@pytest.fixture()
def client(app):
    """Return a Flask test client."""

    return app.test_client()


@pytest.fixture()
def repo(app):
    """Repository bound to the test database."""

    return CollectionRepository(app.config["DB_ENGINE"])


class FakeLLM:
    """Chat model returning canned answers in order and recording prompts."""

    def __init__(self, *answers: Any):
        self.answers = list(answers)
        self.prompts: List[Any] = []

    def invoke(self, messages):
        self.prompts.append(messages[0].content)
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        if not isinstance(answer, str):
            answer = json.dumps(answer)
        return SimpleNamespace(content=answer)

    @property
    def last_prompt(self) -> str:
        prompt = self.prompts[-1]
        if isinstance(prompt, list):
            return prompt[0]["text"]
        return prompt


class FakeResponse:
    """Subset of :class:`requests.Response` used by the integration clients."""

    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        *,
        text: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.status_code = status_code
        self._payload = payload
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text
        self.content = text.encode("utf-8")
        self.headers = CaseInsensitiveDict(headers or {"Content-Type": "application/json"})
        self.reason = "OK" if status_code < 400 else "Error"

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            return json.loads(self.text)
        return self._payload


class FakeSession:
    """Records requests and replays queued responses per HTTP method."""

    def __init__(self, **responses: List[FakeResponse]):
        self.responses = {method: list(queue) for method, queue in responses.items()}
        self.calls: List[tuple] = []

    def _next(self, method: str, url: str, kwargs: Dict[str, Any]) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        queue = self.responses.get(method) or []
        if not queue:
            raise AssertionError(f"Unexpected {method.upper()} {url}")
        return queue.pop(0)

    def get(self, url, **kwargs):
        return self._next("get", url, kwargs)

    def post(self, url, **kwargs):
        return self._next("post", url, kwargs)

    def put(self, url, **kwargs):
        return self._next("put", url, kwargs)


@pytest.fixture()
def make_response():
    """Factory for :class:`FakeResponse` objects."""

    return FakeResponse


@pytest.fixture()
def make_session():
    """Factory for :class:`FakeSession` objects."""

    return FakeSession


@pytest.fixture()
def fake_llm():
    """Install a :class:`FakeLLM` as the shared chat model."""

    def install(*answers: Any) -> FakeLLM:
        llm = FakeLLM(*answers)
        set_llm(llm)
        return llm

    yield install
    set_llm(None)
