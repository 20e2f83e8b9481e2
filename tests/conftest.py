"""Shared fixtures: a scripted chat client and isolated config locations."""

import json
import threading
import time

import pytest

from methodassist.schemas.task import GeneratedTask, Priority, Risk


def make_envelope(content, usage=None):
    """Build an OpenAI-shaped chat completion envelope."""
    envelope = {
        "id": "chatcmpl-test",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
    }
    if usage is not None:
        envelope["usage"] = usage
    return envelope


class FakeChatClient:
    """
    Chat client returning scripted responses.

    Each response is consumed in order; the last one repeats. A response
    may be a string (message content), a full envelope dict, or an
    exception instance to raise.
    """

    def __init__(self, responses=None, delay=0.0, provider="fake", model="fake-model"):
        self.provider = provider
        self.model = model
        self.responses = list(responses or [""])
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    def complete(self, messages, schema=None, timeout=60.0):
        with self._lock:
            self.calls.append({"messages": messages, "schema": schema, "timeout": timeout})
            item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if self.delay:
            time.sleep(self.delay)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, dict):
            return item
        return make_envelope(item)


@pytest.fixture
def valid_task_payload():
    """A payload satisfying both schema and rules."""
    return {
        "title": "Add bcrypt password hashing",
        "description": "Replace plain SHA-256 hashing with bcrypt (cost 12) in the auth service.",
        "estimate": 3,
        "risk": "Medium",
        "priority": "P1",
    }


@pytest.fixture
def valid_task_json(valid_task_payload):
    return json.dumps(valid_task_payload)


@pytest.fixture
def sample_task():
    return GeneratedTask(
        title="Write risk register",
        description="List the top 8 technical and legal risks with owners.",
        estimate=2,
        risk=Risk.LOW,
        priority=Priority.P2,
    )


@pytest.fixture
def fake_client_factory():
    return FakeChatClient


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user/project config lookups inside the test's tmp dir."""
    home = tmp_path / "home"
    monkeypatch.setattr("methodassist.core.config.CONFIG_HOME", home)
    monkeypatch.setattr("methodassist.cli.main.CONFIG_HOME", home)
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    return home
