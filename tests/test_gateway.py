"""Tests for the generation gateway and retry decorator."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from methodassist.core.errors import GenerationFailure
from methodassist.core.gateway import GenerationGateway, extract_content
from methodassist.core.retry import retry_with_exponential_backoff
from methodassist.core.validator import TASK_OUTPUT_SCHEMA


def _envelope(content, usage=None):
    envelope = {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}
    if usage is not None:
        envelope["usage"] = usage
    return envelope


class TestExtractContent:
    """Tests for response envelope handling."""

    def test_dict_envelope(self):
        assert extract_content(_envelope("hello")) == "hello"

    def test_object_envelope(self):
        envelope = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="hi"))]
        )
        assert extract_content(envelope) == "hi"

    def test_content_parts(self):
        envelope = _envelope([{"type": "text", "text": "a"}, {"type": "text", "text": "b"}])
        assert extract_content(envelope) == "ab"

    @pytest.mark.parametrize(
        "envelope",
        [
            {},
            {"choices": []},
            {"choices": [{"index": 0}]},
            _envelope(""),
            _envelope("   "),
            _envelope(None),
        ],
    )
    def test_unusable(self, envelope):
        with pytest.raises(GenerationFailure):
            extract_content(envelope)


class TestGenerationGateway:
    """Tests for provider invocation."""

    def test_generate(self, fake_client_factory):
        client = fake_client_factory(["answer"])
        gateway = GenerationGateway(client)

        assert gateway.generate("sys", "user") == "answer"
        call = client.calls[0]
        assert call["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "user"},
        ]
        assert call["schema"] is None

    def test_passes_schema_and_timeout(self, fake_client_factory):
        client = fake_client_factory(["{}"])
        gateway = GenerationGateway(client, timeout_ms=2500)

        gateway.generate("sys", "user", schema=TASK_OUTPUT_SCHEMA)

        assert client.calls[0]["schema"] is TASK_OUTPUT_SCHEMA
        assert client.calls[0]["timeout"] == 2.5

    def test_single_attempt_by_default(self, fake_client_factory):
        client = fake_client_factory([ConnectionError("refused")])
        gateway = GenerationGateway(client)

        with pytest.raises(GenerationFailure) as exc_info:
            gateway.generate("sys", "user")

        assert len(client.calls) == 1
        assert exc_info.value.attempts == 1
        assert exc_info.value.provider == "fake"
        assert exc_info.value.model == "fake-model"
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_empty_response_is_failure(self, fake_client_factory):
        gateway = GenerationGateway(fake_client_factory([""]))
        with pytest.raises(GenerationFailure):
            gateway.generate("sys", "user")

    def test_retries_until_success(self, fake_client_factory):
        client = fake_client_factory([TimeoutError("slow"), "", "answer"])
        gateway = GenerationGateway(client, max_retries=2, initial_delay=0.0)

        assert gateway.generate("sys", "user") == "answer"
        assert len(client.calls) == 3

    def test_retries_exhausted(self, fake_client_factory):
        client = fake_client_factory([TimeoutError("slow")])
        gateway = GenerationGateway(client, max_retries=2, initial_delay=0.0)

        with pytest.raises(GenerationFailure) as exc_info:
            gateway.generate("sys", "user")
        assert len(client.calls) == 3
        assert exc_info.value.attempts == 3

    def test_invalid_arguments(self, fake_client_factory):
        with pytest.raises(ValueError):
            GenerationGateway(fake_client_factory(), max_retries=-1)
        with pytest.raises(ValueError):
            GenerationGateway(fake_client_factory(), timeout_ms=0)

    def test_mock_client(self):
        client = MagicMock()
        client.provider = "openai"
        client.model = "gpt-4o-mini"
        client.complete.return_value = _envelope(
            "ok", usage={"prompt_tokens": 10, "completion_tokens": 2}
        )
        gateway = GenerationGateway(client)

        assert gateway.generate("sys", "user") == "ok"
        client.complete.assert_called_once()
        assert gateway.provider == "openai"


class TestRetry:
    """Tests for the backoff decorator."""

    def test_attempt_numbers_and_delays(self):
        sleeps = []
        seen = []

        @retry_with_exponential_backoff(
            max_retries=3,
            initial_delay=1.0,
            jitter=False,
            retryable_exceptions=(ValueError,),
            sleep=sleeps.append,
        )
        def flaky(attempt=1):
            seen.append(attempt)
            if attempt < 3:
                raise ValueError("nope")
            return "done"

        assert flaky() == "done"
        assert seen == [1, 2, 3]
        assert sleeps == [1.0, 2.0]

    def test_non_retryable_propagates(self):
        calls = []

        @retry_with_exponential_backoff(
            max_retries=3, retryable_exceptions=(ValueError,), sleep=lambda _: None
        )
        def broken(attempt=1):
            calls.append(attempt)
            raise KeyError("x")

        with pytest.raises(KeyError):
            broken()
        assert calls == [1]

    def test_max_delay(self):
        sleeps = []

        @retry_with_exponential_backoff(
            max_retries=4, initial_delay=4.0, max_delay=5.0, jitter=False, sleep=sleeps.append
        )
        def always_fails(attempt=1):
            raise RuntimeError("down")

        with pytest.raises(RuntimeError):
            always_fails()
        assert sleeps == [4.0, 5.0, 5.0, 5.0]
