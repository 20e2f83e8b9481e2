"""Integration tests for the task and explanation flows."""

import json
import threading
from unittest.mock import MagicMock

import pytest

from methodassist.catalog.rules import SPLIT_RULE
from methodassist.core.assistant import MethodologyAssistant
from methodassist.core.config import Config
from methodassist.core.errors import (
    GenerationFailure,
    RuleViolation,
    SchemaViolation,
    SchemaViolationKind,
    ValidationError,
)
from methodassist.core.gateway import GenerationGateway
from methodassist.core.validator import TASK_OUTPUT_SCHEMA
from methodassist.schemas.task import GeneratedTask, Priority, Risk, Stage
from methodassist.stages import RuleExplainer, TaskGenerator


@pytest.fixture
def make_assistant(fake_client_factory, tmp_path):
    """Build an assistant around a scripted client."""

    def _make(responses, **kwargs):
        client = fake_client_factory(responses)
        kwargs.setdefault("history_dir", tmp_path / "history")
        return MethodologyAssistant(client=client, **kwargs), client

    return _make


class TestTaskGeneration:
    """Tests for the task generation flow."""

    def test_generates_valid_task(self, make_assistant, valid_task_json):
        assistant, client = make_assistant([valid_task_json])

        task = assistant.generate_task("Implement secure password hashing", "implement")

        assert isinstance(task, GeneratedTask)
        assert task.title == "Add bcrypt password hashing"
        assert 1 <= task.estimate <= 5
        assert task.risk is Risk.MEDIUM
        assert task.priority is Priority.P1
        assert len(client.calls) == 1
        assert client.calls[0]["schema"] is TASK_OUTPUT_SCHEMA

    def test_prompt_carries_stage_and_goal(self, make_assistant, valid_task_json):
        assistant, client = make_assistant([valid_task_json])

        assistant.generate_task("Implement secure password hashing", "implement")

        system, user = (m["content"] for m in client.calls[0]["messages"])
        assert "estimate MUST be a number between 1 and 5" in system
        assert "Implement secure password hashing" in user

    def test_estimate_over_split_bound_rejected(self, make_assistant, valid_task_payload):
        valid_task_payload["estimate"] = 7
        assistant, _ = make_assistant([json.dumps(valid_task_payload)])

        with pytest.raises(RuleViolation) as exc_info:
            assistant.generate_task("Migrate the database", "implement")

        assert exc_info.value.breaches[0].rule == SPLIT_RULE.title
        assert exc_info.value.breaches[0].value == 7

    def test_rejected_task_not_recorded(self, make_assistant, valid_task_payload):
        valid_task_payload["estimate"] = 7
        assistant, _ = make_assistant([json.dumps(valid_task_payload)])

        with pytest.raises(RuleViolation):
            assistant.generate_task("Migrate the database", "implement")
        assert assistant.recent_tasks() == []

    def test_malformed_output(self, make_assistant):
        assistant, _ = make_assistant(["Sure! Here is your task: do the thing."])

        with pytest.raises(SchemaViolation) as exc_info:
            assistant.generate_task("Define SLOs", "plan")
        assert exc_info.value.kind is SchemaViolationKind.MALFORMED

    def test_out_of_enum_output(self, make_assistant, valid_task_payload):
        valid_task_payload["priority"] = "urgent"
        assistant, _ = make_assistant([json.dumps(valid_task_payload)])

        with pytest.raises(SchemaViolation) as exc_info:
            assistant.generate_task("Define SLOs", "plan")
        assert exc_info.value.kind is SchemaViolationKind.OUT_OF_ENUM

    def test_provider_failure(self, make_assistant):
        assistant, _ = make_assistant([TimeoutError("deadline exceeded")])

        with pytest.raises(GenerationFailure):
            assistant.generate_task("Define SLOs", "plan")

    @pytest.mark.parametrize("goal,stage", [("", "plan"), ("Define SLOs", "ship")])
    def test_invalid_input_makes_no_call(self, make_assistant, valid_task_json, goal, stage):
        assistant, client = make_assistant([valid_task_json])

        with pytest.raises(ValidationError):
            assistant.generate_task(goal, stage)
        assert client.calls == []

    def test_history_recorded(self, make_assistant, valid_task_json):
        assistant, _ = make_assistant([valid_task_json])

        task = assistant.generate_task("Implement secure password hashing", "implement")
        assistant.generate_task("Define SLOs", Stage.PLAN)

        records = assistant.recent_tasks()
        assert len(records) == 2
        assert records[0].goal == "Define SLOs"
        assert records[1].task == task
        assert [r.stage for r in assistant.recent_tasks(stage="implement")] == [Stage.IMPLEMENT]

    def test_history_disabled(self, make_assistant, valid_task_json):
        assistant, _ = make_assistant([valid_task_json], history_dir=None)

        assistant.generate_task("Define SLOs", "plan")
        assert assistant.recent_tasks() == []
        assert assistant.record_task("Define SLOs", "plan", MagicMock()) is None

    def test_record_deferred_until_saved(self, make_assistant, valid_task_json):
        assistant, _ = make_assistant([valid_task_json])

        task = assistant.generate_task("Define SLOs", "plan", record=False)
        assert assistant.recent_tasks() == []

        record = assistant.record_task("Define SLOs", "plan", task)
        assert assistant.history.get(record.record_id) == record
        assert [r.task for r in assistant.recent_tasks()] == [task]

    @pytest.mark.parametrize("record_id", ["../outside", "", "missing"])
    def test_history_get_unknown_id(self, make_assistant, record_id):
        assistant, _ = make_assistant([])
        assert assistant.history.get(record_id) is None

    def test_task_generator_with_mock_gateway(self, valid_task_json):
        gateway = MagicMock(spec=GenerationGateway)
        gateway.generate.return_value = valid_task_json

        task = TaskGenerator(gateway).generate("Write runbooks", "operate")

        assert task.estimate == 3
        args, kwargs = gateway.generate.call_args
        assert "Stage Goal:" in args[0]
        assert kwargs["schema"] is TASK_OUTPUT_SCHEMA


class TestRuleExplanation:
    """Tests for the rule explanation flow."""

    def test_explains_and_caches(self, make_assistant):
        assistant, client = make_assistant(["Small tasks keep work flowing."])

        first = assistant.explain_rule(SPLIT_RULE.title, SPLIT_RULE.description)
        second = assistant.explain_rule(SPLIT_RULE.title, SPLIT_RULE.description)

        assert first.explanation == "Small tasks keep work flowing."
        assert second == first
        assert len(client.calls) == 1
        assert client.calls[0]["schema"] is None

    def test_failure_returns_empty(self, make_assistant):
        assistant, _ = make_assistant([ConnectionError("refused")])

        result = assistant.explain_rule(SPLIT_RULE.title, SPLIT_RULE.description)

        assert result.explanation == ""
        assert assistant.cache.get(SPLIT_RULE.title) is None

    def test_failure_is_retried_on_next_call(self, make_assistant):
        assistant, client = make_assistant([ConnectionError("refused"), "Now it works."])

        assert assistant.explain_rule("WIP Limit", "Max 3 tasks").explanation == ""
        assert assistant.explain_rule("WIP Limit", "Max 3 tasks").explanation == "Now it works."
        assert len(client.calls) == 2

    @pytest.mark.parametrize("title,text", [("", "text"), ("Title", "")])
    def test_invalid_input_raises(self, make_assistant, title, text):
        assistant, client = make_assistant(["unused"])

        with pytest.raises(ValidationError):
            assistant.explain_rule(title, text)
        assert client.calls == []

    def test_concurrent_requests_store_once(self, fake_client_factory):
        client = fake_client_factory(["Split work to keep estimates honest."], delay=0.05)
        assistant = MethodologyAssistant(client=client)
        results = []
        barrier = threading.Barrier(2)

        def worker():
            barrier.wait()
            results.append(assistant.explain_rule(SPLIT_RULE.title, SPLIT_RULE.description))

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(client.calls) == 1
        assert len(assistant.cache.store) == 1
        assert [r.explanation for r in results] == ["Split work to keep estimates honest."] * 2

    def test_catalog_rule(self, make_assistant):
        assistant, client = make_assistant(["Explained."])

        assert assistant.explain_catalog_rule("split").explanation == "Explained."
        assert f"Rule: {SPLIT_RULE.title}" in client.calls[0]["messages"][1]["content"]

    def test_file_cache(self, fake_client_factory, tmp_path):
        client = fake_client_factory(["Persisted."])
        MethodologyAssistant(client=client, cache_dir=tmp_path / "cache").explain_rule("A", "b")

        other = fake_client_factory(["Should not be called."])
        result = MethodologyAssistant(client=other, cache_dir=tmp_path / "cache").explain_rule("A", "b")

        assert result.explanation == "Persisted."
        assert other.calls == []

    def test_rule_explainer_with_mock_gateway(self):
        gateway = MagicMock(spec=GenerationGateway)
        gateway.generate.side_effect = GenerationFailure("boom")

        assert RuleExplainer(gateway).explain("A", "b") == ""


class TestFromConfig:
    """Tests for building an assistant from configuration."""

    def test_uses_config_dirs(self, fake_client_factory, tmp_path):
        config = Config()
        config.cache_dir = str(tmp_path / "c")
        config.history_dir = str(tmp_path / "h")
        config.max_retries = 2
        config.timeout_ms = 1500

        assistant = MethodologyAssistant.from_config(config, client=fake_client_factory())

        assert assistant.cache.store.cache_dir == tmp_path / "c"
        assert assistant.history.history_dir == tmp_path / "h"
        assert assistant.gateway.max_retries == 2
        assert assistant.gateway.timeout_ms == 1500

    def test_cache_and_history_off(self, fake_client_factory):
        config = Config()
        config.use_cache = False
        config.record_history = False

        assistant = MethodologyAssistant.from_config(config, client=fake_client_factory())

        assert len(assistant.cache.store) == 0
        assert assistant.history is None

    def test_invalid_file_values_fall_back(self, fake_client_factory, tmp_path):
        config_file = tmp_path / "c.yaml"
        config_file.write_text("max_retries: 'two'\ntimeout_ms: -5\n", encoding="utf-8")

        config = Config.load(config_file=config_file)
        assistant = MethodologyAssistant.from_config(config, client=fake_client_factory())

        assert assistant.gateway.max_retries == 0
        assert assistant.gateway.timeout_ms == 60_000
