"""Tests for the command-line interface."""

import json
import logging
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from methodassist.cli.main import main
from methodassist.core.assistant import MethodologyAssistant
from methodassist.core.history import TaskHistory
from methodassist.core.logging import ROOT_LOGGER_NAME
from methodassist.schemas.task import Stage


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    """Detach handlers bound to the runner's streams."""
    yield
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = True


@pytest.fixture
def patched_assistant(fake_client_factory, tmp_path, monkeypatch):
    """Make the CLI use an assistant backed by a scripted client."""

    def _factory(responses):
        client = fake_client_factory(responses)
        assistant = MethodologyAssistant(client=client, history_dir=tmp_path / "history")
        mock_cls = MagicMock()
        mock_cls.from_config.return_value = assistant
        monkeypatch.setattr("methodassist.cli.main.MethodologyAssistant", mock_cls)
        return assistant, client

    return _factory


class TestGenerateTask:
    """Tests for the generate-task command."""

    def test_json_output(self, runner, patched_assistant, valid_task_json, valid_task_payload):
        patched_assistant([valid_task_json])

        result = runner.invoke(
            main,
            ["generate-task", "Implement secure password hashing", "--stage", "implement", "-f", "json"],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == valid_task_payload

    def test_markdown_output(self, runner, patched_assistant, valid_task_json):
        patched_assistant([valid_task_json])

        result = runner.invoke(main, ["generate-task", "Hash passwords", "-S", "implement"])

        assert result.exit_code == 0, result.output
        assert "Add bcrypt password hashing" in result.output
        assert "P1 (High)" in result.output

    def test_rule_violation_exit_code(self, runner, patched_assistant, valid_task_payload):
        valid_task_payload["estimate"] = 7
        patched_assistant([json.dumps(valid_task_payload)])

        result = runner.invoke(main, ["generate-task", "Migrate the database", "-S", "implement"])

        assert result.exit_code == 5
        assert "Split Rule" in result.output

    def test_schema_violation_exit_code(self, runner, patched_assistant):
        patched_assistant(["not json at all"])

        result = runner.invoke(main, ["generate-task", "Define SLOs", "-S", "plan"])

        assert result.exit_code == 4

    def test_generation_failure_exit_code(self, runner, patched_assistant):
        patched_assistant([ConnectionError("refused")])

        result = runner.invoke(main, ["generate-task", "Define SLOs", "-S", "plan"])

        assert result.exit_code == 3

    def test_blank_goal_exit_code(self, runner, patched_assistant, valid_task_json):
        _, client = patched_assistant([valid_task_json])

        result = runner.invoke(main, ["generate-task", "   ", "-S", "plan"])

        assert result.exit_code == 2
        assert client.calls == []

    def test_invalid_output_format_in_config(self, runner, patched_assistant, valid_task_json, tmp_path):
        assistant, _ = patched_assistant([valid_task_json])
        config_file = tmp_path / "team.yaml"
        config_file.write_text("output_format: table\nmax_retries: 'two'\n", encoding="utf-8")

        result = runner.invoke(
            main, ["generate-task", "Hash passwords", "-S", "implement", "--config", str(config_file)]
        )

        assert result.exit_code == 0, result.output
        assert "Add bcrypt password hashing" in result.output
        assert len(assistant.recent_tasks()) == 1

    def test_render_failure_records_nothing(self, runner, patched_assistant, valid_task_json, monkeypatch):
        assistant, _ = patched_assistant([valid_task_json])
        monkeypatch.setattr(
            "methodassist.cli.main.render_task", MagicMock(side_effect=ValueError("bad format"))
        )

        result = runner.invoke(main, ["generate-task", "Hash passwords", "-S", "implement"])

        assert result.exit_code != 0
        assert assistant.recent_tasks() == []

    def test_unknown_stage_rejected_by_cli(self, runner):
        result = runner.invoke(main, ["generate-task", "Define SLOs", "-S", "deploy"])
        assert result.exit_code == 2

    def test_provider_setup_error(self, runner):
        with patch("methodassist.cli.main.MethodologyAssistant") as mock_cls:
            mock_cls.from_config.side_effect = ValueError("No generation provider available")
            result = runner.invoke(main, ["generate-task", "Define SLOs", "-S", "plan"])

        assert result.exit_code == 1
        assert "No generation provider available" in result.output


class TestExplainRule:
    """Tests for the explain-rule command."""

    def test_catalog_rule(self, runner, patched_assistant):
        _, client = patched_assistant(["Small tasks flow."])

        result = runner.invoke(main, ["explain-rule", "split"])

        assert result.exit_code == 0, result.output
        assert "Small tasks flow." in result.output
        assert "Split Rule (Task > 5 days)" in client.calls[0]["messages"][1]["content"]

    def test_free_form_rule(self, runner, patched_assistant):
        _, client = patched_assistant(["Limits help focus."])

        result = runner.invoke(main, ["explain-rule", "WIP Limit", "--text", "Max 3 tasks in progress."])

        assert result.exit_code == 0, result.output
        assert "Rule: WIP Limit" in client.calls[0]["messages"][1]["content"]

    def test_provider_failure_warns(self, runner, patched_assistant):
        patched_assistant([ConnectionError("refused")])

        result = runner.invoke(main, ["explain-rule", "split"])

        assert result.exit_code == 0
        assert "No explanation available" in result.output

    def test_unknown_rule(self, runner):
        result = runner.invoke(main, ["explain-rule", "no-such-rule"])
        assert result.exit_code == 2
        assert "Unknown rule" in result.output


class TestCatalogCommands:
    """Tests for the read-only catalog commands."""

    def test_stages(self, runner):
        result = runner.invoke(main, ["stages"])
        assert result.exit_code == 0
        for stage in Stage:
            assert stage.value in result.output

    def test_single_stage(self, runner):
        result = runner.invoke(main, ["stages", "verify"])
        assert result.exit_code == 0
        assert "Activities" in result.output

    def test_rules(self, runner):
        result = runner.invoke(main, ["rules"])
        assert result.exit_code == 0
        assert "split" in result.output

    def test_principles(self, runner):
        result = runner.invoke(main, ["principles"])
        assert result.exit_code == 0
        assert "1." in result.output


class TestHistoryAndConfig:
    """Tests for history and config commands."""

    def test_history_empty(self, runner):
        result = runner.invoke(main, ["history"])
        assert result.exit_code == 0
        assert "No tasks generated yet." in result.output

    def test_history_json(self, runner, isolated_config, sample_task):
        TaskHistory(isolated_config / "history").record("Assess risks", Stage.DISCOVER, sample_task)

        result = runner.invoke(main, ["history", "--json"])

        assert result.exit_code == 0, result.output
        records = json.loads(result.output)
        assert len(records) == 1
        assert records[0]["goal"] == "Assess risks"
        assert records[0]["task"]["estimate"] == 2

    def test_config_export_json(self, runner):
        result = runner.invoke(main, ["config", "export", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["provider"] == "auto"
        assert "api_key" not in data

    def test_config_import(self, runner, isolated_config, tmp_path):
        source = tmp_path / "team.yaml"
        source.write_text("provider: ollama\nmax_retries: 1\n", encoding="utf-8")

        result = runner.invoke(main, ["config", "import", str(source)])

        assert result.exit_code == 0
        saved = (isolated_config / "config.yaml").read_text(encoding="utf-8")
        assert "provider: ollama" in saved
        assert "max_retries: 1" in saved

    def test_history_by_id(self, runner, isolated_config, sample_task):
        record = TaskHistory(isolated_config / "history").record(
            "Assess risks", Stage.DISCOVER, sample_task
        )

        listing = runner.invoke(main, ["history"], env={"COLUMNS": "200"})
        assert listing.exit_code == 0, listing.output
        assert record.record_id in listing.output

        result = runner.invoke(main, ["history", "--id", record.record_id])
        assert result.exit_code == 0, result.output
        assert "discover: Assess risks" in result.output
        assert "Write risk register" in result.output

        result = runner.invoke(main, ["history", "--id", record.record_id, "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["task"] == sample_task.to_payload()

    def test_history_unknown_id(self, runner):
        result = runner.invoke(main, ["history", "--id", "nope"])

        assert result.exit_code == 1
        assert "No generated task with id 'nope'" in result.output
