"""CLI interface for the methodology assistant."""

import json
import sys
from pathlib import Path
from typing import Any, Optional

import click
import yaml

from methodassist.catalog.rules import PRINCIPLES, RULES, get_rule
from methodassist.catalog.stages import STAGES, get_stage
from methodassist.cli.formatters import (
    OUTPUT_FORMATS,
    OutputFormatter,
    render_task,
    stage_to_markdown,
)
from methodassist.core.assistant import MethodologyAssistant
from methodassist.core.config import CONFIG_HOME, Config
from methodassist.core.errors import (
    GenerationFailure,
    MethodologyError,
    RuleViolation,
    SchemaViolation,
    ValidationError,
)
from methodassist.core.logging import configure_logging
from methodassist.schemas.task import Stage

STAGE_NAMES = [stage.value for stage in Stage]

# Exit status per error kind
EXIT_CODES = {
    ValidationError: 2,
    GenerationFailure: 3,
    SchemaViolation: 4,
    RuleViolation: 5,
}


def _exit_code(error: MethodologyError) -> int:
    for error_type, code in EXIT_CODES.items():
        if isinstance(error, error_type):
            return code
    return 1


def provider_options(func):
    """Options shared by commands that call the generation provider."""
    options = [
        click.option(
            "--provider",
            "-p",
            type=click.Choice(["openai", "openrouter", "qwen", "ollama", "auto"], case_sensitive=False),
            default=None,
            help="Generation provider (default: auto - auto-detect)",
        ),
        click.option("--model", "-m", default=None, help="Model name (provider-specific)"),
        click.option("--temperature", "-t", type=float, default=None, help="Generation temperature"),
        click.option("--seed", "-s", type=int, default=None, help="Random seed for determinism"),
        click.option("--base-url", default=None, help="Provider endpoint override"),
        click.option("--api-key", default=None, help="Provider API key (or use the provider's env var)"),
        click.option(
            "--max-retries",
            type=click.IntRange(min=0),
            default=None,
            help="Extra attempts when the provider call fails (default: 0)",
        ),
        click.option(
            "--timeout-ms",
            type=click.IntRange(min=1),
            default=None,
            help="Per-call deadline in milliseconds (default: 60000)",
        ),
        click.option(
            "--config",
            "config_file",
            type=click.Path(exists=True, dir_okay=False),
            default=None,
            help="Path to configuration file (YAML or JSON)",
        ),
        click.option(
            "--log-level",
            default="WARNING",
            type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
            help="Logging level (default: WARNING)",
        ),
        click.option("--log-file", type=click.Path(), default=None, help="Also write logs to this file"),
        click.option("--json-logging", is_flag=True, default=False, help="Emit logs as JSON"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_assistant(
    cli_args: dict[str, Any],
    config_file: Optional[str],
    log_level: str,
    log_file: Optional[str],
    json_logging: bool,
) -> tuple[MethodologyAssistant, Config]:
    configure_logging(level=log_level, json_output=json_logging, log_file=log_file)
    config_obj = Config.load(
        {k: v for k, v in cli_args.items() if v is not None},
        config_file=Path(config_file) if config_file else None,
    )
    try:
        assistant = MethodologyAssistant.from_config(config_obj)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    return assistant, config_obj


@click.group()
@click.version_option(package_name="methodology-assistant")
def main():
    """
    Methodology Assistant - stage-aware task generation and rule explanations.

    Generates one concrete task for a goal in a lifecycle stage (discover,
    plan, implement, verify, operate, improve), enforcing the Split Rule
    (estimates of 1-5 days), and explains the adaptive methodology rules.

    Supported providers:
      - OpenAI (requires OPENAI_API_KEY)
      - OpenRouter (requires OPENROUTER_API_KEY)
      - Qwen AI (DashScope API, requires QWEN_API_KEY)
      - Ollama (local, requires running Ollama server)
    """
    pass


@main.command("generate-task")
@click.argument("goal")
@click.option(
    "--stage",
    "-S",
    type=click.Choice(STAGE_NAMES),
    required=True,
    help="Current methodology stage",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS, case_sensitive=False),
    default=None,
    help="Output format (default: markdown)",
)
@click.option("--no-history", is_flag=True, default=False, help="Do not record the task in history")
@provider_options
def generate_task(
    goal: str,
    stage: str,
    output_format: Optional[str],
    no_history: bool,
    provider: Optional[str],
    model: Optional[str],
    temperature: Optional[float],
    seed: Optional[int],
    base_url: Optional[str],
    api_key: Optional[str],
    max_retries: Optional[int],
    timeout_ms: Optional[int],
    config_file: Optional[str],
    log_level: str,
    log_file: Optional[str],
    json_logging: bool,
):
    """
    Generate one task for GOAL in the given stage.

    Examples:

      methodassist generate-task "Implement secure password hashing" --stage implement

      methodassist generate-task "Define SLOs" -S plan -f json --provider ollama
    """
    cli_args = {
        "provider": provider,
        "model": model,
        "temperature": temperature,
        "seed": seed,
        "base_url": base_url,
        "api_key": api_key,
        "max_retries": max_retries,
        "timeout_ms": timeout_ms,
        "output_format": output_format,
        "record_history": False if no_history else None,
    }
    assistant, config_obj = _build_assistant(cli_args, config_file, log_level, log_file, json_logging)
    formatter = OutputFormatter()

    try:
        task = assistant.generate_task(goal, stage, record=False)
    except RuleViolation as e:
        formatter.print_error(str(e))
        for breach in e.breaches:
            formatter.print_error(f"  {breach.rule}: {breach.message}")
        sys.exit(_exit_code(e))
    except MethodologyError as e:
        formatter.print_error(str(e))
        sys.exit(_exit_code(e))

    output_format = config_obj.output_format.lower()
    rendered = render_task(task, output_format)
    assistant.record_task(goal, stage, task)
    formatter.print_text(rendered, output_format)


@main.command("explain-rule")
@click.argument("rule")
@click.option(
    "--text",
    default=None,
    help="Rule description; when given, RULE is used as a free-form title instead of a catalog key",
)
@click.option("--no-cache", is_flag=True, default=False, help="Do not persist the explanation")
@click.option("--cache-dir", type=click.Path(file_okay=False), default=None, help="Explanation cache directory")
@provider_options
def explain_rule(
    rule: str,
    text: Optional[str],
    no_cache: bool,
    cache_dir: Optional[str],
    provider: Optional[str],
    model: Optional[str],
    temperature: Optional[float],
    seed: Optional[int],
    base_url: Optional[str],
    api_key: Optional[str],
    max_retries: Optional[int],
    timeout_ms: Optional[int],
    config_file: Optional[str],
    log_level: str,
    log_file: Optional[str],
    json_logging: bool,
):
    """
    Explain why an adaptive rule matters.

    RULE is a catalog key (see `methodassist rules`) or a rule title.

    Examples:

      methodassist explain-rule split

      methodassist explain-rule "WIP Limit" --text "No more than 3 tasks in progress per person."
    """
    cli_args = {
        "provider": provider,
        "model": model,
        "temperature": temperature,
        "seed": seed,
        "base_url": base_url,
        "api_key": api_key,
        "max_retries": max_retries,
        "timeout_ms": timeout_ms,
        "cache_dir": cache_dir,
        "use_cache": False if no_cache else None,
    }
    formatter = OutputFormatter()
    try:
        if text is None:
            catalog_rule = get_rule(rule)
            rule_title, rule_text = catalog_rule.title, catalog_rule.description
        else:
            rule_title, rule_text = rule, text
        assistant, _ = _build_assistant(cli_args, config_file, log_level, log_file, json_logging)
        result = assistant.explain_rule(rule_title, rule_text)
    except ValidationError as e:
        formatter.print_error(str(e))
        sys.exit(_exit_code(e))

    if not result.explanation:
        formatter.print_warning(f"No explanation available for {rule_title!r} right now.")
        return
    formatter.print_text(f"## {rule_title}\n\n{result.explanation}")


@main.command()
@click.argument("stage", required=False, type=click.Choice(STAGE_NAMES))
def stages(stage: Optional[str]):
    """List lifecycle stages, or show one STAGE in detail."""
    formatter = OutputFormatter()
    if stage:
        formatter.print_text(stage_to_markdown(get_stage(stage)))
    else:
        formatter.print_stages(STAGES.values())


@main.command()
def rules():
    """List the adaptive task rules."""
    OutputFormatter().print_rules(RULES.values())


@main.command()
def principles():
    """List the guiding principles of the methodology."""
    OutputFormatter().print_principles(PRINCIPLES)


@main.command()
@click.option("--limit", "-n", type=click.IntRange(min=1), default=10, help="Number of tasks to show")
@click.option("--stage", "-S", type=click.Choice(STAGE_NAMES), default=None, help="Only this stage")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output JSON")
@click.option("--id", "record_id", default=None, help="Show one task by its record id")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to configuration file (YAML or JSON)",
)
def history(
    limit: int,
    stage: Optional[str],
    as_json: bool,
    record_id: Optional[str],
    config_file: Optional[str],
):
    """Show recently generated tasks, or one task with --id."""
    from methodassist.core.history import TaskHistory

    config_obj = Config.load(config_file=Path(config_file) if config_file else None)
    task_history = TaskHistory(config_obj.get_history_dir())
    formatter = OutputFormatter()

    if record_id is not None:
        record = task_history.get(record_id)
        if record is None:
            formatter.print_error(f"No generated task with id {record_id!r}")
            sys.exit(1)
        if as_json:
            formatter.print_data(record.model_dump(mode="json"))
        else:
            click.echo(f"{record.stage.value}: {record.goal}")
            formatter.print_task(record.task)
        return

    records = task_history.recent(limit=limit, stage=Stage(stage) if stage else None)
    if as_json:
        formatter.print_data([record.model_dump(mode="json") for record in records])
    elif not records:
        click.echo("No tasks generated yet.")
    else:
        formatter.print_history(records)


@main.group()
def config():
    """Configuration management commands."""
    pass


@config.command("export")
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default=None,
    help="Output file path (default: stdout)",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["yaml", "json"], case_sensitive=False),
    default="yaml",
    help="Output format (default: yaml)",
)
def config_export(output: Optional[str], format: str):
    """Export current configuration to file."""
    config_obj = Config.load()

    if output:
        output_path = Path(output)
        config_obj.save(output_path, format=format)
        click.echo(f"Configuration exported to: {output_path}")
    else:
        data = {k: v for k, v in config_obj.to_dict().items() if k != "api_key"}
        if format == "yaml":
            content = yaml.dump(data, default_flow_style=False, sort_keys=False)
        else:
            content = json.dumps(data, indent=2)
        click.echo(content)


@config.command("import")
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
def config_import(config_file: str):
    """Import configuration from file into the user config."""
    config_obj = Config()
    config_obj._load_file(Path(config_file))

    user_config_path = CONFIG_HOME / "config.yaml"
    config_obj.save(user_config_path, format="yaml")
    click.echo(f"Configuration imported and saved to: {user_config_path}")


if __name__ == "__main__":
    main()
