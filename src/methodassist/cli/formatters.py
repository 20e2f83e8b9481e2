"""Output formatting for the CLI."""

import json
import sys
from typing import Any, Iterable

import yaml
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.table import Table

from methodassist.catalog.stages import StageInfo
from methodassist.core.config import OUTPUT_FORMATS
from methodassist.schemas.rule import Principle, Rule
from methodassist.schemas.task import GeneratedTask, TaskRecord


def task_to_markdown(task: GeneratedTask) -> str:
    """Render a task as a markdown section."""
    return "\n".join(
        [
            f"## {task.title}",
            "",
            task.description,
            "",
            f"- **Estimate:** {task.estimate} day{'s' if task.estimate != 1 else ''}",
            f"- **Risk:** {task.risk.value}",
            f"- **Priority:** {task.priority.value} ({task.priority.label})",
        ]
    )


def render_task(task: GeneratedTask, output_format: str = "markdown") -> str:
    """Render a task in one of OUTPUT_FORMATS."""
    output_format = output_format.lower()
    if output_format == "json":
        return json.dumps(task.to_payload(), indent=2, ensure_ascii=False)
    if output_format == "yaml":
        return yaml.dump(task.to_payload(), default_flow_style=False, sort_keys=False, allow_unicode=True)
    if output_format == "markdown":
        return task_to_markdown(task)
    raise ValueError(f"Unknown output format: {output_format}. Use one of: {', '.join(OUTPUT_FORMATS)}")


def stage_to_markdown(info: StageInfo) -> str:
    lines = [f"## {info.number}. {info.title}", "", f"**Goal:** {info.goal}", "", "### Activities"]
    lines.extend(f"- {activity}" for activity in info.activities)
    lines.extend(["", "### Default tasks"])
    lines.extend(f"- {task}" for task in info.tasks)
    return "\n".join(lines)


class OutputFormatter:
    """Prints CLI output through rich."""

    def __init__(self, force_color: bool = False):
        self.console = Console(force_terminal=force_color or None, file=sys.stdout)
        self.err_console = Console(stderr=True)

    def print_text(self, text: str, output_format: str = "markdown") -> None:
        if output_format == "markdown":
            self.console.print(Markdown(text))
        else:
            # json/yaml go out verbatim so they stay machine-readable
            self.console.print(text, markup=False, highlight=False, soft_wrap=True)

    def print_task(self, task: GeneratedTask, output_format: str = "markdown") -> None:
        self.print_text(render_task(task, output_format), output_format)

    def print_stages(self, stages: Iterable[StageInfo]) -> None:
        table = Table(title="Lifecycle Stages", show_header=True, header_style="bold magenta")
        table.add_column("#", style="cyan")
        table.add_column("Stage", style="cyan")
        table.add_column("Goal", style="green")
        for info in stages:
            table.add_row(str(info.number), info.stage.value, info.goal)
        self.console.print(table)

    def print_rules(self, rules: Iterable[Rule]) -> None:
        table = Table(title="Adaptive Task Rules", show_header=True, header_style="bold magenta")
        table.add_column("Key", style="cyan")
        table.add_column("Rule", style="cyan")
        table.add_column("Enforcement")
        table.add_column("Description", style="green")
        for rule in rules:
            table.add_row(rule.key, rule.title, rule.enforcement, rule.description)
        self.console.print(table)

    def print_principles(self, principles: Iterable[Principle]) -> None:
        for index, principle in enumerate(principles, start=1):
            self.console.print(f"[bold]{index}. {principle.title}[/bold] - {principle.description}")

    def print_history(self, records: Iterable[TaskRecord]) -> None:
        table = Table(title="Generated Tasks", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim")
        table.add_column("When", style="cyan")
        table.add_column("Stage")
        table.add_column("Title", style="green")
        table.add_column("Est.")
        table.add_column("Risk")
        table.add_column("Priority")
        for record in records:
            table.add_row(
                record.record_id,
                record.created_at.strftime("%Y-%m-%d %H:%M"),
                record.stage.value,
                record.task.title,
                str(record.task.estimate),
                record.task.risk.value,
                record.task.priority.value,
            )
        self.console.print(table)

    def print_error(self, message: str) -> None:
        self.err_console.print(f"[red]✗[/red] {escape(message)}", highlight=False)

    def print_warning(self, message: str) -> None:
        self.err_console.print(f"[yellow]⚠[/yellow] {escape(message)}", highlight=False)

    def print_data(self, data: Any) -> None:
        self.console.print_json(json.dumps(data, default=str))
