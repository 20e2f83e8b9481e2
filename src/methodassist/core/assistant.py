"""Methodology assistant: the entry point wiring provider, flows and stores."""

from pathlib import Path
from typing import Optional, Union

from methodassist.catalog.rules import get_rule
from methodassist.catalog.stages import parse_stage
from methodassist.core.cache import ExplanationCache, FileExplanationStore, MemoryExplanationStore
from methodassist.core.config import Config
from methodassist.core.gateway import DEFAULT_TIMEOUT_MS, GenerationGateway
from methodassist.core.history import TaskHistory
from methodassist.core.llm_base import ChatClient
from methodassist.core.logging import StructuredLogger, get_logger
from methodassist.core.provider_factory import create_client
from methodassist.schemas.rule import ExplanationResult
from methodassist.schemas.task import GeneratedTask, Stage, TaskRecord
from methodassist.stages.rule_explainer import RuleExplainer
from methodassist.stages.task_generator import TaskGenerator


class MethodologyAssistant:
    """
    Generates stage-aware tasks and explains adaptive rules.

    Error handling differs between the two operations on purpose:
    ``generate_task`` raises on any failure so no invalid task reaches the
    caller, while ``explain_rule`` returns an empty explanation when the
    provider fails so the caller's flow is not blocked.
    """

    def __init__(
        self,
        provider: str = "auto",
        model: Optional[str] = None,
        temperature: float = 0.0,
        seed: Optional[int] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        max_retries: int = 0,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        cache_dir: Optional[Path] = None,
        history_dir: Optional[Path] = None,
        client: Optional[ChatClient] = None,
    ):
        """
        Initialize assistant.

        Args:
            provider: Provider ("openai", "openrouter", "qwen", "ollama", or "auto")
            model: Model name (provider-specific, uses defaults if None)
            temperature: Generation temperature (0.0 for determinism)
            seed: Random seed for determinism
            base_url: Provider endpoint override
            api_key: Provider API key
            max_retries: Extra attempts on provider failure
            timeout_ms: Per-call deadline in milliseconds
            cache_dir: Directory for persisted explanations (None keeps them in memory)
            history_dir: Directory for generated-task history (None to disable)
            client: Ready-made chat client; skips provider detection
        """
        if client is None:
            client = create_client(
                provider=provider,
                model=model,
                temperature=temperature,
                seed=seed,
                base_url=base_url,
                api_key=api_key,
            )

        self.gateway = GenerationGateway(client, max_retries=max_retries, timeout_ms=timeout_ms)

        store = FileExplanationStore(Path(cache_dir)) if cache_dir else MemoryExplanationStore()
        self.cache = ExplanationCache(store)

        self.task_generator = TaskGenerator(self.gateway)
        self.rule_explainer = RuleExplainer(self.gateway, cache=self.cache)

        self.history: Optional[TaskHistory] = TaskHistory(Path(history_dir)) if history_dir else None

        self.logger: StructuredLogger = get_logger("methodassist.assistant")

    @classmethod
    def from_config(
        cls, config: Config, client: Optional[ChatClient] = None
    ) -> "MethodologyAssistant":
        """Build an assistant from a loaded Config."""
        return cls(
            provider=config.provider,
            model=config.model,
            temperature=config.temperature,
            seed=config.seed,
            base_url=config.base_url,
            api_key=config.api_key,
            max_retries=config.max_retries,
            timeout_ms=config.timeout_ms,
            cache_dir=config.get_cache_dir() if config.use_cache else None,
            history_dir=config.get_history_dir() if config.record_history else None,
            client=client,
        )

    def generate_task(
        self, goal: str, stage: Union[Stage, str], record: bool = True
    ) -> GeneratedTask:
        """
        Generate one task for a goal in a lifecycle stage.

        Args:
            goal: High-level objective
            stage: Methodology stage name
            record: Save the task to history (when history is enabled)

        Raises:
            ValidationError, GenerationFailure, SchemaViolation, RuleViolation
        """
        task = self.task_generator.generate(goal, stage)
        if record:
            self.record_task(goal, stage, task)
        return task

    def record_task(
        self, goal: str, stage: Union[Stage, str], task: GeneratedTask
    ) -> Optional[TaskRecord]:
        """Save a generated task to history; returns None when history is disabled."""
        if self.history is None:
            return None
        return self.history.record(goal, parse_stage(stage), task)

    def explain_rule(self, rule_title: str, rule_text: str) -> ExplanationResult:
        """
        Explain an adaptive rule, using the cache when possible.

        Raises:
            ValidationError: If the title or text is empty
        """
        explanation = self.rule_explainer.explain(rule_title, rule_text)
        return ExplanationResult(explanation=explanation)

    def explain_catalog_rule(self, key: str) -> ExplanationResult:
        """Explain a rule from the catalog, looked up by key or title."""
        rule = get_rule(key)
        return self.explain_rule(rule.title, rule.description)

    def recent_tasks(
        self, limit: int = 10, stage: Optional[Union[Stage, str]] = None
    ) -> list[TaskRecord]:
        """Most recently generated tasks, newest first."""
        if self.history is None:
            return []
        return self.history.recent(limit=limit, stage=parse_stage(stage) if stage else None)
