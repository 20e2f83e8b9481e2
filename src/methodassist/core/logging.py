"""Structured logging for the methodology assistant."""

import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pythonjsonlogger.json import JsonFormatter

ROOT_LOGGER_NAME = "methodassist"

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class LogLevel(str, Enum):
    """Log level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _build_formatter(json_output: bool) -> logging.Formatter:
    if json_output:
        return JsonFormatter(JSON_FORMAT)
    return logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


class StructuredLogger:
    """
    Logger that attaches structured context to every record.

    Context keys end up as attributes on the ``LogRecord`` so the JSON
    formatter emits them as top-level fields.
    """

    def __init__(self, name: str = ROOT_LOGGER_NAME):
        """
        Initialize structured logger.

        Args:
            name: Logger name, normally a dotted child of ``methodassist``
        """
        self.name = name
        self.logger = logging.getLogger(name)

    def _log_with_context(
        self,
        level: int,
        message: str,
        context: Optional[dict[str, Any]] = None,
        **kwargs: Any,
    ) -> None:
        if context:
            kwargs.update(context)
        # "message" and "asctime" are reserved by LogRecord
        extra = {
            (f"ctx_{key}" if key in ("message", "asctime") else key): value
            for key, value in kwargs.items()
        }
        self.logger.log(level, message, extra=extra or None)

    def debug(self, message: str, context: Optional[dict[str, Any]] = None, **kwargs: Any) -> None:
        """Log debug message."""
        self._log_with_context(logging.DEBUG, message, context, **kwargs)

    def info(self, message: str, context: Optional[dict[str, Any]] = None, **kwargs: Any) -> None:
        """Log info message."""
        self._log_with_context(logging.INFO, message, context, **kwargs)

    def warning(self, message: str, context: Optional[dict[str, Any]] = None, **kwargs: Any) -> None:
        """Log warning message."""
        self._log_with_context(logging.WARNING, message, context, **kwargs)

    def error(self, message: str, context: Optional[dict[str, Any]] = None, **kwargs: Any) -> None:
        """Log error message."""
        self._log_with_context(logging.ERROR, message, context, **kwargs)

    def log_llm_call(
        self,
        provider: str,
        model: str,
        prompt: str,
        response: str,
        latency_ms: Optional[float] = None,
        attempt: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        """
        Log a generation call with structured metadata.

        Args:
            provider: Provider name (e.g., "openai", "ollama")
            model: Model name
            prompt: Prompt text sent (truncated in logs)
            response: Response text received (truncated in logs)
            latency_ms: Request latency in milliseconds
            attempt: 1-based attempt number
            **kwargs: Additional metadata
        """
        prompt_preview = prompt[:200] + "..." if len(prompt) > 200 else prompt
        response_preview = response[:200] + "..." if len(response) > 200 else response

        context = {
            "event_type": "llm_call",
            "provider": provider,
            "model": model,
            "prompt_length": len(prompt),
            "response_length": len(response),
            "prompt_preview": prompt_preview,
            "response_preview": response_preview,
        }
        if latency_ms is not None:
            context["latency_ms"] = latency_ms
        if attempt is not None:
            context["attempt"] = attempt
        context.update(kwargs)

        self.info(f"LLM call: {provider}/{model}", context=context)

    def log_pipeline_stage(
        self,
        stage: str,
        status: str,
        duration_ms: Optional[float] = None,
        **kwargs: Any,
    ) -> None:
        """
        Log a step of a request flow.

        Args:
            stage: Step name (e.g., "task_generation", "rule_explanation")
            status: "started", "completed" or "failed"
            duration_ms: Step duration in milliseconds
            **kwargs: Additional metadata
        """
        context = {
            "event_type": "pipeline_stage",
            "stage": stage,
            "status": status,
        }
        if duration_ms is not None:
            context["duration_ms"] = duration_ms
        context.update(kwargs)

        if status == "failed":
            self.error(f"Pipeline stage {stage} failed", context=context)
        elif status == "completed":
            self.info(f"Pipeline stage {stage} completed", context=context)
        else:
            self.info(f"Pipeline stage {stage} started", context=context)

    def log_token_usage(
        self,
        provider: str,
        model: str,
        tokens_input: int,
        tokens_output: int,
        **kwargs: Any,
    ) -> None:
        """Log token usage reported by the provider."""
        context = {
            "event_type": "token_usage",
            "provider": provider,
            "model": model,
            "tokens_input": tokens_input,
            "tokens_output": tokens_output,
            "tokens_total": tokens_input + tokens_output,
        }
        context.update(kwargs)

        self.info(f"Token usage: {tokens_input + tokens_output} tokens", context=context)


def get_logger(name: str = ROOT_LOGGER_NAME) -> StructuredLogger:
    """
    Get a structured logger.

    Names outside the ``methodassist`` hierarchy are nested under it so that
    a single ``configure_logging`` call controls every logger.
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return StructuredLogger(name)


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
) -> StructuredLogger:
    """
    Configure handlers on the root ``methodassist`` logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON-formatted logs
        log_file: Optional file path to write logs to

    Returns:
        Root StructuredLogger
    """
    log_level = getattr(logging, LogLevel[level.upper()].value)
    formatter = _build_formatter(json_output)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(log_level)
    root.propagate = False
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    return StructuredLogger(ROOT_LOGGER_NAME)
