"""Domain-rule checks applied to decoded tasks."""

from typing import Any, Mapping, Union

from pydantic import BaseModel

from methodassist.catalog.rules import SPLIT_RULE
from methodassist.core.errors import RuleBreach, RuleViolation
from methodassist.core.logging import get_logger
from methodassist.core.validator import TaskSchemaValidator
from methodassist.schemas.task import (
    MAX_ESTIMATE,
    MIN_ESTIMATE,
    GeneratedTask,
    Priority,
    Risk,
    TaskCandidate,
)

logger = get_logger("methodassist.rule_engine")

Candidate = Union[TaskCandidate, GeneratedTask, Mapping[str, Any]]


def _as_dict(candidate: Candidate) -> dict[str, Any]:
    if isinstance(candidate, BaseModel):
        return candidate.model_dump(mode="json")
    return dict(candidate)


class RuleEngine:
    """
    Validates candidate tasks against the methodology rules.

    Violations are reported, never repaired: an estimate above the Split
    Rule bound means the task has to be split, and clamping it would hide
    that from the caller.
    """

    def __init__(self, min_estimate: int = MIN_ESTIMATE, max_estimate: int = MAX_ESTIMATE):
        self.min_estimate = min_estimate
        self.max_estimate = max_estimate
        self.allowed_risks = frozenset(risk.value for risk in Risk)
        self.allowed_priorities = frozenset(priority.value for priority in Priority)

    def check(self, candidate: Candidate) -> list[RuleBreach]:
        """Return every rule the candidate breaks (empty if it passes)."""
        data = _as_dict(candidate)
        breaches: list[RuleBreach] = []

        estimate = data.get("estimate")
        if isinstance(estimate, bool) or not isinstance(estimate, int):
            breaches.append(
                RuleBreach(
                    rule=SPLIT_RULE.title,
                    field="estimate",
                    value=estimate,
                    message=f"estimate must be a whole number of days, got {estimate!r}",
                )
            )
        elif estimate > self.max_estimate:
            breaches.append(
                RuleBreach(
                    rule=SPLIT_RULE.title,
                    field="estimate",
                    value=estimate,
                    message=(
                        f"estimate {estimate} exceeds {self.max_estimate} days; "
                        "the task must be split into subtasks"
                    ),
                )
            )
        elif estimate < self.min_estimate:
            breaches.append(
                RuleBreach(
                    rule=SPLIT_RULE.title,
                    field="estimate",
                    value=estimate,
                    message=f"estimate {estimate} is below the minimum of {self.min_estimate} day",
                )
            )

        risk = data.get("risk")
        if risk not in self.allowed_risks:
            breaches.append(
                RuleBreach(
                    rule="Risk levels",
                    field="risk",
                    value=risk,
                    message=f"risk {risk!r} is not one of {', '.join(sorted(self.allowed_risks))}",
                )
            )

        priority = data.get("priority")
        if priority not in self.allowed_priorities:
            breaches.append(
                RuleBreach(
                    rule="Priority levels",
                    field="priority",
                    value=priority,
                    message=(
                        f"priority {priority!r} is not one of "
                        f"{', '.join(sorted(self.allowed_priorities))}"
                    ),
                )
            )

        return breaches

    def validate_task(self, candidate: Candidate) -> GeneratedTask:
        """
        Accept a candidate as a GeneratedTask.

        Raises:
            RuleViolation: Listing every breached rule
            SchemaViolation: If a plain mapping passes the rules but lacks text fields
        """
        breaches = self.check(candidate)
        if breaches:
            logger.warning(
                "Generated task rejected by rule engine",
                context={"breaches": [breach.to_dict() for breach in breaches]},
            )
            raise RuleViolation(breaches)

        if not isinstance(candidate, BaseModel):
            # plain mappings have not been through the structural check yet
            candidate = TaskSchemaValidator().validate(candidate)
        data = _as_dict(candidate)
        return GeneratedTask(
            title=data["title"],
            description=data["description"],
            estimate=data["estimate"],
            risk=Risk(data["risk"]),
            priority=Priority(data["priority"]),
        )
