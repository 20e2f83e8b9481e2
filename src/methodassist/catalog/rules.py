"""Adaptive rules and guiding principles of the methodology."""

from types import MappingProxyType
from typing import Mapping

from methodassist.core.errors import ValidationError
from methodassist.schemas.rule import Principle, Rule

SPLIT_RULE = Rule(
    key="split",
    title="Split Rule (Task > 5 days)",
    description=(
        "If a task exceeds 5 work-days remaining, the owner must split it into "
        "subtasks. This ensures work remains granular and completable."
    ),
    enforcement="hard",
)

ESCALATION_RULE = Rule(
    key="escalation",
    title="Escalation Rule (P0 Blocked > 24h)",
    description=(
        "If a P0 (critical) task is blocked for more than 24 hours, it "
        "automatically notifies leadership to ensure the blocker is removed."
    ),
)

SLO_BREACH_RULE = Rule(
    key="slo-breach",
    title="SLO Breach Rule",
    description=(
        "If an SLO alert fires twice in 7 days, an incident RCA epic is "
        "automatically created and prioritized to P0 to fix the root cause."
    ),
)

RULES: Mapping[str, Rule] = MappingProxyType(
    {rule.key: rule for rule in (SPLIT_RULE, ESCALATION_RULE, SLO_BREACH_RULE)}
)

PRINCIPLES: tuple[Principle, ...] = (
    Principle(
        "Research -> Implement -> Verify",
        "Keep an evidence-driven loop: discover, build, and confirm.",
    ),
    Principle(
        "Config-over-Code",
        "Environment, thresholds, and feature flags must be externalized.",
    ),
    Principle(
        "Design for Observability",
        "Instrument early: logs, metrics, traces, and health checks.",
    ),
    Principle(
        "Security & Privacy by Design",
        "Include threat models, secrets handling, and federated options.",
    ),
    Principle(
        "Modularity & Single Responsibility",
        "Small, testable components with clear interfaces.",
    ),
    Principle(
        "Fail-fast, Recover-gracefully",
        "Define error types and recovery strategies; prefer explicit failures.",
    ),
    Principle(
        "Empirical & Measurable",
        "Every claim should be testable and measurable through benchmarks.",
    ),
    Principle(
        "Continuous Improvement",
        "Retrospectives and experiment registries to capture learnings.",
    ),
)


def get_rule(key: str) -> Rule:
    """
    Look up a rule by key or by exact title.

    Raises:
        ValidationError: If no rule matches
    """
    if key in RULES:
        return RULES[key]
    for rule in RULES.values():
        if rule.title == key:
            return rule
    raise ValidationError(
        f"Unknown rule: {key!r}. Known rules: {', '.join(RULES)}", field="rule"
    )
