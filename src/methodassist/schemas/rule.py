"""Schemas for adaptive rules and their cached explanations."""

from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator


@dataclass(frozen=True)
class Rule:
    """An adaptive methodology rule."""

    key: str
    title: str
    description: str
    # "hard" rules are enforced on generated tasks, "advisory" ones are only explained
    enforcement: str = "advisory"


@dataclass(frozen=True)
class Principle:
    """A guiding principle of the methodology."""

    title: str
    description: str


class ExplanationRequest(BaseModel):
    """A caller's request to explain a rule."""

    rule_title: str
    rule_text: str

    @field_validator("rule_title", "rule_text")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v


class RuleExplanation(BaseModel):
    """Stored explanation, keyed by rule title."""

    rule_title: str
    rule_description: str
    explanation: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ExplanationResult(BaseModel):
    """Response returned for an explanation request."""

    explanation: str = ""
