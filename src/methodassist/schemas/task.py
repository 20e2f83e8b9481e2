"""Schemas for task generation requests and results."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator

MIN_ESTIMATE = 1
MAX_ESTIMATE = 5


class Stage(str, Enum):
    """Lifecycle stages of the methodology, in order."""

    DISCOVER = "discover"
    PLAN = "plan"
    IMPLEMENT = "implement"
    VERIFY = "verify"
    OPERATE = "operate"
    IMPROVE = "improve"


class Risk(str, Enum):
    """Risk level of a generated task."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Priority(str, Enum):
    """Priority of a generated task."""

    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"

    @property
    def label(self) -> str:
        return PRIORITY_LABELS[self]


PRIORITY_LABELS = {
    Priority.P0: "Critical",
    Priority.P1: "High",
    Priority.P2: "Medium",
    Priority.P3: "Low",
}


class GenerationRequest(BaseModel):
    """A caller's request for a single task."""

    goal: str = Field(description="High-level objective supplied by the user")
    stage: Stage = Field(description="Current methodology stage")

    @field_validator("goal")
    @classmethod
    def goal_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("goal must not be empty")
        return v


class TaskCandidate(BaseModel):
    """
    Task payload decoded from provider output.

    Structure and types are enforced here; the estimate bounds are left to
    the rule engine so a too-large estimate is reported as a rule breach
    rather than as malformed output.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: StrictStr = Field(min_length=1, description="A concise, actionable task title.")
    description: StrictStr = Field(
        min_length=1, description="A detailed description of what needs to be done."
    )
    estimate: StrictInt = Field(description="Estimated work days (1-5).")
    risk: Risk
    priority: Priority


class GeneratedTask(BaseModel):
    """A task that passed both the schema and the methodology rules."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    estimate: int = Field(ge=MIN_ESTIMATE, le=MAX_ESTIMATE)
    risk: Risk
    priority: Priority

    def to_payload(self) -> dict:
        """Plain JSON-compatible representation."""
        return self.model_dump(mode="json")


class TaskRecord(BaseModel):
    """History entry for a generated task."""

    record_id: str
    stage: Stage
    goal: str
    task: GeneratedTask
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
