"""Error taxonomy for the methodology assistant."""

from enum import Enum
from typing import Any, Optional


class MethodologyError(Exception):
    """Base class for every error raised by the assistant core."""

    pass


class ValidationError(MethodologyError, ValueError):
    """Caller input failed a basic shape constraint.

    Raised before any call to the generation provider is made.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class GenerationFailure(MethodologyError, RuntimeError):
    """The generation provider call failed (timeout, transport, empty response)."""

    def __init__(
        self,
        message: str,
        attempts: int = 1,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ):
        super().__init__(message)
        self.attempts = attempts
        self.provider = provider
        self.model = model


class SchemaViolationKind(str, Enum):
    """Distinct ways a provider payload can fail the task schema."""

    MALFORMED = "malformed"
    MISSING_FIELD = "missing_field"
    WRONG_TYPE = "wrong_type"
    OUT_OF_ENUM = "out_of_enum"
    EMPTY_VALUE = "empty_value"
    EXTRA_FIELD = "extra_field"


class SchemaIssue:
    """A single structural problem found in a provider payload."""

    def __init__(self, kind: SchemaViolationKind, field: Optional[str], message: str):
        self.kind = kind
        self.field = field
        self.message = message

    def __repr__(self) -> str:
        return f"SchemaIssue(kind={self.kind.value!r}, field={self.field!r})"


class SchemaViolation(MethodologyError, ValueError):
    """Provider output could not be decoded or does not match the task schema."""

    def __init__(self, message: str, issues: list[SchemaIssue], raw: Any = None):
        super().__init__(message)
        self.issues = issues
        self.raw = raw

    @property
    def kind(self) -> SchemaViolationKind:
        """Kind of the first reported issue."""
        return self.issues[0].kind

    @property
    def kinds(self) -> set[SchemaViolationKind]:
        return {issue.kind for issue in self.issues}


class RuleBreach:
    """One domain rule broken by a decoded task."""

    def __init__(self, rule: str, field: str, value: Any, message: str):
        self.rule = rule
        self.field = field
        self.value = value
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule,
            "field": self.field,
            "value": self.value,
            "message": self.message,
        }

    def __repr__(self) -> str:
        return f"RuleBreach(rule={self.rule!r}, field={self.field!r}, value={self.value!r})"


class RuleViolation(MethodologyError, ValueError):
    """Output parsed correctly but breaks a methodology rule."""

    def __init__(self, breaches: list[RuleBreach]):
        message = "; ".join(breach.message for breach in breaches)
        super().__init__(f"Generated task rejected: {message}")
        self.breaches = breaches

    @property
    def fields(self) -> set[str]:
        return {breach.field for breach in self.breaches}
