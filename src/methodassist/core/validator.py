"""Structured-output contract and validation for generated tasks."""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from methodassist.core.errors import (
    SchemaIssue,
    SchemaViolation,
    SchemaViolationKind,
    ValidationError,
)
from methodassist.schemas.task import MAX_ESTIMATE, MIN_ESTIMATE, Priority, Risk, TaskCandidate

M = TypeVar("M", bound=BaseModel)

TASK_SCHEMA_NAME = "task_generation"

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)

_KIND_BY_ERROR_TYPE = {
    "missing": SchemaViolationKind.MISSING_FIELD,
    "extra_forbidden": SchemaViolationKind.EXTRA_FIELD,
    "enum": SchemaViolationKind.OUT_OF_ENUM,
    "literal_error": SchemaViolationKind.OUT_OF_ENUM,
    "string_too_short": SchemaViolationKind.EMPTY_VALUE,
    "model_type": SchemaViolationKind.MALFORMED,
}


@dataclass(frozen=True)
class StructuredOutputSchema:
    """Output contract attached to a generation call."""

    name: str
    properties: dict[str, dict[str, Any]]
    required: tuple[str, ...]
    strict: bool = True
    additional_properties: bool = False
    description: Optional[str] = field(default=None)

    def to_json_schema(self) -> dict[str, Any]:
        """Bare JSON schema for the output object."""
        return {
            "type": "object",
            "properties": self.properties,
            "required": list(self.required),
            "additionalProperties": self.additional_properties,
        }

    def to_response_format(self) -> dict[str, Any]:
        """OpenAI-compatible ``response_format`` payload."""
        json_schema: dict[str, Any] = {
            "name": self.name,
            "strict": self.strict,
            "schema": self.to_json_schema(),
        }
        if self.description:
            json_schema["description"] = self.description
        return {"type": "json_schema", "json_schema": json_schema}


TASK_OUTPUT_SCHEMA = StructuredOutputSchema(
    name=TASK_SCHEMA_NAME,
    properties={
        "title": {"type": "string", "description": "A concise, actionable task title."},
        "description": {
            "type": "string",
            "description": "A detailed description of what needs to be done.",
        },
        "estimate": {
            "type": "integer",
            "description": f"Estimated work days ({MIN_ESTIMATE}-{MAX_ESTIMATE}).",
            "minimum": MIN_ESTIMATE,
            "maximum": MAX_ESTIMATE,
        },
        "risk": {"type": "string", "enum": [risk.value for risk in Risk]},
        "priority": {"type": "string", "enum": [priority.value for priority in Priority]},
    },
    required=("title", "description", "estimate", "risk", "priority"),
)


def _issue_from_error(err: dict[str, Any]) -> SchemaIssue:
    loc = " -> ".join(str(x) for x in err["loc"]) or None
    kind = _KIND_BY_ERROR_TYPE.get(err["type"], SchemaViolationKind.WRONG_TYPE)
    return SchemaIssue(kind=kind, field=loc, message=err.get("msg", ""))


def _format_validation_error(error: PydanticValidationError, schema_class: type[BaseModel]) -> str:
    """
    Format a pydantic error as a readable multi-line message.

    Args:
        error: Pydantic ValidationError
        schema_class: The schema class that failed validation

    Returns:
        Formatted error message
    """
    errors = error.errors()
    if not errors:
        return str(error)

    error_parts = [f"Validation failed for {schema_class.__name__}:"]
    for err in errors:
        loc = " -> ".join(str(x) for x in err["loc"]) or "<root>"
        error_parts.append(f"  Field: {loc}")
        error_parts.append(f"    Error: {err.get('msg', '')}")
        error_parts.append(f"    Type: {err['type']}")

        input_value = err.get("input")
        if input_value is not None and err["type"] != "missing":
            input_str = str(input_value)
            if len(input_str) > 100:
                input_str = input_str[:97] + "..."
            error_parts.append(f"    Input value: {input_str}")

    return "\n".join(error_parts)


def parse_input(schema_class: type[M], **data: Any) -> M:
    """
    Validate caller input against a request schema.

    Raises:
        ValidationError: Naming the first offending field
    """
    try:
        return schema_class.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field_name = str(first["loc"][0]) if first["loc"] else None
        raise ValidationError(_format_validation_error(e, schema_class), field=field_name) from e


def decode_payload(raw: Union[str, bytes, Mapping[str, Any]]) -> dict[str, Any]:
    """
    Decode provider output into a JSON object.

    Accepts a mapping as-is, a JSON string, or JSON wrapped in a markdown
    code block.

    Raises:
        SchemaViolation: With kind ``malformed`` if no JSON object is found
    """
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SchemaViolation(
                f"Provider output is not valid UTF-8: {e}",
                [SchemaIssue(SchemaViolationKind.MALFORMED, None, "payload is not valid UTF-8")],
                raw=raw,
            ) from e
    if not isinstance(raw, str):
        raise SchemaViolation(
            f"Expected encoded JSON, got {type(raw).__name__}",
            [SchemaIssue(SchemaViolationKind.MALFORMED, None, "unsupported payload type")],
            raw=raw,
        )

    candidates = [raw.strip()]
    match = _FENCED_JSON.search(raw)
    if match:
        candidates.append(match.group(1))

    for text in candidates:
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
        raise SchemaViolation(
            f"Expected a JSON object, got {type(data).__name__}",
            [SchemaIssue(SchemaViolationKind.MALFORMED, None, "payload is not an object")],
            raw=raw,
        )

    preview = raw[:200] + "..." if len(raw) > 200 else raw
    raise SchemaViolation(
        f"Could not decode JSON from provider output: {preview}",
        [SchemaIssue(SchemaViolationKind.MALFORMED, None, "payload is not valid JSON")],
        raw=raw,
    )


class TaskSchemaValidator:
    """
    Structural contract for generated tasks.

    Used twice per request: ``schema`` is handed to the gateway so the
    provider is constrained at source, and ``validate`` re-checks whatever
    came back since providers treat the constraint as advisory.
    """

    def __init__(self, schema: StructuredOutputSchema = TASK_OUTPUT_SCHEMA):
        self.schema = schema

    def validate(self, raw: Union[str, bytes, Mapping[str, Any]]) -> TaskCandidate:
        """
        Decode and validate provider output.

        Raises:
            SchemaViolation: If the payload is malformed or structurally wrong
        """
        data = decode_payload(raw)
        try:
            return TaskCandidate.model_validate(data)
        except PydanticValidationError as e:
            issues = [_issue_from_error(err) for err in e.errors()]
            raise SchemaViolation(
                _format_validation_error(e, TaskCandidate), issues, raw=raw
            ) from e
