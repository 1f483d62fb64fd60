"""
Payload validation for the resource collections.

The pydantic models in bookstore.models are the rule sets; this module runs
them and reduces pydantic's error output to a flat list of field violations.
Nothing here keeps state or touches the database.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence, Type

from pydantic import BaseModel, ValidationError

from bookstore.models import FieldViolation, ValidationErrorData, ValidationErrorResponse

# pydantic error type -> rule name reported to API callers
RULE_NAMES = {
    "missing": "required",
    "string_type": "string",
    "string_too_short": "min_length",
    "string_too_long": "max_length",
    "float_type": "numeric",
    "float_parsing": "numeric",
    "finite_number": "numeric",
    "int_type": "integer",
    "int_parsing": "integer",
    "int_from_float": "integer",
    "greater_than_equal": "min",
    "greater_than": "min",
    "less_than_equal": "max",
    "less_than": "max",
    "enum": "in",
    "list_type": "array",
    "too_short": "min_items",
    "model_type": "object",
    "model_attributes_type": "object",
    "dict_type": "object",
    "value_error": "format",
}

# Resource path segment -> label used in the failure message
RESOURCE_LABELS = {
    "users": "User",
    "books": "Book",
    "orders": "Order",
    "reviews": "Review",
}


@dataclass
class ValidationResult:
    """Outcome of checking one payload against a rule set."""
    valid: bool
    violations: List[FieldViolation] = field(default_factory=list)
    data: Optional[BaseModel] = None


def _field_path(loc: Sequence[Any]) -> str:
    parts = [str(part) for part in loc]
    if parts and parts[0] == "body":
        parts = parts[1:]
    return ".".join(parts) or "body"


def violations_from_errors(errors: Iterable[dict]) -> List[FieldViolation]:
    """
    Convert pydantic/FastAPI error dictionaries into field violations.

    Args:
        errors: Output of ValidationError.errors() or RequestValidationError.errors()

    Returns:
        One FieldViolation per failed rule, in pydantic's order
    """
    violations = []
    for error in errors:
        error_type = error.get("type", "invalid")
        message = error.get("msg", "Invalid value")
        if error_type == "value_error" and message.startswith("Value error, "):
            message = message[len("Value error, "):]
        violations.append(FieldViolation(
            field=_field_path(error.get("loc", ())),
            rule=RULE_NAMES.get(error_type, error_type),
            message=message
        ))
    return violations


def validate_payload(model: Type[BaseModel], payload: Any) -> ValidationResult:
    """
    Check a payload against a rule set outside a request.

    HTTP bodies are checked by FastAPI itself and reported through
    validation_failure(); this is the same check for scripts and tests.

    Args:
        model: Pydantic model acting as the rule set
        payload: Decoded JSON body

    Returns:
        ValidationResult carrying either the parsed model or the violations
    """
    try:
        data = model.model_validate(payload)
    except ValidationError as e:
        return ValidationResult(valid=False, violations=violations_from_errors(e.errors()))
    return ValidationResult(valid=True, data=data)


def is_empty_body(body: Any) -> bool:
    """A body that is missing, not a JSON object, or an empty object."""
    return not isinstance(body, dict) or len(body) == 0


def failure_message(path: str) -> str:
    """Message for a 412 response, named after the resource in the path."""
    segment = path.strip("/").split("/", 1)[0]
    label = RESOURCE_LABELS.get(segment)
    return f"{label} validation failed" if label else "Validation failed"


def validation_failure(path: str, errors: Iterable[dict]) -> ValidationErrorResponse:
    """
    Build the 412 body for a request whose payload broke its rule set.

    Args:
        path: Request path, used to name the resource
        errors: Body errors from RequestValidationError.errors()
    """
    return ValidationErrorResponse(
        message=failure_message(path),
        data=ValidationErrorData(errors=violations_from_errors(errors))
    )
