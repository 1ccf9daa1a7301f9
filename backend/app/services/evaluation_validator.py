from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from app.models.evaluation import (
    GRADUATION_YEAR_SPAN,
    REQUIRED_MESSAGES,
    TYPE_MESSAGES,
    PlayerEvaluationPayload,
)


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: list[FieldError] = field(default_factory=list)
    value: dict[str, Any] | None = None


def _field_error(error: dict[str, Any]) -> FieldError:
    loc = error.get("loc") or ()
    name = str(loc[0]) if loc else "body"
    kind = error.get("type")
    if kind == "missing":
        return FieldError(name, REQUIRED_MESSAGES.get(name, f"{name} is required"))
    if kind == "value_error":
        cause = (error.get("ctx") or {}).get("error")
        if cause is not None:
            return FieldError(name, str(cause))
    return FieldError(name, TYPE_MESSAGES.get(name, error.get("msg", "Invalid value")))


def validate_evaluation(
    payload: Any,
    *,
    current_year: int | None = None,
    year_span: int = GRADUATION_YEAR_SPAN,
) -> ValidationResult:
    """Check an evaluation submission and collect every field problem at once.

    On success ``value`` holds the cleaned payload: narrative fields trimmed
    and unknown keys dropped.
    """
    context = {"current_year": current_year, "year_span": year_span}
    try:
        model = PlayerEvaluationPayload.model_validate(payload, context=context)
    except ValidationError as exc:
        errors = [_field_error(item) for item in exc.errors()]
        return ValidationResult(valid=False, errors=errors)
    return ValidationResult(valid=True, value=model.model_dump())
