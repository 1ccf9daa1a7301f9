from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, StrictBool, ValidationInfo, field_validator

GRADUATION_YEAR_SPAN = 6

# (min, max) length after trimming.
TEXT_LIMITS: dict[str, tuple[int, int]] = {
    "roleInTeam": (5, 500),
    "performanceLevel": (10, 1000),
    "playerStrengths": (10, 1000),
    "improvementAreas": (10, 1000),
    "mentality": (10, 500),
    "coachability": (10, 500),
    "technique": (10, 500),
    "physique": (10, 500),
    "coachFinalComment": (20, 1500),
}

FIELD_LABELS: dict[str, str] = {
    "availableToTransfer": "Transfer availability",
    "expectedGraduationYear": "Expected graduation year",
    "roleInTeam": "Role in team",
    "performanceLevel": "Performance level assessment",
    "playerStrengths": "Player strengths assessment",
    "improvementAreas": "Areas for improvement",
    "mentality": "Mentality assessment",
    "coachability": "Coachability assessment",
    "technique": "Technical assessment",
    "physique": "Physical assessment",
    "coachFinalComment": "Final coach comment",
}

REQUIRED_MESSAGES: dict[str, str] = {
    "availableToTransfer": "Please specify if the player is available for transfer",
    "expectedGraduationYear": "Expected graduation year is required",
    **{field: f"{FIELD_LABELS[field]} is required" for field in TEXT_LIMITS},
}

TYPE_MESSAGES: dict[str, str] = {
    "availableToTransfer": "Transfer availability must be yes or no",
    "expectedGraduationYear": "Graduation year must be a valid 4-digit year",
    "body": "Evaluation must be a JSON object",
}

PLACEHOLDER_VALUES = frozenset(
    {"n/a", "na", "none", "nothing", "null", "...", "-", "tbd", "todo", "test", "xxx", "asdf"}
)

EVALUATION_FIELDS: tuple[str, ...] = (
    "availableToTransfer",
    "expectedGraduationYear",
    *TEXT_LIMITS,
)


class PlayerEvaluationPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    availableToTransfer: StrictBool
    expectedGraduationYear: int
    roleInTeam: str
    performanceLevel: str
    playerStrengths: str
    improvementAreas: str
    mentality: str
    coachability: str
    technique: str
    physique: str
    coachFinalComment: str

    @field_validator("expectedGraduationYear", mode="before")
    @classmethod
    def reject_boolean_year(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError(TYPE_MESSAGES["expectedGraduationYear"])
        return value

    @field_validator("expectedGraduationYear")
    @classmethod
    def validate_year_window(cls, value: int, info: ValidationInfo) -> int:
        context = info.context or {}
        current_year = context.get("current_year")
        if current_year is None:
            current_year = datetime.now(timezone.utc).year
        span = context.get("year_span")
        if span is None:
            span = GRADUATION_YEAR_SPAN
        if value < current_year or value > current_year + span:
            raise ValueError(
                f"Graduation year must be between {current_year} and {current_year + span}"
            )
        return value

    @field_validator(*TEXT_LIMITS, mode="before")
    @classmethod
    def validate_narrative(cls, value: Any, info: ValidationInfo) -> str:
        field = info.field_name
        label = FIELD_LABELS[field]
        if not isinstance(value, str):
            raise ValueError(f"{label} must be text")
        text = value.strip()
        if text.casefold() in PLACEHOLDER_VALUES:
            raise ValueError(f"{label} needs a real assessment, not a placeholder like '{text}'")
        minimum, maximum = TEXT_LIMITS[field]
        if len(text) < minimum:
            raise ValueError(f"Please provide at least {minimum} characters for {label.lower()}")
        if len(text) > maximum:
            raise ValueError(f"{label} must not exceed {maximum} characters")
        return text
