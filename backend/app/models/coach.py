from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

EDITABLE_FIELDS = ("phoneNumber",)

# Fields an NJCAA coach sees in settings; only phoneNumber is self-service.
EDITABLE_FIELD_MAP: dict[str, bool] = {
    "phoneNumber": True,
    "position": False,
    "teamSport": False,
    "college": False,
    "division": False,
}


class CoachSettingsUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    phoneNumber: str | None = Field(
        None, min_length=10, max_length=20, pattern=r"^\+?[\d\s\-()]+$"
    )
