from datetime import date as date_type, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from domain.schedule import ensure_utc

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def _check_calendar_date(value: str) -> str:
    try:
        date_type.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"'{value}' is not a valid calendar date") from exc
    return value


class MealCreate(BaseModel):
    """Schema for scheduling a new meal"""

    date: str = Field(..., pattern=DATE_PATTERN, description="Calendar date (YYYY-MM-DD)")
    time: str = Field(..., pattern=TIME_PATTERN, description="Time of day (HH:MM, 24-hour)")
    food: str = Field(..., min_length=1, description="What is being eaten")

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        return _check_calendar_date(v)


class MealUpdate(BaseModel):
    """Schema for changing the time or description of a meal"""

    time: str = Field(..., pattern=TIME_PATTERN, description="Time of day (HH:MM, 24-hour)")
    food: str = Field(..., min_length=1, description="What is being eaten")

    model_config = ConfigDict(str_strip_whitespace=True)


class MealEntry(BaseModel):
    """A scheduled meal as stored remotely and cached on devices"""

    id: str
    date: str
    time: str
    food: str
    created_at: datetime
    updated_at: datetime
    user_id: Optional[str] = None
    device_id: Optional[str] = None
    synced_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at", "updated_at", "synced_at")
    @classmethod
    def normalize_timestamps(cls, v):
        return ensure_utc(v)


DaySchedule = Dict[str, List[MealEntry]]

_day_schedule = TypeAdapter(DaySchedule)


def load_schedule(data: Any) -> DaySchedule:
    """Validate JSON-shaped data (date -> list of meal dicts) into a DaySchedule.

    Raises:
        ValueError: If the data is not a mapping of dates to meal lists
    """
    if not isinstance(data, dict):
        raise ValueError("A day schedule must be a mapping of dates to meals")
    return _day_schedule.validate_python(data)


def dump_schedule(schedules: DaySchedule) -> Dict[str, List[Dict[str, Any]]]:
    """Render a DaySchedule as JSON-ready data, leaving out unset remote-only fields."""
    return _day_schedule.dump_python(schedules, mode="json", exclude_none=True)
