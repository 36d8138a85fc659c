from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain.schedule import ensure_utc
from domain.schemas.meal_schemas import DATE_PATTERN, TIME_PATTERN, MealEntry


class GenerateCodeRequest(BaseModel):
    """Ask for a pairing code on behalf of a named device"""

    device_name: str = Field(..., alias="deviceName", min_length=1)

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class GenerateCodeResponse(BaseModel):
    code: str


class UseCodeRequest(BaseModel):
    """Redeem a pairing code from another device"""

    code: str = Field(..., min_length=1)
    device_id: str = Field(..., alias="deviceId", min_length=1)

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class UseCodeResponse(BaseModel):
    success: bool = True
    meals: List[MealEntry]
    sync_group: str = Field(..., alias="syncGroup")

    model_config = ConfigDict(populate_by_name=True)


class SyncMealIn(BaseModel):
    """A meal as uploaded from a device's local schedule"""

    id: str = Field(..., min_length=1)
    date: str = Field(..., pattern=DATE_PATTERN)
    time: str = Field(..., pattern=TIME_PATTERN)
    food: str = Field(..., min_length=1)
    created_at: Optional[datetime] = None
    updated_at: datetime
    user_id: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v):
        return ensure_utc(v)


class SyncDataRequest(BaseModel):
    """Full upload of a device's schedule for merging"""

    device_id: str = Field(..., alias="deviceId", min_length=1)
    meals: Dict[str, List[SyncMealIn]] = Field(default_factory=dict)
    last_sync: Optional[datetime] = Field(None, alias="lastSync")

    model_config = ConfigDict(populate_by_name=True)


class SyncDataResponse(BaseModel):
    merged_meals: Dict[str, List[MealEntry]] = Field(..., alias="mergedMeals")

    model_config = ConfigDict(populate_by_name=True)
