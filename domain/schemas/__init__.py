"""
Domain schemas package - Pydantic models for validation.
"""

from domain.schemas.meal_schemas import (
    MealCreate,
    MealUpdate,
    MealEntry,
    DaySchedule,
    load_schedule,
    dump_schedule,
)
from domain.schemas.sync_schemas import (
    GenerateCodeRequest,
    GenerateCodeResponse,
    UseCodeRequest,
    UseCodeResponse,
    SyncMealIn,
    SyncDataRequest,
    SyncDataResponse,
)

__all__ = [
    # Meal schemas
    "MealCreate",
    "MealUpdate",
    "MealEntry",
    "DaySchedule",
    "load_schedule",
    "dump_schedule",
    # Sync schemas
    "GenerateCodeRequest",
    "GenerateCodeResponse",
    "UseCodeRequest",
    "UseCodeResponse",
    "SyncMealIn",
    "SyncDataRequest",
    "SyncDataResponse",
]
