"""
Helpers shared by the store and the client for working with day schedules.

A day schedule maps an ISO date (YYYY-MM-DD) to the meals planned on that
date, ordered by time of day.
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, TypeVar

T = TypeVar("T")


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a timestamp to aware UTC. Naive values are taken as UTC (SQLite drops tzinfo)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def sort_partition(meals: Iterable[T]) -> List[T]:
    """Order one date partition by time of day; equal times keep their current order."""
    return sorted(meals, key=lambda meal: meal.time)


def group_by_date(meals: Iterable[T]) -> Dict[str, List[T]]:
    """Group flat meal records into date partitions, preserving input order."""
    grouped: Dict[str, List[T]] = {}
    for meal in meals:
        grouped.setdefault(meal.date, []).append(meal)
    return grouped


def find_meal(schedules: Dict[str, List[T]], meal_id: str) -> Optional[T]:
    """Locate a meal by id across every partition."""
    for meals in schedules.values():
        for meal in meals:
            if meal.id == meal_id:
                return meal
    return None
