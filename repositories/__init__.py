"""
Repositories package - Data access layer.
"""

from repositories.base import BaseRepository
from repositories.meal_repository import MealRepository
from repositories.sync_code_repository import SyncCodeRepository

__all__ = [
    "BaseRepository",
    "MealRepository",
    "SyncCodeRepository",
]
