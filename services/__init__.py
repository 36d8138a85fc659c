"""Services package - Business logic layer"""

from services.meal_service import MealService
from services.sync_service import SyncService

__all__ = [
    "MealService",
    "SyncService",
]
