"""
Client package - offline-first data layer used by the views.
"""

from client.meal_data_service import MealDataService, MealState, Mode
from client.sync_coordinator import SyncCoordinator, SyncStatus
from client.factory import create_data_layer

__all__ = [
    "MealDataService",
    "MealState",
    "Mode",
    "SyncCoordinator",
    "SyncStatus",
    "create_data_layer",
]
