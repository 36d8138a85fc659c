"""
Process-wide construction of the client data layer.

Objects are built on first use and live for the rest of the process. They are
handed to the Meal Data Service and Sync Coordinator explicitly.
"""

from functools import lru_cache
from typing import Optional, Tuple
import logging

from adapters.local_storage_adapter import LocalMealStore, LocalStorage
from adapters.meal_api_adapter import MealApiClient
from app.config import ClientSettings
from client.meal_data_service import MealDataService
from client.sync_coordinator import SyncCoordinator

logger = logging.getLogger("foodscheduler.client")


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()


@lru_cache
def get_local_storage() -> LocalStorage:
    return LocalStorage(get_client_settings().storage_path)


@lru_cache
def get_api_client() -> Optional[MealApiClient]:
    settings = get_client_settings()
    if not settings.api_base_url:
        logger.warning("Meal store not configured - running in local mode")
        return None
    return MealApiClient(settings.api_base_url, timeout=settings.request_timeout)


def create_data_layer() -> Tuple[MealDataService, SyncCoordinator]:
    """Build a Meal Data Service and Sync Coordinator sharing one storage and client."""
    storage = get_local_storage()
    store = LocalMealStore(storage)
    api = get_api_client()
    return MealDataService(store, api), SyncCoordinator(storage, store, api)
