"""
Tests for building the client data layer from FOOD_SCHEDULER_* settings.
"""

import pytest

from adapters.meal_api_adapter import MealApiClient
from client import Mode, create_data_layer
from client import factory


@pytest.fixture(autouse=True)
def fresh_factory():
    factory.get_client_settings.cache_clear()
    factory.get_local_storage.cache_clear()
    factory.get_api_client.cache_clear()
    yield
    factory.get_client_settings.cache_clear()
    factory.get_local_storage.cache_clear()
    factory.get_api_client.cache_clear()


def test_local_only_without_api_url(monkeypatch, tmp_path):
    monkeypatch.delenv("FOOD_SCHEDULER_API_BASE_URL", raising=False)
    monkeypatch.setenv("FOOD_SCHEDULER_STORAGE_PATH", str(tmp_path / "storage.json"))

    meals, sync = create_data_layer()

    assert meals.mode is Mode.LOCAL
    assert sync.status.is_enabled is False
    assert (tmp_path / "storage.json").exists()


def test_remote_with_api_url(monkeypatch):
    monkeypatch.setenv("FOOD_SCHEDULER_API_BASE_URL", "http://localhost:8000/api")
    monkeypatch.delenv("FOOD_SCHEDULER_STORAGE_PATH", raising=False)

    meals, sync = create_data_layer()

    assert meals.mode is Mode.REMOTE
    assert sync.status.is_enabled is True
    assert isinstance(factory.get_api_client(), MealApiClient)
    assert factory.get_local_storage() is factory.get_local_storage()
