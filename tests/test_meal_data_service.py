"""
Tests for the client-side Meal Data Service.

Covers:
- Local mode: ordering, add/remove round trip, idempotent updates
- Remote mode against the real app served in-process
- Downgrade to local mode on the first store failure
- Remote results arriving after a downgrade are discarded
- Loading and error state with overlapping calls
"""

import anyio
import httpx
import pytest
from pydantic import ValidationError

from test_fixtures import (
    API_BASE_URL,
    api,
    engine,
    failing_api,
    make_meal,
    meal_store,
    storage,
    store_override,
)
from adapters.meal_api_adapter import MealApiClient
from app.exceptions import NotFoundError, ServiceValidationError
from client import MealDataService, Mode

pytestmark = pytest.mark.anyio


def assert_partitions_sorted(schedules):
    for meals in schedules.values():
        times = [m.time for m in meals]
        assert times == sorted(times)


# =============================================================================
# LOCAL MODE
# =============================================================================


async def test_service_without_api_starts_local(meal_store):
    meal_store.save({"2025-03-10": [make_meal(food="Cached toast")]})

    service = MealDataService(meal_store)

    assert service.mode is Mode.LOCAL
    assert service.is_local_mode is True
    assert [m.food for m in service.schedules["2025-03-10"]] == ["Cached toast"]


async def test_local_partitions_stay_sorted(meal_store):
    """
    Test that every mutation leaves each date ordered by time.

    Verifies:
    - Inserts land in time order
    - An update that moves a meal later re-sorts the partition
    """
    service = MealDataService(meal_store)

    oatmeal = await service.add("2025-03-10", "08:00", "Oatmeal")
    await service.add("2025-03-10", "07:00", "Coffee")
    await service.add("2025-03-10", "12:30", "Soup")
    assert [m.food for m in service.schedules["2025-03-10"]] == ["Coffee", "Oatmeal", "Soup"]

    await service.update(oatmeal.id, "13:00", "Oatmeal")
    assert_partitions_sorted(service.schedules)
    assert [m.food for m in service.schedules["2025-03-10"]] == ["Coffee", "Soup", "Oatmeal"]


async def test_local_add_then_remove_restores_schedule(meal_store):
    service = MealDataService(meal_store)
    await service.add("2025-03-09", "19:00", "Risotto")
    before = service.schedules

    meal = await service.add("2025-03-10", "08:00", "Oatmeal")
    await service.remove(meal.id)

    assert service.schedules == before
    assert "2025-03-10" not in meal_store.load()


async def test_local_update_is_idempotent(meal_store):
    service = MealDataService(meal_store)
    meal = await service.add("2025-03-10", "08:00", "Oatmeal")

    await service.update(meal.id, "09:00", "Granola")
    first = {d: [(m.id, m.time, m.food) for m in ms] for d, ms in service.schedules.items()}
    await service.update(meal.id, "09:00", "Granola")
    second = {d: [(m.id, m.time, m.food) for m in ms] for d, ms in service.schedules.items()}

    assert first == second


async def test_local_add_persists_to_store(meal_store):
    service = MealDataService(meal_store)

    meal = await service.add("2025-03-10", "08:00", "Oatmeal")

    assert [m.id for m in meal_store.load()["2025-03-10"]] == [meal.id]
    assert meal.created_at == meal.updated_at


async def test_local_update_unknown_meal(meal_store):
    service = MealDataService(meal_store)

    with pytest.raises(NotFoundError):
        await service.update("missing", "09:00", "Toast")
    assert service.error == "Meal missing not found"


async def test_local_remove_unknown_meal_is_ignored(meal_store):
    service = MealDataService(meal_store)
    await service.add("2025-03-10", "08:00", "Oatmeal")

    await service.remove("missing")

    assert len(service.schedules["2025-03-10"]) == 1


@pytest.mark.parametrize(
    "date,time,food",
    [
        ("2025-03-10", "08:00", "  "),
        ("2025-03-10", "25:00", "Oatmeal"),
        ("2025-13-01", "08:00", "Oatmeal"),
    ],
)
async def test_invalid_input_is_rejected(meal_store, date, time, food):
    service = MealDataService(meal_store)

    with pytest.raises(ValidationError):
        await service.add(date, time, food)
    assert meal_store.load() == {}


async def test_local_fetch_reads_store(meal_store):
    service = MealDataService(meal_store)
    meal_store.save(
        {
            "2025-03-10": [make_meal(food="Oatmeal")],
            "2025-03-12": [make_meal(date="2025-03-12", food="Pasta")],
            "2025-03-20": [make_meal(date="2025-03-20", food="Tacos")],
        }
    )

    day = await service.fetch_for_date("2025-03-12")
    week = await service.fetch_for_range("2025-03-10", "2025-03-16")

    assert [m.food for m in day] == ["Pasta"]
    assert sorted(week) == ["2025-03-10", "2025-03-12"]


# =============================================================================
# REMOTE MODE
# =============================================================================


async def test_remote_round_trip(api, meal_store):
    """
    Test the service against the real app.

    Verifies:
    - Meals created remotely come back on fetch in time order
    - Nothing is written to local storage while remote
    """
    service = MealDataService(meal_store, api)

    await service.add("2025-03-10", "08:00", "Oatmeal")
    coffee = await service.add("2025-03-10", "07:00", "Coffee")
    day = await service.fetch_for_date("2025-03-10")

    assert service.mode is Mode.REMOTE
    assert [m.food for m in day] == ["Coffee", "Oatmeal"]
    assert meal_store.load() == {}

    await service.update(coffee.id, "09:00", "Espresso")
    await service.remove(day[1].id)
    assert [m.food for m in await service.fetch_for_date("2025-03-10")] == ["Espresso"]


async def test_remote_range_replaces_cached_dates(api, meal_store):
    service = MealDataService(meal_store, api)
    await service.add("2025-03-10", "08:00", "Oatmeal")
    await service.add("2025-03-20", "08:00", "Bagel")
    await service.fetch_for_range("2025-03-01", "2025-03-31")
    gone = service.schedules["2025-03-10"][0]
    await api.delete_meal(gone.id)

    week = await service.fetch_for_range("2025-03-10", "2025-03-16")

    assert week == {}
    assert "2025-03-10" not in service.schedules
    assert "2025-03-20" in service.schedules


# =============================================================================
# DOWNGRADE
# =============================================================================


async def test_failed_add_downgrades_and_replays_locally(meal_store):
    """
    Test the downgrade on a failing store.

    Verifies:
    - The add still succeeds and is stored locally
    - Mode switches to local for good
    - The next add makes no network call
    """
    calls = []
    service = MealDataService(meal_store, failing_api(calls=calls))

    meal = await service.add("2025-03-10", "08:00", "Oatmeal")

    assert service.is_local_mode is True
    assert [m.id for m in meal_store.load()["2025-03-10"]] == [meal.id]
    assert len(calls) == 1

    await service.add("2025-03-10", "07:00", "Coffee")
    await service.fetch_for_date("2025-03-10")
    assert len(calls) == 1
    assert [m.food for m in service.schedules["2025-03-10"]] == ["Coffee", "Oatmeal"]


async def test_inverted_range_is_rejected_before_calling_store(meal_store):
    """
    Test that a caller mistake does not cost the session its store.

    Verifies:
    - start_date after end_date raises ServiceValidationError
    - No request reaches the store and the mode stays remote
    """
    calls = []
    service = MealDataService(meal_store, failing_api(calls=calls))

    with pytest.raises(ServiceValidationError):
        await service.fetch_for_range("2025-03-16", "2025-03-10")

    assert calls == []
    assert service.mode is Mode.REMOTE
    assert service.loading is False


async def test_failed_fetch_records_error_and_keeps_cache(meal_store):
    meal_store.save({"2025-03-10": [make_meal(food="Cached oatmeal")]})
    service = MealDataService(meal_store, failing_api())

    day = await service.fetch_for_date("2025-03-10")

    assert service.is_local_mode is True
    assert service.error == "The meal store is unavailable"
    assert [m.food for m in day] == ["Cached oatmeal"]
    assert service.loading is False


async def test_unreachable_store_downgrades(meal_store):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    api = MealApiClient(API_BASE_URL, transport=httpx.MockTransport(handler))
    service = MealDataService(meal_store, api)

    await service.remove("anything")

    assert service.is_local_mode is True


async def test_non_json_response_downgrades(meal_store):
    api = MealApiClient(
        API_BASE_URL,
        transport=httpx.MockTransport(lambda request: httpx.Response(502, text="Bad gateway")),
    )
    service = MealDataService(meal_store, api)

    await service.fetch_for_range("2025-03-10", "2025-03-16")

    assert service.is_local_mode is True
    assert service.error == "Server returned non-JSON response: 502"


async def test_stale_remote_result_is_discarded(meal_store):
    """
    Test overlapping calls across a downgrade.

    A slow fetch is still waiting on the store when an add fails and
    downgrades the service. The fetch result must not reach the cache.
    """
    release = anyio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            await release.wait()
            return httpx.Response(200, json=[make_meal(food="Remote pizza").model_dump(mode="json")])
        release.set()
        return httpx.Response(503, json={"success": False, "error": {"code": "STORE_ERROR", "message": "down"}})

    service = MealDataService(meal_store, MealApiClient(API_BASE_URL, transport=httpx.MockTransport(handler)))

    async with anyio.create_task_group() as tg:
        tg.start_soon(service.fetch_for_date, "2025-03-10")
        await anyio.sleep(0)
        assert service.loading is True
        await service.add("2025-03-10", "08:00", "Oatmeal")

    assert service.is_local_mode is True
    assert service.loading is False
    assert [m.food for m in service.schedules["2025-03-10"]] == ["Oatmeal"]


async def test_newer_call_owns_error_slot(meal_store):
    """An earlier call failing after a newer call started does not set the error"""
    release = anyio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params.get("date") == "2025-03-10":
            await release.wait()
            return httpx.Response(500, json={"success": False, "error": {"code": "STORE_ERROR", "message": "slow failure"}})
        release.set()
        return httpx.Response(200, json=[])

    service = MealDataService(meal_store, MealApiClient(API_BASE_URL, transport=httpx.MockTransport(handler)))

    async with anyio.create_task_group() as tg:
        tg.start_soon(service.fetch_for_date, "2025-03-10")
        await anyio.sleep(0)
        await service.fetch_for_date("2025-03-11")

    assert service.is_local_mode is True
    assert service.error is None


async def test_state_snapshot(meal_store):
    service = MealDataService(meal_store)
    await service.add("2025-03-10", "08:00", "Oatmeal")

    state = service.state

    assert state.is_local_mode is True
    assert state.loading is False
    assert state.error is None
    assert [m.food for m in state.schedules["2025-03-10"]] == ["Oatmeal"]
