"""
Tests for the client-side Sync Coordinator.

Covers:
- Device identity persistence
- Pairing codes against the real app served in-process
- Merge sync (last writer wins per meal)
- Backup export and import
"""

import json

import pytest
from sqlalchemy.orm import Session

from test_fixtures import (
    api,
    db_session,
    engine,
    failing_api,
    make_meal,
    make_stored_meal,
    meal_store,
    storage,
    store_override,
    ts,
)
from adapters.local_storage_adapter import DEVICE_ID_SLOT, LAST_SYNC_SLOT, LocalMealStore, LocalStorage
from app.exceptions import SyncError
from client import MealDataService, SyncCoordinator
from client.sync_coordinator import INVALID_BACKUP, new_device_id

pytestmark = pytest.mark.anyio


# =============================================================================
# DEVICE IDENTITY AND STATUS
# =============================================================================


async def test_device_id_is_generated_once(storage, meal_store):
    first = SyncCoordinator(storage, meal_store)
    second = SyncCoordinator(storage, meal_store)

    assert first.device_id == second.device_id
    assert storage.get_item(DEVICE_ID_SLOT) == first.device_id


async def test_device_id_format():
    prefix, millis, suffix = new_device_id().split("-")

    assert prefix == "device"
    assert millis.isdigit()
    assert len(suffix) == 9 and suffix.isalnum()


async def test_status_without_store(storage, meal_store):
    status = SyncCoordinator(storage, meal_store).status

    assert status.is_enabled is False
    assert status.last_sync is None
    assert status.pending_changes == 0


@pytest.mark.parametrize("operation", ["generate_code", "redeem_code"])
async def test_sync_unavailable_without_store(storage, meal_store, operation):
    coordinator = SyncCoordinator(storage, meal_store)

    with pytest.raises(SyncError, match="Sync not available"):
        await getattr(coordinator, operation)("123456")


async def test_sync_now_unavailable_without_store(storage, meal_store):
    with pytest.raises(SyncError):
        await SyncCoordinator(storage, meal_store).sync_now()


# =============================================================================
# PAIRING
# =============================================================================


async def test_generate_and_redeem_code(api, db_session: Session):
    """
    Test pairing two devices.

    Verifies:
    - The issuing device gets a six-digit code
    - The redeeming device stores the group's meals locally and records last sync
    - Redeeming the same code again fails without touching local storage
    """
    phone_storage = LocalStorage()
    phone = SyncCoordinator(phone_storage, LocalMealStore(phone_storage), api)
    laptop_storage = LocalStorage()
    laptop_meals = LocalMealStore(laptop_storage)
    laptop = SyncCoordinator(laptop_storage, laptop_meals, api)
    db_session.add(make_stored_meal(device_id=laptop.device_id, food="Chili"))
    db_session.commit()

    code = await phone.generate_code("Phone")
    result = await laptop.redeem_code(code)

    assert len(code) == 6 and code.isdigit()
    assert result.success is True
    assert [m.food for m in laptop_meals.load()["2025-03-10"]] == ["Chili"]
    assert laptop.status.last_sync is not None

    before = laptop_meals.load()
    with pytest.raises(SyncError, match="Invalid or expired sync code"):
        await laptop.redeem_code(code)
    assert laptop_meals.load() == before


async def test_redeem_keeps_newer_local_copy(api, db_session: Session, storage, meal_store):
    coordinator = SyncCoordinator(storage, meal_store, api)
    remote = make_stored_meal(device_id=coordinator.device_id, food="Old chili", updated_at=ts(2))
    db_session.add(remote)
    db_session.commit()
    meal_store.save({"2025-03-10": [make_meal(meal_id=remote.id, food="New chili", updated_at=ts(4))]})

    code = await SyncCoordinator(LocalStorage(), LocalMealStore(LocalStorage()), api).generate_code("Tablet")
    await coordinator.redeem_code(code)

    assert [m.food for m in meal_store.load()["2025-03-10"]] == ["New chili"]


async def test_generate_code_store_failure(storage, meal_store):
    coordinator = SyncCoordinator(storage, meal_store, failing_api())

    with pytest.raises(SyncError, match="The meal store is unavailable"):
        await coordinator.generate_code("Phone")


# =============================================================================
# MERGE SYNC
# =============================================================================


async def test_sync_now_local_newer_wins(api, db_session: Session, storage, meal_store):
    """
    Test a sync where this device holds the newer copy.

    Verifies:
    - The merged schedule replaces local storage
    - Last sync is recorded and pending changes reset
    """
    coordinator = SyncCoordinator(storage, meal_store, api)
    remote = make_stored_meal(device_id=coordinator.device_id, food="Tofu stir fry", updated_at=ts(1))
    db_session.add(remote)
    db_session.commit()
    local = make_meal(meal_id=remote.id, food="Tofu stir fry with rice", updated_at=ts(2))
    meal_store.save({"2025-03-10": [local]})

    merged = await coordinator.sync_now()

    assert [m.food for m in merged["2025-03-10"]] == ["Tofu stir fry with rice"]
    assert meal_store.load() == merged
    assert storage.get_item(LAST_SYNC_SLOT) is not None
    assert coordinator.status.pending_changes == 0


async def test_sync_now_remote_newer_wins(api, db_session: Session, storage, meal_store):
    coordinator = SyncCoordinator(storage, meal_store, api)
    remote = make_stored_meal(device_id=coordinator.device_id, food="Paella", updated_at=ts(3))
    db_session.add(remote)
    db_session.commit()
    meal_store.save({"2025-03-10": [make_meal(meal_id=remote.id, food="Risotto", updated_at=ts(2))]})

    merged = await coordinator.sync_now()

    assert [m.food for m in merged["2025-03-10"]] == ["Paella"]
    assert [m.food for m in meal_store.load()["2025-03-10"]] == ["Paella"]


async def test_sync_now_failure_leaves_local_storage(storage, meal_store):
    meal_store.save({"2025-03-10": [make_meal(food="Oatmeal")]})
    before = meal_store.load()
    coordinator = SyncCoordinator(storage, meal_store, failing_api())

    with pytest.raises(SyncError):
        await coordinator.sync_now()

    assert meal_store.load() == before
    assert storage.get_item(LAST_SYNC_SLOT) is None


# =============================================================================
# BACKUPS
# =============================================================================


async def test_export_import_round_trip(tmp_path, storage, meal_store):
    """
    Test that a backup restores the same schedule on an empty device.
    """
    meal_store.save(
        {
            "2025-03-10": [make_meal(time="07:00", food="Coffee"), make_meal(food="Oatmeal")],
            "2025-03-11": [make_meal(date="2025-03-11", food="Muesli")],
        }
    )
    source = SyncCoordinator(storage, meal_store)

    path = source.export_backup(tmp_path)

    assert path.name.startswith("food-scheduler-backup-")
    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["version"] == "1.0"
    assert document["deviceId"] == source.device_id

    target_storage = LocalStorage()
    target_meals = LocalMealStore(target_storage)
    target = SyncCoordinator(target_storage, target_meals)
    assert target.import_backup(path) == 2
    assert target_meals.load() == meal_store.load()
    assert target.status.pending_changes == 2


async def test_import_replaces_whole_dates(tmp_path, storage, meal_store):
    """Dates in the backup replace local dates wholesale; other dates are kept"""
    meal_store.save(
        {
            "2025-03-10": [make_meal(food="Local oatmeal")],
            "2025-03-12": [make_meal(date="2025-03-12", food="Local pasta")],
        }
    )
    backup = tmp_path / "backup.json"
    backup.write_text(
        json.dumps(
            {
                "version": "1.0",
                "exportDate": "2025-03-15T10:00:00+00:00",
                "deviceId": "device-other",
                "meals": {"2025-03-10": [make_meal(food="Imported bagel").model_dump(mode="json")]},
            }
        ),
        encoding="utf-8",
    )

    SyncCoordinator(storage, meal_store).import_backup(backup)

    schedules = meal_store.load()
    assert [m.food for m in schedules["2025-03-10"]] == ["Imported bagel"]
    assert [m.food for m in schedules["2025-03-12"]] == ["Local pasta"]


async def test_import_sorts_partitions_by_time(tmp_path, storage, meal_store):
    """
    Test that imported dates come back ordered by time of day.

    Verifies:
    - A backup listing Lunch before Coffee is stored Coffee first
    - Local-mode reads see the sorted partition
    - An empty imported date clears that date locally
    """
    meal_store.save({"2025-03-11": [make_meal(date="2025-03-11", food="Local muesli")]})
    backup = tmp_path / "backup.json"
    backup.write_text(
        json.dumps(
            {
                "version": "1.0",
                "exportDate": "2025-03-15T10:00:00+00:00",
                "deviceId": "device-other",
                "meals": {
                    "2025-03-10": [
                        make_meal(time="12:00", food="Lunch").model_dump(mode="json"),
                        make_meal(time="07:00", food="Coffee").model_dump(mode="json"),
                    ],
                    "2025-03-11": [],
                },
            }
        ),
        encoding="utf-8",
    )

    assert SyncCoordinator(storage, meal_store).import_backup(backup) == 2

    day = await MealDataService(meal_store).fetch_for_date("2025-03-10")
    assert [m.time for m in day] == ["07:00", "12:00"]
    assert "2025-03-11" not in meal_store.load()


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        json.dumps(["2025-03-10"]),
        json.dumps({"version": "1.0"}),
        json.dumps({"meals": ["2025-03-10"]}),
        json.dumps({"meals": {"2025-03-10": [{"food": "No id"}]}}),
    ],
)
async def test_import_malformed_backup(tmp_path, storage, meal_store, content):
    meal_store.save({"2025-03-10": [make_meal(food="Oatmeal")]})
    before = meal_store.load()
    backup = tmp_path / "backup.json"
    backup.write_text(content, encoding="utf-8")
    coordinator = SyncCoordinator(storage, meal_store)

    with pytest.raises(SyncError) as exc_info:
        coordinator.import_backup(backup)

    assert str(exc_info.value) == INVALID_BACKUP
    assert meal_store.load() == before
    assert coordinator.status.pending_changes == 0


async def test_import_missing_file(tmp_path, storage, meal_store):
    with pytest.raises(SyncError, match="Failed to read file"):
        SyncCoordinator(storage, meal_store).import_backup(tmp_path / "missing.json")
