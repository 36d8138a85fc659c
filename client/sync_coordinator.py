"""
Sync Coordinator - device identity, pairing codes, merge sync and backups.

Sync failures are never retried here. Each one is raised to the caller as
SyncError with the store's message, and local storage is left as it was.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union
import json
import logging
import secrets
import string
import time

from pydantic import BaseModel

from adapters.local_storage_adapter import (
    DEVICE_ID_SLOT,
    LAST_SYNC_SLOT,
    LocalMealStore,
    LocalStorage,
)
from adapters.meal_api_adapter import MealApiClient
from app.exceptions import StoreError, SyncError
from domain.schedule import ensure_utc, find_meal, sort_partition, utcnow
from domain.schemas.meal_schemas import DaySchedule, dump_schedule, load_schedule
from domain.schemas.sync_schemas import UseCodeResponse

logger = logging.getLogger("foodscheduler.client.sync")

BACKUP_VERSION = "1.0"
INVALID_BACKUP = "Failed to import data: Invalid file format"

_DEVICE_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


class SyncStatus(BaseModel):
    """Process-local view of sync; never sent to the store"""

    is_enabled: bool
    device_id: str
    last_sync: Optional[str] = None
    pending_changes: int = 0


def new_device_id() -> str:
    """Millisecond timestamp plus a random base-36 suffix, e.g. device-1741593600000-k3j9x0q2a"""
    suffix = "".join(secrets.choice(_DEVICE_SUFFIX_ALPHABET) for _ in range(9))
    return f"device-{int(time.time() * 1000)}-{suffix}"


class SyncCoordinator:
    def __init__(
        self,
        storage: LocalStorage,
        store: LocalMealStore,
        api: Optional[MealApiClient] = None,
    ):
        self._storage = storage
        self._store = store
        self._api = api
        self._pending_changes = 0
        self._device_id = self._ensure_device_id()

    def _ensure_device_id(self) -> str:
        device_id = self._storage.get_item(DEVICE_ID_SLOT)
        if not device_id:
            device_id = new_device_id()
            self._storage.set_item(DEVICE_ID_SLOT, device_id)
            logger.info("Generated device id %s", device_id)
        return device_id

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def status(self) -> SyncStatus:
        return SyncStatus(
            is_enabled=self._api is not None,
            device_id=self._device_id,
            last_sync=self._storage.get_item(LAST_SYNC_SLOT),
            pending_changes=self._pending_changes,
        )

    def _require_api(self) -> MealApiClient:
        if self._api is None:
            raise SyncError("Sync not available - meal store not configured")
        return self._api

    def _mark_synced(self) -> str:
        now = utcnow().isoformat()
        self._storage.set_item(LAST_SYNC_SLOT, now)
        return now

    # ------------------ Pairing ------------------

    async def generate_code(self, device_name: str) -> str:
        """Ask the store for a pairing code to relay to another device."""
        api = self._require_api()
        try:
            code = await api.generate_code(device_name)
        except StoreError as exc:
            logger.error("Failed to generate sync code: %s", exc)
            raise SyncError(str(exc)) from exc
        logger.info("Generated sync code for '%s'", device_name)
        return code

    async def redeem_code(self, code: str) -> UseCodeResponse:
        """
        Redeem a pairing code issued on another device.

        The meals of the sync group are merged into local storage meal by
        meal; a stored copy is replaced only by a strictly newer one.
        """
        api = self._require_api()
        try:
            result = await api.use_code(code.strip(), self._device_id)
        except StoreError as exc:
            logger.error("Failed to use sync code: %s", exc)
            raise SyncError(str(exc)) from exc

        schedules = self._store.load()
        touched = set()
        for meal in result.meals:
            current = find_meal(schedules, meal.id)
            if current is not None and ensure_utc(meal.updated_at) <= ensure_utc(current.updated_at):
                continue
            if current is not None:
                schedules[current.date] = [m for m in schedules[current.date] if m.id != meal.id]
                touched.add(current.date)
            schedules.setdefault(meal.date, []).append(meal)
            touched.add(meal.date)
        for date in touched:
            if schedules[date]:
                schedules[date] = sort_partition(schedules[date])
            else:
                del schedules[date]
        self._store.save(schedules)
        self._mark_synced()
        logger.info("Joined sync group %s with %d meals", result.sync_group, len(result.meals))
        return result

    # ------------------ Merge sync ------------------

    async def sync_now(self) -> DaySchedule:
        """Upload the local schedule, then replace it with the store's merged schedule."""
        api = self._require_api()
        meals = self._store.load()
        try:
            merged = await api.sync_data(
                self._device_id, meals, self._storage.get_item(LAST_SYNC_SLOT)
            )
        except StoreError as exc:
            logger.error("Failed to sync data: %s", exc)
            raise SyncError(str(exc)) from exc

        self._store.save(merged)
        self._mark_synced()
        self._pending_changes = 0
        logger.info(
            "Synced %d local dates; store returned %d dates", len(meals), len(merged)
        )
        return merged

    # ------------------ Backups ------------------

    def backup_document(self) -> Dict[str, Any]:
        return {
            "version": BACKUP_VERSION,
            "exportDate": utcnow().isoformat(),
            "deviceId": self._device_id,
            "meals": dump_schedule(self._store.load()),
        }

    def export_backup(self, directory: Union[str, Path] = ".") -> Path:
        """Write food-scheduler-backup-YYYY-MM-DD.json into directory and return its path."""
        document = self.backup_document()
        target = Path(directory)
        target.mkdir(parents=True, exist_ok=True)
        path = target / f"food-scheduler-backup-{document['exportDate'][:10]}.json"
        path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        logger.info("Exported %d dates to %s", len(document["meals"]), path)
        return path

    def import_backup(self, path: Union[str, Path]) -> int:
        """
        Merge a backup file into local storage and return the number of imported dates.

        Each imported date replaces that whole date locally, re-sorted by time;
        an empty imported date clears that date. Dates missing from the backup
        are kept. Unlike sync_now this does not compare meals one by one.

        Raises:
            SyncError: If the file cannot be read or is not a backup document
        """
        try:
            content = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise SyncError("Failed to read file") from exc

        try:
            document = json.loads(content)
            if not isinstance(document, dict) or "meals" not in document:
                raise ValueError("missing 'meals'")
            imported = load_schedule(document["meals"])
        except ValueError as exc:
            logger.error("Rejected backup %s: %s", path, exc)
            raise SyncError(INVALID_BACKUP) from exc

        merged = self._store.load()
        for date, meals in imported.items():
            if meals:
                merged[date] = sort_partition(meals)
            else:
                merged.pop(date, None)
        self._store.save(merged)
        self._pending_changes += len(imported)
        logger.info("Imported %d dates from %s", len(imported), path)
        return len(imported)
