"""Device-local storage adapter.

Keeps a handful of named string slots (the device's schedule, its device id,
the last sync time) in a single JSON document on disk, or in memory when no
path is configured. Every write replaces the whole document.
"""

from pathlib import Path
from typing import Dict, Optional
import json
import logging
import os

from domain.schemas.meal_schemas import DaySchedule, dump_schedule, load_schedule

logger = logging.getLogger("foodscheduler.local_storage")

MEALS_SLOT = "food-scheduler-meals"
DEVICE_ID_SLOT = "device-id"
LAST_SYNC_SLOT = "last-sync"


class LocalStorage:
    """Named string slots persisted together as one JSON document."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else None
        self._slots: Dict[str, str] = self._read()

    def _read(self) -> Dict[str, str]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error("Could not read local storage %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.error("Local storage %s is not a JSON object; starting empty", self.path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(self._slots, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    def get_item(self, key: str) -> Optional[str]:
        return self._slots.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._slots[key] = value
        self._flush()

    def remove_item(self, key: str) -> None:
        if self._slots.pop(key, None) is not None:
            self._flush()


class LocalMealStore:
    """Reads and writes the device's whole DaySchedule in one storage slot."""

    def __init__(self, storage: LocalStorage, slot: str = MEALS_SLOT):
        self.storage = storage
        self.slot = slot

    def load(self) -> DaySchedule:
        """
        Return the stored schedule.

        Absent content is an empty schedule. Corrupt content is logged and
        also treated as empty.
        """
        raw = self.storage.get_item(self.slot)
        if not raw:
            return {}
        try:
            return load_schedule(json.loads(raw))
        except ValueError as exc:
            logger.error("Error loading meals from local storage: %s", exc)
            return {}

    def save(self, schedules: DaySchedule) -> None:
        self.storage.set_item(self.slot, json.dumps(dump_schedule(schedules)))
