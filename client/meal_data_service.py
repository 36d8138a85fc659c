"""
Meal Data Service - the data layer behind the calendar, table and weekly views.

The service talks to the meal store while it is reachable and falls back to
device-local storage for the rest of the session as soon as any store call
fails. Mutations that hit a failing store are replayed against local storage
so the caller still succeeds.

Calls are not serialized. Two overlapping calls may race and the last one to
finish wins in the cached schedules; each partition is still re-sorted after
every mutation.
"""

from enum import Enum
from typing import List, Optional, Set
import itertools
import logging
import uuid

from pydantic import BaseModel, ConfigDict, Field

from adapters.local_storage_adapter import LocalMealStore
from adapters.meal_api_adapter import MealApiClient
from app.exceptions import NotFoundError, ServiceValidationError, StoreError
from domain.schedule import find_meal, group_by_date, sort_partition, utcnow
from domain.schemas.meal_schemas import DaySchedule, MealCreate, MealEntry, MealUpdate

logger = logging.getLogger("foodscheduler.client.meals")


class Mode(str, Enum):
    """Where meals are read from and written to"""

    REMOTE = "remote"
    LOCAL = "local"


class MealState(BaseModel):
    """Snapshot of what the views render"""

    schedules: DaySchedule = Field(default_factory=dict)
    loading: bool = False
    error: Optional[str] = None
    is_local_mode: bool = False

    model_config = ConfigDict(frozen=True)


def new_meal_id() -> str:
    return str(uuid.uuid4())


def _copy(schedules: DaySchedule) -> DaySchedule:
    return {date: list(meals) for date, meals in schedules.items()}


def _without(schedules: DaySchedule, meal_id: str) -> DaySchedule:
    """Drop a meal from every partition; partitions left empty are removed."""
    remaining: DaySchedule = {}
    for date, meals in schedules.items():
        kept = [meal for meal in meals if meal.id != meal_id]
        if kept:
            remaining[date] = kept
    return remaining


def _with(schedules: DaySchedule, meal: MealEntry) -> DaySchedule:
    """Place a meal in its date partition, replacing any copy with the same id."""
    updated = _without(schedules, meal.id)
    partition = list(schedules.get(meal.date, []))
    index = next((i for i, m in enumerate(partition) if m.id == meal.id), None)
    if index is None:
        partition.append(meal)
    else:
        partition[index] = meal
    updated[meal.date] = sort_partition(partition)
    return updated


class MealDataService:
    """
    Fetch, add, update and remove meals in remote or local mode.

    Mode only ever moves REMOTE -> LOCAL within a session. A service built
    without an API client starts in LOCAL mode.
    """

    def __init__(self, store: LocalMealStore, api: Optional[MealApiClient] = None):
        self._store = store
        self._api = api
        self._mode = Mode.REMOTE if api is not None else Mode.LOCAL
        self._schedules: DaySchedule = store.load() if self._mode is Mode.LOCAL else {}
        self._error: Optional[str] = None
        self._tokens = itertools.count(1)
        self._latest = 0
        self._in_flight: Set[int] = set()

    # ------------------ State ------------------

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def is_local_mode(self) -> bool:
        return self._mode is Mode.LOCAL

    @property
    def loading(self) -> bool:
        return bool(self._in_flight)

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def schedules(self) -> DaySchedule:
        return _copy(self._schedules)

    @property
    def state(self) -> MealState:
        return MealState(
            schedules=self.schedules,
            loading=self.loading,
            error=self._error,
            is_local_mode=self.is_local_mode,
        )

    def _begin(self) -> int:
        token = next(self._tokens)
        self._latest = token
        self._in_flight.add(token)
        self._error = None
        return token

    def _finish(self, token: int) -> None:
        self._in_flight.discard(token)

    def _fail(self, token: int, message: str) -> None:
        # A newer call owns the error slot once it has started
        if token == self._latest:
            self._error = message

    def _downgrade(self, reason: str) -> None:
        """Switch to local mode for good, keeping what is already cached."""
        if self._mode is Mode.LOCAL:
            return
        self._mode = Mode.LOCAL
        logger.warning("Switched to local mode due to store error: %s", reason)
        schedules = _copy(self._schedules)
        schedules.update(self._store.load())
        self._store.save(schedules)
        self._schedules = schedules

    def _remote_still_current(self, action: str) -> bool:
        if self._mode is Mode.REMOTE:
            return True
        logger.info("Discarding remote result of %s: switched to local mode meanwhile", action)
        return False

    # ------------------ Reads ------------------

    async def fetch_for_date(self, date: str) -> List[MealEntry]:
        """Meals on one date, ordered by time. Store failures return the cached partition."""
        token = self._begin()
        try:
            if self._mode is Mode.REMOTE:
                try:
                    meals = await self._api.list_meals(date=date)
                except StoreError as exc:
                    logger.error("Error fetching meals for %s: %s", date, exc)
                    self._fail(token, str(exc))
                    self._downgrade(str(exc))
                else:
                    if self._remote_still_current(f"fetch {date}"):
                        schedules = _copy(self._schedules)
                        if meals:
                            schedules[date] = sort_partition(meals)
                        else:
                            schedules.pop(date, None)
                        self._schedules = schedules
            else:
                self._schedules = self._store.load()
            return list(self._schedules.get(date, []))
        finally:
            self._finish(token)

    async def fetch_for_range(self, start_date: str, end_date: str) -> DaySchedule:
        """
        Meals between two dates (inclusive), grouped by date.

        Remote results replace the cached partitions inside the range; dates
        outside the range stay cached untouched.

        Raises:
            ServiceValidationError: If start_date is after end_date
        """
        if start_date > end_date:
            raise ServiceValidationError(
                f"startDate {start_date} is after endDate {end_date}",
                details={"startDate": start_date, "endDate": end_date},
            )
        token = self._begin()
        try:
            if self._mode is Mode.REMOTE:
                try:
                    meals = await self._api.list_meals(start_date=start_date, end_date=end_date)
                except StoreError as exc:
                    logger.error("Error fetching meals %s..%s: %s", start_date, end_date, exc)
                    self._fail(token, str(exc))
                    self._downgrade(str(exc))
                else:
                    if self._remote_still_current(f"fetch {start_date}..{end_date}"):
                        schedules = {
                            date: partition
                            for date, partition in self._schedules.items()
                            if not start_date <= date <= end_date
                        }
                        for date, partition in group_by_date(meals).items():
                            schedules[date] = sort_partition(partition)
                        self._schedules = schedules
            else:
                self._schedules = self._store.load()
            return {
                date: list(partition)
                for date, partition in sorted(self._schedules.items())
                if start_date <= date <= end_date
            }
        finally:
            self._finish(token)

    # ------------------ Mutations ------------------

    async def add(self, date: str, time: str, food: str) -> MealEntry:
        """
        Schedule a meal and return it.

        Raises:
            pydantic.ValidationError: If date, time or food is malformed or blank
        """
        payload = MealCreate(date=date, time=time, food=food)
        token = self._begin()
        try:
            if self._mode is Mode.REMOTE:
                try:
                    meal = await self._api.create_meal(payload.date, payload.time, payload.food)
                except StoreError as exc:
                    logger.error("Error adding meal: %s; retrying locally", exc)
                    self._downgrade(str(exc))
                else:
                    if self._remote_still_current("add"):
                        self._schedules = _with(self._schedules, meal)
                        return meal
            return self._add_local(payload)
        finally:
            self._finish(token)

    async def update(self, meal_id: str, time: str, food: str) -> MealEntry:
        """
        Change the time and description of a meal and return it.

        Raises:
            pydantic.ValidationError: If time or food is malformed or blank
            NotFoundError: If, in local mode, no stored meal has this id
        """
        payload = MealUpdate(time=time, food=food)
        token = self._begin()
        try:
            if self._mode is Mode.REMOTE:
                try:
                    meal = await self._api.update_meal(meal_id, payload.time, payload.food)
                except StoreError as exc:
                    logger.error("Error updating meal %s: %s; retrying locally", meal_id, exc)
                    self._downgrade(str(exc))
                else:
                    if self._remote_still_current("update"):
                        self._schedules = _with(self._schedules, meal)
                        return meal
            return self._update_local(token, meal_id, payload)
        finally:
            self._finish(token)

    async def remove(self, meal_id: str) -> None:
        """Delete a meal from whichever partition holds it. Unknown ids are ignored."""
        token = self._begin()
        try:
            if self._mode is Mode.REMOTE:
                try:
                    await self._api.delete_meal(meal_id)
                except StoreError as exc:
                    logger.error("Error deleting meal %s: %s; retrying locally", meal_id, exc)
                    self._downgrade(str(exc))
                else:
                    if self._remote_still_current("remove"):
                        self._schedules = _without(self._schedules, meal_id)
                        return
            schedules = _without(self._store.load(), meal_id)
            self._store.save(schedules)
            self._schedules = schedules
        finally:
            self._finish(token)

    # ------------------ Local mode ------------------

    def _add_local(self, payload: MealCreate) -> MealEntry:
        now = utcnow()
        meal = MealEntry(
            id=new_meal_id(),
            date=payload.date,
            time=payload.time,
            food=payload.food,
            created_at=now,
            updated_at=now,
        )
        schedules = _with(self._store.load(), meal)
        self._store.save(schedules)
        self._schedules = schedules
        return meal

    def _update_local(self, token: int, meal_id: str, payload: MealUpdate) -> MealEntry:
        schedules = self._store.load()
        current = find_meal(schedules, meal_id)
        if current is None:
            message = f"Meal {meal_id} not found"
            self._fail(token, message)
            raise NotFoundError(message)
        meal = current.model_copy(
            update={"time": payload.time, "food": payload.food, "updated_at": utcnow()}
        )
        schedules = _with(schedules, meal)
        self._store.save(schedules)
        self._schedules = schedules
        return meal

