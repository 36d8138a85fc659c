"""
Meal Repository - Data access layer for scheduled meals
"""

from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session, Query

from repositories.base import BaseRepository
from domain.models import Meal


class MealRepository(BaseRepository[Meal]):
    """Repository for meal data access"""

    def __init__(self, db: Session):
        super().__init__(db, Meal)

    def _ordered(self, query: Query) -> List[Meal]:
        # Equal times fall back to creation order so partitions are stable
        return query.order_by(Meal.time, Meal.created_at, Meal.id).all()

    def list_all(self) -> List[Meal]:
        """Get every meal ordered by time of day"""
        return self._ordered(self.db.query(Meal))

    def list_by_date(self, date: str) -> List[Meal]:
        """Get meals scheduled on one date"""
        return self._ordered(self.db.query(Meal).filter(Meal.date == date))

    def list_by_range(self, start_date: str, end_date: str) -> List[Meal]:
        """Get meals scheduled between two dates (inclusive)"""
        return self._ordered(
            self.db.query(Meal).filter(Meal.date >= start_date, Meal.date <= end_date)
        )

    def list_by_device(self, device_id: str) -> List[Meal]:
        """Get meals uploaded by a device"""
        return self._ordered(self.db.query(Meal).filter(Meal.device_id == device_id))

    def list_by_device_or_ids(self, device_id: str, meal_ids: Iterable[str]) -> List[Meal]:
        """Get meals owned by a device together with any meals carrying the given ids"""
        ids = list(set(meal_ids))
        query = self.db.query(Meal)
        if ids:
            query = query.filter(or_(Meal.device_id == device_id, Meal.id.in_(ids)))
        else:
            query = query.filter(Meal.device_id == device_id)
        return self._ordered(query)

    def list_by_device_or_group(self, device_id: str, group_id: str) -> List[Meal]:
        """Get meals belonging to a device or shared into a sync group"""
        return self._ordered(
            self.db.query(Meal).filter(
                or_(Meal.device_id == device_id, Meal.user_id == group_id)
            )
        )

    def upsert_many(self, records: List[Dict[str, Any]]) -> int:
        """Insert or replace meals keyed by id in a single commit"""
        for record in records:
            self.db.merge(Meal(**record))
        self.db.commit()
        return len(records)

    def update_fields(self, meal_id: str, **fields) -> Optional[Meal]:
        """Update selected columns of a meal"""
        meal = self.get_by_id(meal_id)
        if meal is None:
            return None
        for name, value in fields.items():
            setattr(meal, name, value)
        return self.update(meal)
