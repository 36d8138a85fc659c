from typing import List, Optional
from sqlalchemy.orm import Session
import logging

from domain.models import Meal
from domain.schemas.meal_schemas import MealCreate, MealUpdate
from domain.schedule import utcnow
from repositories import MealRepository
from app.exceptions import NotFoundError, ServiceValidationError

logger = logging.getLogger("foodscheduler.meals")


class MealService:
    @staticmethod
    def list_meals(
        db: Session,
        date: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Meal]:
        """
        List meals for a single date, an inclusive date range, or everything.

        A date takes precedence over a range. A range needs both ends.

        Raises:
            ServiceValidationError: If only one end of the range is given or
                the range is inverted
        """
        repo = MealRepository(db)
        if date:
            return repo.list_by_date(date)

        if start_date or end_date:
            if not (start_date and end_date):
                raise ServiceValidationError(
                    "startDate and endDate must be provided together",
                    details={"startDate": start_date, "endDate": end_date},
                )
            if start_date > end_date:
                raise ServiceValidationError(
                    f"startDate {start_date} is after endDate {end_date}",
                    details={"startDate": start_date, "endDate": end_date},
                )
            return repo.list_by_range(start_date, end_date)

        return repo.list_all()

    @staticmethod
    def create_meal(db: Session, payload: MealCreate) -> Meal:
        repo = MealRepository(db)
        now = utcnow()
        try:
            meal = repo.create(
                Meal(
                    date=payload.date,
                    time=payload.time,
                    food=payload.food,
                    created_at=now,
                    updated_at=now,
                )
            )
        except Exception:
            db.rollback()
            logger.exception("Error creating meal on %s", payload.date)
            raise

        logger.info(f"Created meal {meal.id} on {meal.date} at {meal.time}")
        return meal

    @staticmethod
    def update_meal(db: Session, meal_id: str, payload: MealUpdate) -> Meal:
        """
        Change the time and description of a meal.

        Raises:
            NotFoundError: If no meal has this id
        """
        repo = MealRepository(db)
        try:
            meal = repo.update_fields(
                meal_id, time=payload.time, food=payload.food, updated_at=utcnow()
            )
        except Exception:
            db.rollback()
            logger.exception("Error updating meal %s", meal_id)
            raise

        if meal is None:
            raise NotFoundError(f"Meal {meal_id} not found")
        logger.info(f"Updated meal {meal_id}: time={meal.time}")
        return meal

    @staticmethod
    def delete_meal(db: Session, meal_id: str) -> bool:
        """Delete a meal. Returns False when it did not exist."""
        repo = MealRepository(db)
        removed = repo.delete(meal_id)
        if not removed:
            logger.debug(f"Delete requested for unknown meal {meal_id}")
        return removed
