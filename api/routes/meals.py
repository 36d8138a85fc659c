"""Meal scheduling routes"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
import logging
from typing import List, Optional

from api.dependencies import get_db
from api.responses import DeleteResponse, ERROR_RESPONSES, ErrorResponse
from domain.schemas.meal_schemas import MealCreate, MealEntry, MealUpdate
from services.meal_service import MealService

router = APIRouter(prefix="/meals", tags=["Meals"], responses=ERROR_RESPONSES)
logger = logging.getLogger("foodscheduler.api.meals")


@router.get("", response_model=List[MealEntry])
def list_meals(
    date: Optional[str] = Query(None, description="Exact date (YYYY-MM-DD)"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    """
    List meals ordered by time of day.

    - GET /meals?date=2025-03-10 - one date
    - GET /meals?startDate=2025-03-10&endDate=2025-03-16 - inclusive range
    - GET /meals - everything
    """
    meals = MealService.list_meals(db, date=date, start_date=start_date, end_date=end_date)
    return [MealEntry.model_validate(m) for m in meals]


@router.post("", response_model=MealEntry)
def create_meal(payload: MealCreate, db: Session = Depends(get_db)):
    """Schedule a meal; the store assigns id and timestamps."""
    meal = MealService.create_meal(db, payload)
    return MealEntry.model_validate(meal)


@router.put(
    "/{meal_id}",
    response_model=MealEntry,
    responses={404: {"model": ErrorResponse, "description": "Unknown meal"}},
)
def update_meal(meal_id: str, payload: MealUpdate, db: Session = Depends(get_db)):
    """Change the time and description of a meal."""
    meal = MealService.update_meal(db, meal_id, payload)
    return MealEntry.model_validate(meal)


@router.delete("/{meal_id}", response_model=DeleteResponse)
def delete_meal(meal_id: str, db: Session = Depends(get_db)):
    """Delete a meal. Deleting an unknown id still succeeds."""
    MealService.delete_meal(db, meal_id)
    return DeleteResponse(success=True)
