"""Cross-device sync routes"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from api.dependencies import get_db
from api.responses import ERROR_RESPONSES
from domain.schemas.meal_schemas import MealEntry
from domain.schemas.sync_schemas import (
    GenerateCodeRequest,
    GenerateCodeResponse,
    UseCodeRequest,
    UseCodeResponse,
    SyncDataRequest,
    SyncDataResponse,
)
from services.sync_service import SyncService

router = APIRouter(prefix="/sync", tags=["Sync"], responses=ERROR_RESPONSES)
logger = logging.getLogger("foodscheduler.api.sync")


@router.post("/generate-code", response_model=GenerateCodeResponse)
def generate_code(payload: GenerateCodeRequest, db: Session = Depends(get_db)):
    """
    Mint a 6-digit pairing code for this device.

    The user relays the code to the other device, which redeems it within
    the code's lifetime (10 minutes by default).
    """
    sync_code = SyncService.generate_code(db, payload.device_name)
    return GenerateCodeResponse(code=sync_code.code)


@router.post("/use-code", response_model=UseCodeResponse)
def use_code(payload: UseCodeRequest, db: Session = Depends(get_db)):
    """Redeem a pairing code. Invalid, expired or used codes are rejected with 400."""
    sync_code, meals = SyncService.redeem_code(db, payload.code, payload.device_id)
    return UseCodeResponse(
        success=True,
        meals=[MealEntry.model_validate(m) for m in meals],
        sync_group=sync_code.id,
    )


@router.post("/data", response_model=SyncDataResponse)
def sync_data(payload: SyncDataRequest, db: Session = Depends(get_db)):
    """Merge a device's schedule into the store and return the merged schedule."""
    merged = SyncService.merge_device_meals(db, payload.device_id, payload.meals)
    return SyncDataResponse(
        merged_meals={
            date: [MealEntry.model_validate(m) for m in meals]
            for date, meals in merged.items()
        }
    )
