"""
Device pairing and schedule merging for cross-device sync.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
import logging
import secrets

from app.config import settings
from app.exceptions import InvalidSyncCodeError, ServiceValidationError
from domain.models import Meal, SyncCode
from domain.schedule import ensure_utc, group_by_date, utcnow
from domain.schemas.sync_schemas import SyncMealIn
from repositories import MealRepository, SyncCodeRepository

logger = logging.getLogger("foodscheduler.sync")

# Attempts at drawing digits that do not clash with a live code
_MAX_CODE_ATTEMPTS = 5


def _random_code(length: int) -> str:
    """Decimal code of exactly `length` digits with no leading zero."""
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))


class SyncService:
    @staticmethod
    def generate_code(
        db: Session, device_name: str, now: Optional[datetime] = None
    ) -> SyncCode:
        """
        Mint a single-use pairing code for a device.

        The code expires `settings.sync_code_ttl_minutes` after issue.

        Raises:
            ServiceValidationError: If device_name is blank
            RuntimeError: If every draw clashes with a live code
        """
        if not device_name or not device_name.strip():
            raise ServiceValidationError("Device name is required")

        repo = SyncCodeRepository(db)
        issued_at = ensure_utc(now) if now else utcnow()
        expires_at = issued_at + timedelta(minutes=settings.sync_code_ttl_minutes)

        for _ in range(_MAX_CODE_ATTEMPTS):
            code = _random_code(settings.sync_code_length)
            if repo.get_active(code, issued_at) is None:
                break
        else:
            logger.error(
                f"Every sync code drawn for '{device_name}' clashed with a live code"
            )
            raise RuntimeError("Could not allocate a unique sync code")

        try:
            sync_code = repo.create_code(
                code=code,
                device_name=device_name.strip(),
                created_at=issued_at,
                expires_at=expires_at,
            )
        except Exception:
            db.rollback()
            logger.exception("Error creating sync code for %s", device_name)
            raise

        logger.info(f"Issued sync code {sync_code.id} for device '{sync_code.device_name}'")
        return sync_code

    @staticmethod
    def redeem_code(
        db: Session, code: str, device_id: str, now: Optional[datetime] = None
    ) -> Tuple[SyncCode, List[Meal]]:
        """
        Consume a pairing code and return the meals the redeeming device should start from.

        The returned meals are those uploaded by `device_id` plus those shared
        into the code's sync group. Nothing is changed unless the code is
        flipped to used by this call.

        Raises:
            InvalidSyncCodeError: If the code is unknown, expired or already used
        """
        if not code or not device_id:
            raise ServiceValidationError("Code and device ID are required")

        codes = SyncCodeRepository(db)
        checked_at = ensure_utc(now) if now else utcnow()

        sync_code = codes.get_active(code, checked_at)
        if sync_code is None:
            logger.warning(f"Rejected sync code redemption from device {device_id}")
            raise InvalidSyncCodeError()

        if not codes.mark_used(sync_code.id):
            logger.warning(
                f"Sync code {sync_code.id} was redeemed concurrently; rejecting device {device_id}"
            )
            raise InvalidSyncCodeError("Sync code has already been used")

        meals = MealRepository(db).list_by_device_or_group(device_id, sync_code.id)
        logger.info(
            f"Device {device_id} redeemed sync code {sync_code.id}; {len(meals)} meals in group"
        )
        return sync_code, meals

    @staticmethod
    def merge_device_meals(
        db: Session,
        device_id: str,
        meals: Dict[str, List[SyncMealIn]],
        now: Optional[datetime] = None,
    ) -> Dict[str, List[Meal]]:
        """
        Merge a device's uploaded schedule into the store, last writer wins per meal.

        1. Flatten the uploaded partitions, stamping device id and sync time
        2. Load stored meals of this device and any stored meal with an uploaded id
        3. Keep an uploaded meal only if nothing is stored under its id or its
           updated_at is strictly newer than the stored one
        4. Upsert the kept meals in one commit
        5. Return the device's meals (plus the uploaded ids) grouped by date

        Timestamps come from the devices' clocks. Clock skew between devices can
        drop a newer edit. The read in step 2 and the upsert in step 4 are not
        one transaction, so two devices syncing the same meal at the same
        moment may each see the other's pre-sync state.

        Raises:
            ServiceValidationError: If device_id is blank
        """
        if not device_id:
            raise ServiceValidationError("Device ID is required")

        repo = MealRepository(db)
        synced_at = ensure_utc(now) if now else utcnow()

        incoming = [meal for partition in meals.values() for meal in partition]
        incoming_ids = [meal.id for meal in incoming]
        existing = {
            meal.id: meal for meal in repo.list_by_device_or_ids(device_id, incoming_ids)
        }

        staged: Dict[str, Dict[str, Any]] = {}
        discarded = 0
        for local in incoming:
            current = existing.get(local.id)
            if current is not None and local.updated_at <= ensure_utc(current.updated_at):
                discarded += 1
                continue
            record = {
                "id": local.id,
                "date": local.date,
                "time": local.time,
                "food": local.food,
                "created_at": local.created_at or synced_at,
                "updated_at": local.updated_at,
                "device_id": device_id,
                "synced_at": synced_at,
            }
            if local.user_id is not None:
                record["user_id"] = local.user_id
            staged[local.id] = record

        if staged:
            try:
                repo.upsert_many(list(staged.values()))
            except Exception:
                db.rollback()
                logger.exception("Error upserting meals for device %s", device_id)
                raise

        logger.info(
            f"Merged {len(incoming)} meals from device {device_id}: "
            f"{len(staged)} written, {discarded} kept remote"
        )
        return group_by_date(repo.list_by_device_or_ids(device_id, incoming_ids))
