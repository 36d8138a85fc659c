"""
Sync Code Repository - Data access layer for device pairing codes
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import update
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import SyncCode


class SyncCodeRepository(BaseRepository[SyncCode]):
    """Repository for pairing code data access"""

    def __init__(self, db: Session):
        super().__init__(db, SyncCode)

    def get_active(self, code: str, now: datetime) -> Optional[SyncCode]:
        """Get an unused code that has not yet expired"""
        return (
            self.db.query(SyncCode)
            .filter(
                SyncCode.code == code,
                SyncCode.used.is_(False),
                SyncCode.expires_at > now,
            )
            .order_by(SyncCode.created_at.desc())
            .first()
        )

    def create_code(
        self, code: str, device_name: str, created_at: datetime, expires_at: datetime
    ) -> SyncCode:
        """Store a freshly minted code"""
        return self.create(
            SyncCode(
                code=code,
                device_name=device_name,
                created_at=created_at,
                expires_at=expires_at,
                used=False,
            )
        )

    def mark_used(self, sync_code_id: str) -> bool:
        """
        Flip a code to used only if it is still unused.

        Returns False when another redemption got there first.
        """
        result = self.db.execute(
            update(SyncCode)
            .where(SyncCode.id == sync_code_id, SyncCode.used.is_(False))
            .values(used=True)
        )
        self.db.commit()
        return result.rowcount == 1
