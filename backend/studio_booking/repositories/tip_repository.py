# backend/studio_booking/repositories/tip_repository.py
from typing import Optional

from sqlalchemy.orm import Session

from ..models.tip import Tip
from .base_repository import BaseRepository


class TipRepository(BaseRepository[Tip]):
    """Repository for post-session tips."""

    def __init__(self, db: Session):
        super().__init__(db, Tip)

    def get_for_booking(self, booking_id: str) -> Optional[Tip]:
        return self.find_one_by(booking_id=booking_id)
