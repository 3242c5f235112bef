# backend/studio_booking/repositories/catalog_repository.py
"""Read access to studios, rooms and engineers, plus payout account sync."""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ..models.catalog import EngineerProfile, StudioProfile, StudioRoom
from .base_repository import BaseRepository


class CatalogRepository(BaseRepository[StudioRoom]):
    """Repository for catalog records owned by the profile services."""

    def __init__(self, db: Session):
        super().__init__(db, StudioRoom)

    def get_room(self, room_id: str, *, active_only: bool = True) -> Optional[StudioRoom]:
        query = (
            self._build_query()
            .options(joinedload(StudioRoom.studio))
            .filter(StudioRoom.id == room_id)
        )
        if active_only:
            query = query.filter(StudioRoom.is_active.is_(True))
        return self._execute_first(query)

    def get_studio(self, studio_id: str) -> Optional[StudioProfile]:
        query = self.db.query(StudioProfile).filter(StudioProfile.id == studio_id)
        return self._execute_first(query)

    def get_engineer(self, engineer_id: str) -> Optional[EngineerProfile]:
        return self._execute_first(
            self.db.query(EngineerProfile).filter(EngineerProfile.id == engineer_id)
        )

    def get_studio_by_account(self, account_id: str) -> Optional[StudioProfile]:
        return self._execute_first(
            self.db.query(StudioProfile).filter(StudioProfile.stripe_connect_id == account_id)
        )

    def get_engineer_by_account(self, account_id: str) -> Optional[EngineerProfile]:
        return self._execute_first(
            self.db.query(EngineerProfile).filter(EngineerProfile.stripe_connect_id == account_id)
        )
