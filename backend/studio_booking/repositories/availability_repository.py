# backend/studio_booking/repositories/availability_repository.py
"""Read access to weekly availability rules."""

from typing import List

from sqlalchemy.orm import Session

from ..core.enums import OwnerType
from ..models.availability_rule import ResourceAvailabilityRule
from .base_repository import BaseRepository


class AvailabilityRepository(BaseRepository[ResourceAvailabilityRule]):
    """Repository for room and engineer opening hours."""

    def __init__(self, db: Session):
        super().__init__(db, ResourceAvailabilityRule)

    def get_rules(
        self, owner_type: OwnerType, owner_id: str, weekday: int
    ) -> List[ResourceAvailabilityRule]:
        query = self._build_query().filter(
            ResourceAvailabilityRule.owner_type == owner_type.value,
            ResourceAvailabilityRule.owner_id == owner_id,
            ResourceAvailabilityRule.weekday == weekday,
        )
        return self._execute_query(query.order_by(ResourceAvailabilityRule.start_minute))

    def add_rule(
        self, owner_type: OwnerType, owner_id: str, weekday: int, start_minute: int, end_minute: int
    ) -> ResourceAvailabilityRule:
        return self.create(
            owner_type=owner_type.value,
            owner_id=owner_id,
            weekday=weekday,
            start_minute=start_minute,
            end_minute=end_minute,
        )
