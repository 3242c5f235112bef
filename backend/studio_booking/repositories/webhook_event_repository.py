"""Payment event ledger queries."""

from __future__ import annotations

from typing import Any, cast

from sqlalchemy.orm import Session

from ..core.enums import ReconciliationStatus
from ..models.webhook_event import WebhookEvent
from .base_repository import BaseRepository


class WebhookEventRepository(BaseRepository[WebhookEvent]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, WebhookEvent)

    def find_by_source_and_event_id(self, source: str, event_id: str) -> WebhookEvent | None:
        query = self._build_query().filter(
            WebhookEvent.source == source, WebhookEvent.event_id == event_id
        )
        return cast(WebhookEvent | None, self._execute_first(query))

    def record(
        self,
        *,
        source: str,
        event_id: str,
        event_type: str,
        payload: dict[str, Any] | None = None,
        status: str = ReconciliationStatus.APPLIED.value,
        related_booking_id: str | None = None,
    ) -> WebhookEvent:
        """Insert a ledger row; a replayed id fails with RepositoryIntegrityError."""
        return self.create(
            source=source,
            event_id=event_id,
            event_type=event_type,
            payload=payload or {},
            status=status,
            related_booking_id=related_booking_id,
        )
