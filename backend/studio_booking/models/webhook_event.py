"""
Ledger of payment-provider events.

One row per (source, event_id). The unique constraint is what makes
reconciliation idempotent under concurrent redelivery: the second writer
fails at commit and reports the event as a duplicate.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON
import ulid

from ..core.enums import ReconciliationStatus
from ..core.time_utils import utc_now
from ..database import Base


class WebhookEvent(Base):
    """An inbound payment event and how reconciliation resolved it."""

    __tablename__ = "webhook_events"

    __table_args__ = (
        sa.UniqueConstraint("source", "event_id", name="uq_webhook_events_source_event"),
        sa.Index("ix_webhook_events_booking", "related_booking_id"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="stripe")
    event_id: Mapped[str] = mapped_column(String(255), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    # applied | noop | ignored
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ReconciliationStatus.APPLIED.value
    )
    related_booking_id: Mapped[str | None] = mapped_column(String(26), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"),
        nullable=False,
        default=dict,
    )
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    def __repr__(self) -> str:
        return f"<WebhookEvent {self.source}:{self.event_id} {self.status}>"
