# backend/studio_booking/schemas/base.py
"""
Base schemas shared by request and response DTOs.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from ..core.time_utils import to_utc


class StandardizedModel(BaseModel):
    """Base model with standardized JSON encoding"""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True)


class StrictModel(BaseModel):
    """Neutral strict base for response DTOs."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


def normalize_instant(value: datetime) -> datetime:
    """Instants without an offset are read as UTC."""
    return to_utc(value)
