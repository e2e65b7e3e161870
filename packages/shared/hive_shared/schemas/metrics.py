"""Dashboard metric schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, field_validator

from .common import PaymentType


class DateRange(BaseModel):
    """Unix-second bounds, sent as strings by the dashboard."""
    start_date: str
    end_date: str
    payment_type: Optional[PaymentType] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _must_be_unix_seconds(cls, v: str) -> str:
        v = v.strip()
        if not v.isdigit():
            raise ValueError("must be a unix timestamp")
        return v

    @property
    def start(self) -> int:
        return int(self.start_date)

    @property
    def end(self) -> int:
        return int(self.end_date)


class BountyMetrics(BaseModel):
    bounties_posted: int
    bounties_paid: int
    bounties_assigned: int
    bounties_paid_percentage: int
    sats_posted: int
    sats_paid: int
    sats_paid_percentage: int
    hunters_paid: int
    new_hunters_paid: int
    new_hunters: int
    average_paid: int
    average_completed: int
