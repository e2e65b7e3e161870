"""Budget bookkeeping: deposits, withdrawals and bounty payments."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import _utcnow


class PaymentHistory(SQLModel, table=True):
    __tablename__ = "payment_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_uuid: str = Field(nullable=False, index=True)
    bounty_id: Optional[int] = Field(default=None, index=True)
    amount: int = Field(nullable=False)
    sender_pubkey: str = Field(default="", nullable=False)
    receiver_pubkey: str = Field(default="", nullable=False)
    payment_type: str = Field(nullable=False, index=True)  # deposit | withdraw | payment
    status: str = Field(default="COMPLETE", nullable=False)
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
