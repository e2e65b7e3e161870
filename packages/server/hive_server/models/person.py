"""Person model: a public key known to the platform."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin


class Person(TimestampMixin, SQLModel, table=True):
    __tablename__ = "people"

    id: Optional[int] = Field(default=None, primary_key=True)
    pubkey: str = Field(unique=True, nullable=False, index=True)
    alias: str = Field(default="", nullable=False)
    unique_name: str = Field(default="", nullable=False)
    description: str = Field(default="", nullable=False)
    img: str = Field(default="", nullable=False)
