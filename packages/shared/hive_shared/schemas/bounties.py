"""Bounty schemas and the shared filter grammar for bounty listings."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .common import SortDirection

# Columns a caller may sort by. Anything else falls back to "created".
SORTABLE_BOUNTY_COLUMNS = frozenset(
    {"created", "price", "title", "updated_at", "paid_date", "completion_date"}
)


class BountyWrite(BaseModel):
    id: Optional[int] = None
    title: str = ""
    description: str = ""
    price: int = Field(0, ge=0)
    type: str = ""
    wanted_type: str = ""
    show: bool = True
    coding_languages: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    workspace_uuid: Optional[str] = None
    feature_uuid: Optional[str] = None
    phase_uuid: Optional[str] = None
    phase_priority: int = 0


class BountyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: str
    title: str
    description: str
    price: int
    type: str
    wanted_type: str
    assignee: str
    paid: bool
    completed: bool
    show: bool
    coding_languages: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    workspace_uuid: Optional[str] = None
    feature_uuid: Optional[str] = None
    phase_uuid: Optional[str] = None
    phase_priority: int
    created: int
    updated_at: datetime
    assigned_date: Optional[datetime] = None
    completion_date: Optional[datetime] = None
    paid_date: Optional[datetime] = None


class BountyAssign(BaseModel):
    assignee: str


class BountyFilters(BaseModel):
    """Parsed listing query. Status flags OR together, everything else ANDs."""
    search: str = ""
    limit: int = Field(0, ge=0)
    offset: int = Field(0, ge=0)
    sort_by: str = "created"
    direction: SortDirection = SortDirection.DESC
    languages: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    open: bool = False
    assigned: bool = False
    completed: bool = False
    paid: bool = False

    @property
    def has_status_filter(self) -> bool:
        return self.open or self.assigned or self.completed or self.paid

    @property
    def sort_column(self) -> str:
        return self.sort_by if self.sort_by in SORTABLE_BOUNTY_COLUMNS else "created"
