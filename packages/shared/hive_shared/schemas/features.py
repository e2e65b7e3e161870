"""Feature, phase and story schemas, plus the story-generation webhook shapes."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .common import FeatureStatus


# ---------------------------------------------------------------------------
# Features
# ---------------------------------------------------------------------------

class FeatureWrite(BaseModel):
    """Upsert payload. Omitted fields keep their stored values on edit."""
    uuid: Optional[str] = None
    workspace_uuid: str = ""
    name: Optional[str] = None
    url: Optional[str] = None
    priority: Optional[int] = None
    brief: Optional[str] = None
    requirements: Optional[str] = None
    architecture: Optional[str] = None


class FeatureRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uuid: str
    workspace_uuid: str
    name: str
    url: str
    priority: int
    brief: str
    requirements: str
    architecture: str
    status: str
    created_by: str
    updated_by: str
    created_at: datetime
    updated_at: datetime
    bounties_count_open: int = 0
    bounties_count_assigned: int = 0
    bounties_count_completed: int = 0


class FeatureStatusUpdate(BaseModel):
    status: FeatureStatus


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

class PhaseWrite(BaseModel):
    uuid: Optional[str] = None
    feature_uuid: str = ""
    name: Optional[str] = None
    priority: Optional[int] = None
    phase_purpose: Optional[str] = None
    phase_outcome: Optional[str] = None
    phase_scope: Optional[str] = None


class PhaseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uuid: str
    feature_uuid: str
    name: str
    priority: int
    phase_purpose: str
    phase_outcome: str
    phase_scope: str
    created_by: str
    updated_by: str
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Stories
# ---------------------------------------------------------------------------

class StoryWrite(BaseModel):
    uuid: Optional[str] = None
    feature_uuid: str = ""
    description: Optional[str] = None
    priority: Optional[int] = None


class StoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uuid: str
    feature_uuid: str
    description: str
    priority: int
    created_by: str
    updated_by: str
    created_at: datetime
    updated_at: datetime


class GeneratedStory(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_story: str = Field("", alias="userStory")
    rationale: str = ""
    order: int = 0


class GeneratedStoriesOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    feature_uuid: str = Field("", alias="featureUuid")
    feature_context: str = Field("", alias="featureContext")
    stories: List[GeneratedStory] = Field(default_factory=list)


class GeneratedStoriesWebhook(BaseModel):
    """Body posted back by the story-generation workflow."""
    output: GeneratedStoriesOutput


class StoriesRequest(BaseModel):
    """Request to generate user stories for a feature."""
    model_config = ConfigDict(populate_by_name=True)

    product_brief: str = Field("", alias="productBrief")
    feature_name: str = Field("", alias="featureName")
    description: str = ""
    examples: List[str] = Field(default_factory=list)
    feature_uuid: str = Field("", alias="featureUUID")
    source_websocket: str = Field("", alias="sourceWebsocket")
