"""Workspace features with their phases and user stories."""

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class WorkspaceFeature(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "workspace_features"

    workspace_uuid: str = Field(foreign_key="workspaces.uuid", nullable=False, index=True)
    name: str = Field(default="", nullable=False)
    url: str = Field(default="", nullable=False)
    priority: int = Field(default=0, nullable=False)
    brief: str = Field(default="", nullable=False)
    requirements: str = Field(default="", nullable=False)
    architecture: str = Field(default="", nullable=False)
    status: str = Field(default="active", nullable=False)  # active | archived
    created_by: str = Field(default="", nullable=False)
    updated_by: str = Field(default="", nullable=False)


class FeaturePhase(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "feature_phases"

    feature_uuid: str = Field(foreign_key="workspace_features.uuid", nullable=False, index=True)
    name: str = Field(default="", nullable=False)
    priority: int = Field(default=0, nullable=False)
    phase_purpose: str = Field(default="", nullable=False)
    phase_outcome: str = Field(default="", nullable=False)
    phase_scope: str = Field(default="", nullable=False)
    created_by: str = Field(default="", nullable=False)
    updated_by: str = Field(default="", nullable=False)


class FeatureStory(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "feature_stories"

    feature_uuid: str = Field(foreign_key="workspace_features.uuid", nullable=False, index=True)
    description: str = Field(default="", nullable=False)
    priority: int = Field(default=0, nullable=False)
    created_by: str = Field(default="", nullable=False)
    updated_by: str = Field(default="", nullable=False)
