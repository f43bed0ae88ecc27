"""Pydantic schemas for API requests and responses."""

from datetime import datetime

from pydantic import BaseModel, Field


class SyncRecordResponse(BaseModel):
    """One synchronization attempt."""

    id: str
    status: str
    trigger: str
    started_at: datetime
    ended_at: datetime | None = None
    from_version: str | None = None
    to_version: str | None = None
    file_count: int = 0
    error_message: str | None = None


class SyncAccepted(BaseModel):
    """Manual sync trigger response."""

    repository_id: str
    status: str = "accepted"
    message: str = "Sync started"


class ChangelogEntryResponse(BaseModel):
    """One changelog entry."""

    id: str
    timestamp: datetime
    title: str
    description: str
    author: str


class CatalogNodeResponse(BaseModel):
    """A live catalog node with its live children."""

    id: str
    name: str
    slug: str
    description: str
    order: int
    prompt: str | None = None
    children: list["CatalogNodeResponse"] = Field(default_factory=list)


class ToolInfo(BaseModel):
    """A registered tool."""

    name: str
    description: str


class ToolCallRequest(BaseModel):
    """Arguments for a tool call."""

    arguments: dict[str, str] = Field(default_factory=dict)


class ToolCallResponse(BaseModel):
    """Result of a tool call."""

    tool: str
    result: str
