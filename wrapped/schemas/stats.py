"""API schemas for stats, listings and configuration status."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from wrapped.models.stats import StatsModel, WrappedStats


class ProjectErrorEntry(StatsModel):
    project: str
    error: str
    kinds: list[str] = Field(default_factory=list)


class StatsResponse(WrappedStats):
    """Response for GET /v1/stats."""

    errors: list[ProjectErrorEntry] = Field(default_factory=list)
    request_id: str


class ProjectEntry(StatsModel):
    id: str
    name: str
    description: Optional[str] = None


class ProjectsResponse(StatsModel):
    """Response for GET /v1/projects."""

    projects: list[ProjectEntry]
    request_id: str


class RepositoryEntry(StatsModel):
    id: str
    name: str
    project: str
    default_branch: Optional[str] = None


class RepositoriesResponse(StatsModel):
    """Response for GET /v1/repositories."""

    repositories: list[RepositoryEntry]
    request_id: str


class ConfigResponse(StatsModel):
    """Response for GET /v1/config; the credential itself is never returned."""

    configured: bool
    organization: Optional[str] = None
    projects: list[str] = Field(default_factory=list)
    repository: Optional[str] = None
    year: int
    user_email: Optional[str] = None
    has_token: bool = False
    cache_backend: str
    errors: list[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: Optional[list[str]] = None
    stack: Optional[str] = None
