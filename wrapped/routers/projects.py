"""API routes listing projects and repositories for a credential."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from wrapped.core.config import Settings, settings, split_csv
from wrapped.core.errors import ScopeValidationError
from wrapped.core.identifiers import new_request_id
from wrapped.dependencies import get_request_token, get_settings, get_stats_service
from wrapped.schemas.stats import (
    ErrorResponse,
    ProjectEntry,
    ProjectsResponse,
    RepositoriesResponse,
    RepositoryEntry,
)
from wrapped.services.stats import StatsService

router = APIRouter(prefix=settings.api_v1_prefix, tags=["projects"])


def _require(organization: str | None, token: str | None) -> tuple[str, str]:
    missing = [name for name, value in (("token", token), ("organization", organization)) if not value]
    if missing:
        raise ScopeValidationError(missing)
    return organization, token


@router.get("/projects", response_model=ProjectsResponse, responses={400: {"model": ErrorResponse}})
async def list_projects(
    organization: str | None = Query(None, description="Azure DevOps organization name."),
    token: str | None = Depends(get_request_token),
    config: Settings = Depends(get_settings),
    stats_service: StatsService = Depends(get_stats_service),
) -> ProjectsResponse:
    organization, token = _require(organization or config.organization, token or config.pat)
    projects = await stats_service.list_projects(organization, token)
    return ProjectsResponse(
        projects=[ProjectEntry(id=p.id, name=p.name, description=p.description) for p in projects],
        request_id=new_request_id(),
    )


@router.get("/repositories", response_model=RepositoriesResponse, responses={400: {"model": ErrorResponse}})
async def list_repositories(
    organization: str | None = Query(None, description="Azure DevOps organization name."),
    projects: str | None = Query(None, description="Comma-separated project names."),
    token: str | None = Depends(get_request_token),
    config: Settings = Depends(get_settings),
    stats_service: StatsService = Depends(get_stats_service),
) -> RepositoriesResponse:
    organization, token = _require(organization or config.organization, token or config.pat)
    selected = split_csv(projects)
    if not selected:
        raise ScopeValidationError(["projects"])
    pairs = await stats_service.list_repositories(organization, selected, token)
    return RepositoriesResponse(
        repositories=[
            RepositoryEntry(id=repo.id, name=repo.name, project=project, default_branch=repo.default_branch)
            for project, repo in pairs
        ],
        request_id=new_request_id(),
    )
