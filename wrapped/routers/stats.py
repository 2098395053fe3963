"""API route for the annual activity summary."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from wrapped.core.config import Settings, settings
from wrapped.core.identifiers import new_request_id
from wrapped.dependencies import get_request_token, get_settings, get_stats_service
from wrapped.schemas.stats import ErrorResponse, ProjectErrorEntry, StatsResponse
from wrapped.services.stats import StatsRequest, StatsService, resolve_scope

router = APIRouter(prefix=settings.api_v1_prefix, tags=["stats"])

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
}


@router.get("/stats", response_model=StatsResponse, responses=_ERROR_RESPONSES)
async def get_stats(
    organization: str | None = Query(None, description="Azure DevOps organization name."),
    projects: str | None = Query(None, description="Comma-separated project names."),
    project: str | None = Query(None, description="Single project name (legacy)."),
    repository: str | None = Query(None, description="Repository name looked up in every project."),
    repositories: str | None = Query(None, description="Comma-separated project/repository pairs."),
    year: int | None = Query(None, description="Calendar year to summarise."),
    user_email: str | None = Query(None, alias="userEmail", description="Whose activity to summarise."),
    token: str | None = Depends(get_request_token),
    config: Settings = Depends(get_settings),
    stats_service: StatsService = Depends(get_stats_service),
) -> StatsResponse:
    request = StatsRequest(
        organization=organization,
        projects=projects,
        project=project,
        repository=repository,
        repositories=repositories,
        year=year,
        user_email=user_email,
        token=token,
    )
    scope, credential = resolve_scope(request, config)
    report = await stats_service.generate(scope, credential)
    return StatsResponse(
        **report.stats.model_dump(),
        errors=[
            ProjectErrorEntry(project=error.project, error=error.error, kinds=list(error.kinds))
            for error in report.errors
        ],
        request_id=new_request_id(),
    )
