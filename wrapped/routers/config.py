"""API route reporting whether server-side configuration is usable."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from wrapped.core.config import Settings, settings
from wrapped.dependencies import get_settings
from wrapped.schemas.stats import ConfigResponse

router = APIRouter(prefix=settings.api_v1_prefix, tags=["config"])


@router.get("/config", response_model=ConfigResponse)
def get_config_status(config: Settings = Depends(get_settings)) -> ConfigResponse:
    errors = config.validation_errors()
    return ConfigResponse(
        configured=not errors,
        organization=config.organization,
        projects=config.project_list(),
        repository=config.repository,
        year=config.year,
        user_email=config.user_email,
        has_token=bool(config.pat),
        cache_backend=config.cache_backend,
        errors=errors,
    )
