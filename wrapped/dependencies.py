"""Application dependency wiring."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Header

from wrapped.core.config import Settings, settings
from wrapped.devops.cache import ResponseCache, cache_from_settings
from wrapped.services.aggregator import PersonalityThresholds
from wrapped.services.orchestrator import FetchOptions
from wrapped.services.stats import StatsService, client_factory_from_settings


def get_settings() -> Settings:
    return settings


@lru_cache
def get_response_cache() -> ResponseCache:
    return cache_from_settings()


@lru_cache
def get_stats_service() -> StatsService:
    return StatsService(
        client_factory_from_settings(settings, get_response_cache()),
        options=FetchOptions.from_settings(settings),
        thresholds=PersonalityThresholds.from_settings(settings),
    )


def get_request_token(authorization: str | None = Header(None)) -> str | None:
    """The personal access token from ``Authorization: Bearer <pat>``."""
    if not authorization:
        return None
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None
