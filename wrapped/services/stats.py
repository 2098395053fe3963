"""Request-level stats generation: scope resolution, fetch, merge, aggregate."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from wrapped.core.config import Settings, split_csv
from wrapped.core.errors import ScopeValidationError
from wrapped.devops.cache import ResponseCache
from wrapped.devops.client import AzureDevOpsClient
from wrapped.devops.repositories import fetch_projects, fetch_repositories_for_projects
from wrapped.models.devops import Repository, TeamProject
from wrapped.models.stats import WrappedStats
from wrapped.services.aggregator import AggregationScope, PersonalityThresholds, aggregate_stats
from wrapped.services.orchestrator import (
    FetchOptions,
    MultiProjectOrchestrator,
    ProjectError,
    ProjectRepository,
    StatsScope,
)
from wrapped.telemetry import record_stats_duration

_logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], AzureDevOpsClient]


@dataclass
class StatsRequest:
    """Raw scope as supplied by a caller; any field may be missing."""

    organization: Optional[str] = None
    projects: Optional[str] = None
    project: Optional[str] = None
    repository: Optional[str] = None
    repositories: Optional[str] = None
    year: Optional[int] = None
    user_email: Optional[str] = None
    token: Optional[str] = None

    def uses_server_config(self) -> bool:
        return not any((self.organization, self.projects, self.project, self.repository, self.repositories, self.year))


@dataclass
class StatsReport:
    stats: WrappedStats
    errors: list[ProjectError] = field(default_factory=list)


def parse_repository_pairs(raw: Optional[str]) -> list[ProjectRepository]:
    """``"ProjA/repo-1,ProjB/repo-2"`` into pairs; entries without a slash are skipped."""
    pairs: list[ProjectRepository] = []
    for entry in split_csv(raw):
        project, sep, repository = entry.partition("/")
        if sep and project.strip() and repository.strip():
            pairs.append(ProjectRepository(project.strip(), repository.strip()))
    return pairs


def resolve_scope(request: StatsRequest, config: Settings) -> tuple[StatsScope, str]:
    """Validate a request into a scope and credential without touching the network."""

    if request.uses_server_config():
        request = StatsRequest(
            organization=config.organization,
            projects=",".join(config.project_list()),
            repository=config.repository,
            year=config.year,
            user_email=request.user_email or config.user_email,
            token=request.token or config.pat,
        )

    pairs = parse_repository_pairs(request.repositories)
    projects = split_csv(request.projects) or split_csv(request.project)
    if not projects and pairs:
        projects = list(dict.fromkeys(pair.project for pair in pairs))
    if not pairs and request.repository:
        pairs = [ProjectRepository(project, request.repository.strip()) for project in projects]

    missing: list[str] = []
    if not request.token:
        missing.append("token")
    if not request.organization:
        missing.append("organization")
    if not projects:
        missing.append("projects")
    if not pairs:
        missing.append("repository")
    if request.year is None or not 2000 <= request.year <= 2100:
        missing.append("year")
    if missing:
        raise ScopeValidationError(missing)

    scope = StatsScope(
        organization=request.organization.strip(),
        projects=tuple(projects),
        repositories=tuple(pairs),
        year=request.year,
        user_email=(request.user_email or "").strip() or None,
    )
    return scope, request.token


def client_factory_from_settings(config: Settings, cache: ResponseCache | None = None) -> ClientFactory:
    def factory(organization: str, token: str) -> AzureDevOpsClient:
        return AzureDevOpsClient(
            organization,
            token,
            base_url=config.base_url,
            identity_base_url=config.identity_base_url,
            api_version=config.api_version,
            identity_api_version=config.identity_api_version,
            timeout=config.http_timeout_seconds,
            cache=cache,
        )

    return factory


class StatsService:
    """Builds annual summaries and the project/repository listings behind the pickers."""

    def __init__(
        self,
        client_factory: ClientFactory,
        options: FetchOptions | None = None,
        thresholds: PersonalityThresholds | None = None,
    ) -> None:
        self._client_factory = client_factory
        self._options = options or FetchOptions()
        self._thresholds = thresholds or PersonalityThresholds()

    async def generate(self, scope: StatsScope, token: str) -> StatsReport:
        started = time.perf_counter()
        _logger.info(
            "Generating stats for %s (%d projects, year %d)", scope.organization, len(scope.projects), scope.year
        )
        async with self._client_factory(scope.organization, token) as client:
            merged = await MultiProjectOrchestrator(client, self._options).collect(scope)

        stats = aggregate_stats(
            merged.commits,
            merged.pull_requests,
            merged.work_items,
            AggregationScope(
                organization=scope.organization,
                projects=scope.projects,
                repositories=scope.repository_names(),
                year=scope.year,
                user_email=scope.user_email,
            ),
            thresholds=self._thresholds,
        )
        record_stats_duration(time.perf_counter() - started)
        return StatsReport(stats=stats, errors=merged.errors)

    async def list_projects(self, organization: str, token: str) -> list[TeamProject]:
        async with self._client_factory(organization, token) as client:
            return await fetch_projects(client)

    async def list_repositories(
        self, organization: str, projects: list[str], token: str
    ) -> list[tuple[str, Repository]]:
        async with self._client_factory(organization, token) as client:
            return await fetch_repositories_for_projects(client, projects)
