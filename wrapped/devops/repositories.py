"""Project and repository listings used to populate a request scope."""

from __future__ import annotations

import asyncio
import logging

from wrapped.core.result import capture
from wrapped.devops.client import AzureDevOpsClient, segment
from wrapped.models.devops import Repository, TeamProject

_logger = logging.getLogger(__name__)


async def fetch_projects(client: AzureDevOpsClient) -> list[TeamProject]:
    """Well-formed projects visible to the credential, sorted by name."""
    payload = await client.get("_apis/projects", {"stateFilter": "wellFormed", "$top": 500})
    projects = [TeamProject.model_validate(item) for item in (payload or {}).get("value") or []]
    projects.sort(key=lambda project: project.name.lower())
    _logger.info("Found %d projects in %s", len(projects), client.organization)
    return projects


async def fetch_repositories_for_project(client: AzureDevOpsClient, project: str) -> list[Repository]:
    payload = await client.get(f"{segment(project)}/_apis/git/repositories")
    return [Repository.model_validate(item) for item in (payload or {}).get("value") or []]


def repository_project(repository: Repository, fallback: str) -> str:
    # Cross-project visibility can surface repositories owned by other projects.
    if repository.project is not None and repository.project.name:
        return repository.project.name
    return fallback


async def fetch_repositories_for_projects(
    client: AzureDevOpsClient, projects: list[str]
) -> list[tuple[str, Repository]]:
    """(project, repository) pairs across ``projects``, one entry per repository id."""

    results = await asyncio.gather(*(capture(fetch_repositories_for_project(client, project)) for project in projects))

    seen: set[str] = set()
    pairs: list[tuple[str, Repository]] = []
    for project, result in zip(projects, results):
        if not result.ok:
            _logger.warning("Failed to fetch repositories for project %s: %s", project, result.error)
            continue
        for repository in result.value:
            if repository.id in seen:
                continue
            seen.add(repository.id)
            owner = repository_project(repository, project)
            if owner in projects:
                pairs.append((owner, repository))

    pairs.sort(key=lambda pair: (pair[0].lower(), pair[1].name.lower()))
    return pairs
