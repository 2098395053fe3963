"""Commit retrieval with optional per-commit change enrichment."""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from wrapped.core.result import capture
from wrapped.devops.client import AzureDevOpsClient, segment
from wrapped.models.devops import Commit

_logger = logging.getLogger(__name__)


def _commits_path(project: str, repository: str) -> str:
    return f"{segment(project)}/_apis/git/repositories/{segment(repository)}/commits"


async def fetch_commit_details(
    client: AzureDevOpsClient,
    project: str,
    repository: str,
    commit_id: str,
    change_limit: int = 1000,
) -> Commit:
    payload = await client.get(f"{_commits_path(project, repository)}/{commit_id}", {"changeCount": change_limit})
    return Commit.model_validate(payload)


async def _enrich(
    client: AzureDevOpsClient,
    project: str,
    repository: str,
    commit: Commit,
    change_limit: int,
) -> Commit:
    result = await capture(fetch_commit_details(client, project, repository, commit.commit_id, change_limit))
    if not result.ok:
        _logger.debug("Detail fetch failed for commit %s; keeping summary: %s", commit.commit_id, result.error)
        return commit
    detailed = result.value
    if detailed.change_counts is None and commit.change_counts is not None:
        return detailed.model_copy(update={"change_counts": commit.change_counts})
    return detailed


async def fetch_commits(
    client: AzureDevOpsClient,
    project: str,
    repository: str,
    from_date: date,
    to_date: date,
    *,
    user_email: str | None = None,
    branch: str | None = None,
    include_change_counts: bool = False,
    change_limit: int = 1000,
    page_size: int = 100,
) -> list[Commit]:
    """Every commit in ``[from_date, to_date]`` (whole days), optionally on one branch."""

    params: dict[str, object] = {
        "searchCriteria.fromDate": from_date.isoformat(),
        "searchCriteria.toDate": f"{to_date.isoformat()}T23:59:59",
    }
    if branch:
        params["searchCriteria.itemVersion.version"] = branch
        params["searchCriteria.itemVersion.versionType"] = "branch"
    if user_email:
        params["searchCriteria.author"] = user_email

    raw = await client.paginate(
        _commits_path(project, repository),
        params,
        page_size=page_size,
        top_param="searchCriteria.$top",
        skip_param="searchCriteria.$skip",
    )
    commits = [Commit.model_validate(item) for item in raw]
    if include_change_counts and commits:
        enriched: list[Commit] = []
        for start in range(0, len(commits), page_size):
            page = commits[start : start + page_size]
            enriched.extend(
                await asyncio.gather(*(_enrich(client, project, repository, commit, change_limit) for commit in page))
            )
        commits = enriched
    _logger.info(
        "Fetched %d commits for %s/%s (branch=%s) from %s to %s",
        len(commits),
        project,
        repository,
        branch or "any",
        from_date,
        to_date,
    )
    return commits
