"""Pull request retrieval filtered server-side by creator (and reviewer) identity."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, timezone
from typing import Sequence

from wrapped.core.errors import UnresolvableIdentityError
from wrapped.devops.client import AzureDevOpsClient, segment
from wrapped.models.devops import PullRequest, Repository

_logger = logging.getLogger(__name__)

DEFAULT_TARGET_BRANCHES: tuple[str, ...] = ("master", "main", "dev")


async def fetch_repository(client: AzureDevOpsClient, project: str, repository: str) -> Repository:
    payload = await client.get(f"{segment(project)}/_apis/git/repositories/{segment(repository)}")
    return Repository.model_validate(payload)


def within_window(pull_request: PullRequest, from_date: date, to_date: date) -> bool:
    start = datetime.combine(from_date, time.min, tzinfo=timezone.utc)
    end = datetime.combine(to_date, time.max, tzinfo=timezone.utc)
    return start <= pull_request.creation_date <= end


async def fetch_pull_requests(
    client: AzureDevOpsClient,
    project: str,
    repository: str,
    from_date: date,
    to_date: date,
    *,
    creator_id: str | None,
    reviewer_id: str | None = None,
    target_branches: Sequence[str] = DEFAULT_TARGET_BRANCHES,
    page_size: int = 100,
) -> list[PullRequest]:
    """Pull requests created (or reviewed) by one identity across candidate target branches.

    The platform cannot filter pull requests by creation date, so the window is
    applied after the union. Without a creator id nothing is fetched: an
    unfiltered query would page through the organization's whole history.
    """

    if not creator_id:
        raise UnresolvableIdentityError(None)

    repo = await fetch_repository(client, project, repository)
    path = f"{segment(project)}/_apis/git/repositories/{repo.id}/pullrequests"

    queries: list[dict[str, object]] = []
    for branch in target_branches or [None]:
        base: dict[str, object] = {"searchCriteria.status": "all"}
        if branch:
            base["searchCriteria.targetRefName"] = f"refs/heads/{branch}"
        queries.append({**base, "searchCriteria.creatorId": creator_id})
        if reviewer_id:
            queries.append({**base, "searchCriteria.reviewerId": reviewer_id})

    pages = await asyncio.gather(*(client.paginate(path, params, page_size=page_size) for params in queries))

    seen: set[int] = set()
    pull_requests: list[PullRequest] = []
    for page in pages:
        for item in page:
            pull_request = PullRequest.model_validate(item)
            if pull_request.pull_request_id in seen:
                continue
            seen.add(pull_request.pull_request_id)
            if within_window(pull_request, from_date, to_date):
                pull_requests.append(pull_request)

    _logger.info(
        "Fetched %d pull requests for %s/%s from %s to %s", len(pull_requests), project, repository, from_date, to_date
    )
    return pull_requests
