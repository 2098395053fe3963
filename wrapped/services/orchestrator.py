"""Fan out fetches across projects and merge the results without duplicates."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Sequence

from wrapped.core.errors import NoDataFoundError, UnresolvableIdentityError
from wrapped.core.result import Err, Ok, Result, capture
from wrapped.devops.branches import first_non_empty
from wrapped.devops.client import AzureDevOpsClient
from wrapped.devops.commits import fetch_commits
from wrapped.devops.identities import resolve_identity_id
from wrapped.devops.pull_requests import fetch_pull_requests
from wrapped.devops.work_items import fetch_work_items
from wrapped.models.devops import Commit, PullRequest, WorkItem
from wrapped.telemetry import record_fetch_failure

_logger = logging.getLogger(__name__)

COMMITS = "commits"
PULL_REQUESTS = "pull requests"
WORK_ITEMS = "work items"


@dataclass(frozen=True)
class ProjectRepository:
    project: str
    repository: str


@dataclass(frozen=True)
class StatsScope:
    """Everything one stats request covers: the window, the subject and the repositories."""

    organization: str
    projects: tuple[str, ...]
    repositories: tuple[ProjectRepository, ...]
    year: int
    user_email: Optional[str] = None

    @property
    def from_date(self) -> date:
        return date(self.year, 1, 1)

    @property
    def to_date(self) -> date:
        return date(self.year, 12, 31)

    def repository_names(self) -> list[str]:
        return list(dict.fromkeys(pair.repository for pair in self.repositories))

    def repositories_for(self, project: str) -> list[str]:
        return [pair.repository for pair in self.repositories if pair.project == project]


@dataclass(frozen=True)
class FetchOptions:
    include_commits: bool = True
    include_pull_requests: bool = True
    include_work_items: bool = True
    include_change_counts: bool = False
    branch_candidates: tuple[str, ...] = ("master", "main")
    target_branches: tuple[str, ...] = ("master", "main", "dev")
    page_size: int = 100
    work_item_batch_size: int = 200
    commit_change_limit: int = 1000

    @classmethod
    def from_settings(cls, settings) -> "FetchOptions":
        return cls(
            include_commits=settings.include_commits,
            include_pull_requests=settings.include_pull_requests,
            include_work_items=settings.include_work_items,
            include_change_counts=settings.include_change_counts,
            branch_candidates=tuple(settings.branch_candidates()),
            target_branches=tuple(settings.target_branches()),
            page_size=settings.page_size,
            work_item_batch_size=settings.work_item_batch_size,
            commit_change_limit=settings.commit_change_limit,
        )


@dataclass(frozen=True)
class ProjectError:
    project: str
    error: str
    kinds: tuple[str, ...] = ()

    def describe(self) -> str:
        return f"{self.project}: {self.error}"


@dataclass
class ProjectFetch:
    project: str
    commits: list[Commit] = field(default_factory=list)
    pull_requests: list[PullRequest] = field(default_factory=list)
    work_items: list[WorkItem] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    attempted: int = 0

    @property
    def failed(self) -> bool:
        return self.attempted > 0 and len(self.failures) >= self.attempted

    def error(self) -> Optional[ProjectError]:
        if not self.failures:
            return None
        message = "; ".join(f"{kind}: {reason}" for kind, reason in self.failures.items())
        return ProjectError(project=self.project, error=message, kinds=tuple(self.failures))


@dataclass
class MergedActivity:
    commits: list[Commit] = field(default_factory=list)
    pull_requests: list[PullRequest] = field(default_factory=list)
    work_items: list[WorkItem] = field(default_factory=list)
    errors: list[ProjectError] = field(default_factory=list)
    successful_projects: int = 0

    @property
    def is_empty(self) -> bool:
        return not (self.commits or self.pull_requests or self.work_items)


class ActivityMerger:
    """Single pass merge keyed by commit id, pull request id and work item id."""

    def __init__(self) -> None:
        self._seen_commits: set[str] = set()
        self._seen_pull_requests: set[str] = set()
        self._seen_work_items: set[str] = set()
        self.merged = MergedActivity()

    def add(self, fetch: ProjectFetch) -> None:
        for commit in fetch.commits:
            if commit.commit_id not in self._seen_commits:
                self._seen_commits.add(commit.commit_id)
                self.merged.commits.append(commit)
        for pull_request in fetch.pull_requests:
            key = str(pull_request.pull_request_id)
            if key not in self._seen_pull_requests:
                self._seen_pull_requests.add(key)
                self.merged.pull_requests.append(pull_request)
        for item in fetch.work_items:
            key = str(item.id)
            if key not in self._seen_work_items:
                self._seen_work_items.add(key)
                self.merged.work_items.append(item)

        error = fetch.error()
        if error is not None:
            self.merged.errors.append(error)
        if not fetch.failed:
            self.merged.successful_projects += 1


def _describe(error: Exception) -> str:
    return str(error) or error.__class__.__name__


class MultiProjectOrchestrator:
    """Runs every project's fetches concurrently, then merges them in project order."""

    def __init__(self, client: AzureDevOpsClient, options: Optional[FetchOptions] = None) -> None:
        self.client = client
        self.options = options or FetchOptions()

    async def collect(self, scope: StatsScope) -> MergedActivity:
        identity = await self._resolve_identity(scope)
        fetches = await asyncio.gather(*(self._collect_project(scope, project, identity) for project in scope.projects))

        merger = ActivityMerger()
        for fetch in fetches:
            merger.add(fetch)
        merged = merger.merged

        if merged.successful_projects == 0 and merged.is_empty and merged.errors:
            _logger.error("All %d projects failed for %s", len(scope.projects), scope.organization)
            raise NoDataFoundError([(error.project, error.error) for error in merged.errors])

        _logger.info(
            "Merged %d commits, %d pull requests, %d work items from %d/%d projects",
            len(merged.commits),
            len(merged.pull_requests),
            len(merged.work_items),
            merged.successful_projects,
            len(scope.projects),
        )
        return merged

    async def _resolve_identity(self, scope: StatsScope) -> Result:
        if not self.options.include_pull_requests:
            return Ok(None)
        if not scope.user_email:
            return Err(UnresolvableIdentityError(None))
        identity = await capture(resolve_identity_id(self.client, scope.user_email))
        if not identity.ok:
            _logger.warning("Identity lookup failed for %s: %s", scope.user_email, identity.error)
        return identity

    async def _collect_project(self, scope: StatsScope, project: str, identity: Result) -> ProjectFetch:
        fetch = ProjectFetch(project=project)
        repositories = scope.repositories_for(project)
        kinds: list[tuple[str, object]] = []
        if self.options.include_commits:
            kinds.append((COMMITS, self._commits(scope, project, repositories)))
        if self.options.include_pull_requests:
            kinds.append((PULL_REQUESTS, self._pull_requests(scope, project, repositories, identity)))
        if self.options.include_work_items:
            work_items = fetch_work_items(
                self.client,
                project,
                scope.from_date,
                scope.to_date,
                scope.user_email,
                batch_size=self.options.work_item_batch_size,
            )
            kinds.append((WORK_ITEMS, work_items))
        fetch.attempted = len(kinds)

        results = await asyncio.gather(*(capture(coroutine) for _, coroutine in kinds))

        for (kind, _), result in zip(kinds, results):
            if not result.ok:
                _logger.warning("Failed to fetch %s for project %s: %s", kind, project, result.error)
                record_fetch_failure(kind)
                fetch.failures[kind] = _describe(result.error)
                continue
            if kind == COMMITS:
                fetch.commits = result.value
            elif kind == PULL_REQUESTS:
                fetch.pull_requests = result.value
            else:
                fetch.work_items = result.value
        return fetch

    async def _commits(self, scope: StatsScope, project: str, repositories: Sequence[str]) -> list[Commit]:
        commits: list[Commit] = []
        for repository in repositories:

            async def on_branch(branch: Optional[str], repository: str = repository) -> list[Commit]:
                return await fetch_commits(
                    self.client,
                    project,
                    repository,
                    scope.from_date,
                    scope.to_date,
                    user_email=scope.user_email,
                    branch=branch,
                    include_change_counts=self.options.include_change_counts,
                    change_limit=self.options.commit_change_limit,
                    page_size=self.options.page_size,
                )

            commits.extend(await first_non_empty(self.options.branch_candidates or (None,), on_branch))
        return commits

    async def _pull_requests(
        self, scope: StatsScope, project: str, repositories: Sequence[str], identity: Result
    ) -> list[PullRequest]:
        creator_id = identity.unwrap()
        pull_requests: list[PullRequest] = []
        for repository in repositories:
            pull_requests.extend(
                await fetch_pull_requests(
                    self.client,
                    project,
                    repository,
                    scope.from_date,
                    scope.to_date,
                    creator_id=creator_id,
                    reviewer_id=creator_id,
                    target_branches=self.options.target_branches,
                    page_size=self.options.page_size,
                )
            )
        return pull_requests
