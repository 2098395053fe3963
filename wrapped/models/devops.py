"""Records returned by the Azure DevOps REST API, as immutable pydantic models."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

_FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")


def _normalize_timestamp(value: Any) -> Any:
    # The platform emits up to seven fractional digits and a trailing Z.
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        return _FRACTION_PATTERN.sub(r"\1", text)
    return value


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


Timestamp = Annotated[datetime, BeforeValidator(_normalize_timestamp), AfterValidator(_as_utc)]


class DevOpsRecord(BaseModel):
    """Base for platform records: camelCase on the wire, frozen once built."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore")


class PullRequestStatus(str, Enum):
    """Pull request lifecycle states as named by the platform."""

    NOT_SET = "notSet"
    ACTIVE = "active"
    ABANDONED = "abandoned"
    COMPLETED = "completed"
    ALL = "all"


class GitUserDate(DevOpsRecord):
    name: str = ""
    email: str = ""
    date: Timestamp


class ChangeCounts(DevOpsRecord):
    add: int = Field(0, alias="Add")
    edit: int = Field(0, alias="Edit")
    delete: int = Field(0, alias="Delete")


class GitItem(DevOpsRecord):
    path: str = ""
    is_folder: bool = False
    git_object_type: Optional[str] = None


class GitChange(DevOpsRecord):
    item: Optional[GitItem] = None
    change_type: Optional[str] = None


class Commit(DevOpsRecord):
    """A commit; ``commit_id`` is the dedup key across merged projects."""

    commit_id: str
    author: GitUserDate
    committer: GitUserDate
    comment: str = ""
    change_counts: Optional[ChangeCounts] = None
    changes: list[GitChange] = Field(default_factory=list)

    def changed_paths(self) -> list[str]:
        paths: list[str] = []
        for change in self.changes:
            item = change.item
            if item is None or not item.path or item.is_folder or item.git_object_type == "tree":
                continue
            paths.append(item.path)
        return paths


class IdentityRef(DevOpsRecord):
    id: str = ""
    display_name: str = ""
    unique_name: str = ""


class Reviewer(IdentityRef):
    vote: int = 0


class PullRequest(DevOpsRecord):
    """A pull request; ``pull_request_id`` is only unique within its repository."""

    pull_request_id: int
    status: PullRequestStatus = PullRequestStatus.NOT_SET
    created_by: IdentityRef
    creation_date: Timestamp
    closed_date: Optional[Timestamp] = None
    title: str = ""
    description: Optional[str] = None
    source_ref_name: Optional[str] = None
    target_ref_name: Optional[str] = None
    reviewers: list[Reviewer] = Field(default_factory=list)

    def created_by_user(self, email: str) -> bool:
        return self.created_by.unique_name.lower() == email.lower()

    def reviewed_by_user(self, email: str) -> bool:
        target = email.lower()
        return any(reviewer.unique_name.lower() == target for reviewer in self.reviewers)


# Platform field reference names mapped onto WorkItem attributes.
WORK_ITEM_FIELDS: dict[str, str] = {
    "System.WorkItemType": "work_item_type",
    "System.Title": "title",
    "System.State": "state",
    "System.Reason": "reason",
    "System.CreatedDate": "created_date",
    "System.ChangedDate": "changed_date",
    "Microsoft.VSTS.Common.ResolvedDate": "resolved_date",
    "Microsoft.VSTS.Common.ClosedDate": "closed_date",
    "System.Tags": "tags",
    "System.AreaPath": "area_path",
    "Microsoft.VSTS.Common.Priority": "priority",
    "Microsoft.VSTS.Common.Severity": "severity",
}

# Not every process template defines the first two; changed date always exists.
RESOLUTION_DATE_PRECEDENCE: tuple[str, ...] = ("resolved_date", "closed_date", "changed_date")


class WorkItem(BaseModel):
    """A work item with the recognised fields typed and the rest kept in ``extra``."""

    model_config = ConfigDict(frozen=True)

    id: int
    work_item_type: str = ""
    title: str = ""
    state: str = ""
    reason: str = ""
    created_date: Optional[Timestamp] = None
    changed_date: Optional[Timestamp] = None
    resolved_date: Optional[Timestamp] = None
    closed_date: Optional[Timestamp] = None
    tags: Optional[str] = None
    area_path: Optional[str] = None
    priority: Optional[int] = None
    severity: Optional[str] = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "WorkItem":
        known: dict[str, Any] = {"id": payload["id"]}
        extra: dict[str, Any] = {}
        for reference_name, value in (payload.get("fields") or {}).items():
            attribute = WORK_ITEM_FIELDS.get(reference_name)
            if attribute is None:
                extra[reference_name] = value
            elif value is not None:
                known[attribute] = value
        known["extra"] = extra
        return cls.model_validate(known)


def resolution_date(item: WorkItem) -> Optional[datetime]:
    """First populated date in ``RESOLUTION_DATE_PRECEDENCE``."""
    for attribute in RESOLUTION_DATE_PRECEDENCE:
        value = getattr(item, attribute)
        if value is not None:
            return value
    return None


class TeamProject(DevOpsRecord):
    id: str
    name: str
    description: Optional[str] = None
    state: Optional[str] = None


class ProjectReference(DevOpsRecord):
    id: Optional[str] = None
    name: str


class Repository(DevOpsRecord):
    id: str
    name: str
    project: Optional[ProjectReference] = None
    default_branch: Optional[str] = None
    size: Optional[int] = None
    web_url: Optional[str] = None
