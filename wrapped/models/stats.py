"""Output models for the annual activity summary."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Personality = Literal["Night Owl", "Early Bird", "Nine-to-Fiver", "Weekend Warrior"]


class StatsModel(BaseModel):
    """Serialises with camelCase keys, which is the exported document format."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MetaInfo(StatsModel):
    organization: str
    projects: list[str]
    repositories: list[str]
    year: int
    generated_at: str
    user_email: Optional[str] = None


class CommitStats(StatsModel):
    total: int = 0
    additions: int = 0
    edits: int = 0
    deletions: int = 0
    by_month: dict[str, int] = Field(default_factory=dict)
    by_day_of_week: dict[str, int] = Field(default_factory=dict)
    by_hour: dict[int, int] = Field(default_factory=dict)
    longest_streak: int = 0
    first_commit_date: str = ""
    last_commit_date: str = ""
    top_commit_messages: list[str] = Field(default_factory=list, description="Most frequent commit message words.")
    commit_dates: list[str] = Field(default_factory=list, description="One YYYY-MM-DD entry per commit.")


class PullRequestRef(StatsModel):
    id: int
    title: str


class LargestPullRequest(PullRequestRef):
    files_changed: int = Field(0, description="Placeholder unless a per-PR enrichment step ran.")


class FastestMerge(PullRequestRef):
    hours: float


class SlowestMerge(PullRequestRef):
    days: float


class PullRequestStats(StatsModel):
    created: int = 0
    merged: int = 0
    abandoned: int = 0
    reviewed: int = 0
    avg_days_to_merge: float = 0.0
    avg_days_to_merge_formatted: str = "N/A"
    largest_pr: Optional[LargestPullRequest] = Field(None, alias="largestPR")
    by_month: dict[str, int] = Field(default_factory=dict)
    by_day_of_week: dict[str, int] = Field(default_factory=dict)
    by_hour: dict[int, int] = Field(default_factory=dict)
    first_pr_date: str = Field("", alias="firstPRDate")
    last_pr_date: str = Field("", alias="lastPRDate")
    total_comments: int = 0
    fastest_merge: Optional[FastestMerge] = None
    slowest_merge: Optional[SlowestMerge] = None


class TagCount(StatsModel):
    tag: str
    count: int


class AreaCount(StatsModel):
    area: str
    count: int


class FastestResolution(StatsModel):
    id: int
    title: str
    hours: int


class WorkItemStats(StatsModel):
    total: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    by_priority: dict[int, int] = Field(default_factory=dict)
    by_month: dict[str, int] = Field(default_factory=dict)
    bugs_fixed: int = 0
    bugs_by_severity: dict[str, int] = Field(default_factory=dict)
    top_tags: list[TagCount] = Field(default_factory=list)
    avg_resolution_days: float = 0.0
    fastest_resolution: Optional[FastestResolution] = None
    first_resolved_date: str = ""
    last_resolved_date: str = ""
    top_areas: list[AreaCount] = Field(default_factory=list)


class BuildStats(StatsModel):
    """Always zero: build data is not collected."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    success_rate: float = 0.0
    avg_duration_minutes: float = 0.0


class ExtensionCount(StatsModel):
    ext: str
    count: int


class ActivityShares(StatsModel):
    """Percent of activity timestamps falling in each window."""

    night: float = 0.0
    morning: float = 0.0
    business: float = 0.0
    weekend: float = 0.0


class Insights(StatsModel):
    personality: Personality = "Nine-to-Fiver"
    busiest_month: str = "Unknown"
    busiest_day: str = "Unknown"
    favorite_commit_hour: int = 12
    top_file_extensions: list[ExtensionCount] = Field(default_factory=list)
    activity_shares: ActivityShares = Field(default_factory=ActivityShares)


class WrappedStats(StatsModel):
    meta: MetaInfo
    commits: CommitStats
    pull_requests: PullRequestStats
    work_items: WorkItemStats
    builds: BuildStats = Field(default_factory=BuildStats)
    insights: Insights
