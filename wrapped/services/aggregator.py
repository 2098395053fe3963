"""Fold merged commits, pull requests and work items into ``WrappedStats``.

Everything here is synchronous and side-effect free: the inputs are already
fetched and deduplicated, and the same inputs always produce the same output
(apart from ``generatedAt``, which callers can pin).
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Sequence

from wrapped.models.devops import Commit, PullRequest, PullRequestStatus, WorkItem, resolution_date
from wrapped.models.stats import (
    ActivityShares,
    AreaCount,
    CommitStats,
    ExtensionCount,
    FastestMerge,
    FastestResolution,
    Insights,
    LargestPullRequest,
    MetaInfo,
    Personality,
    PullRequestStats,
    SlowestMerge,
    TagCount,
    WorkItemStats,
    WrappedStats,
)

_logger = logging.getLogger(__name__)

MONTH_NAMES: tuple[str, ...] = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
DAY_NAMES: tuple[str, ...] = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

COMMIT_MESSAGE_STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
        "is", "was", "are", "been", "be", "have", "has", "had", "do", "does", "did",
        "will", "would", "could", "should", "may", "might",
        "merge", "merged", "pull", "request", "pr", "from", "into", "branch",
    }
)  # fmt: skip

NIGHT_HOURS = frozenset({22, 23, 0, 1, 2, 3})
MORNING_HOURS = frozenset({6, 7, 8})
BUSINESS_HOURS = frozenset(range(9, 17))
WEEKEND_DAYS = frozenset({"Saturday", "Sunday"})

TOP_KEYWORDS = 10
TOP_TAGS = 10
TOP_AREAS = 5
TOP_EXTENSIONS = 5

_PUNCTUATION = re.compile(r"[^\w\s]")


@dataclass(frozen=True)
class PersonalityThresholds:
    """Percent shares above which a personality applies, checked in this order."""

    weekend: float = 30.0
    night: float = 25.0
    morning: float = 20.0

    @classmethod
    def from_settings(cls, settings) -> "PersonalityThresholds":
        return cls(
            weekend=settings.weekend_threshold,
            night=settings.night_threshold,
            morning=settings.morning_threshold,
        )


@dataclass(frozen=True)
class AggregationScope:
    organization: str
    projects: Sequence[str]
    repositories: Sequence[str]
    year: int
    user_email: Optional[str] = None


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def iso_timestamp(value: datetime) -> str:
    """Fixed-width UTC ISO-8601 with milliseconds, so strings sort chronologically."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def month_name(value: datetime) -> str:
    return MONTH_NAMES[value.month - 1]


def day_name(value: datetime) -> str:
    # datetime.weekday() counts from Monday.
    return DAY_NAMES[(value.weekday() + 1) % 7]


def seed_histograms() -> tuple[dict[str, int], dict[str, int], dict[int, int]]:
    return (
        {name: 0 for name in MONTH_NAMES},
        {name: 0 for name in DAY_NAMES},
        {hour: 0 for hour in range(24)},
    )


def longest_streak(days: Iterable[date]) -> int:
    ordered = sorted(set(days))
    if not ordered:
        return 0
    longest = current = 1
    for previous, following in zip(ordered, ordered[1:]):
        if (following - previous).days == 1:
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest


def extract_top_words(messages: Iterable[str], top_n: int = TOP_KEYWORDS) -> list[str]:
    counts: Counter[str] = Counter()
    for message in messages:
        for word in _PUNCTUATION.sub(" ", message.lower()).split():
            if len(word) > 3 and word not in COMMIT_MESSAGE_STOP_WORDS:
                counts[word] += 1
    return [word for word, _ in counts.most_common(top_n)]


def aggregate_commit_stats(commits: Sequence[Commit]) -> CommitStats:
    by_month, by_day, by_hour = seed_histograms()
    additions = edits = deletions = 0
    first: Optional[str] = None
    last: Optional[str] = None
    messages: list[str] = []
    commit_days: list[date] = []

    for commit in commits:
        authored = commit.author.date
        by_month[month_name(authored)] += 1
        by_day[day_name(authored)] += 1
        by_hour[authored.hour] += 1

        if commit.change_counts is not None:
            additions += commit.change_counts.add
            edits += commit.change_counts.edit
            deletions += commit.change_counts.delete

        stamp = iso_timestamp(authored)
        if first is None or stamp < first:
            first = stamp
        if last is None or stamp > last:
            last = stamp

        if commit.comment:
            messages.append(commit.comment)
        commit_days.append(authored.date())

    return CommitStats(
        total=len(commits),
        additions=additions,
        edits=edits,
        deletions=deletions,
        by_month=by_month,
        by_day_of_week=by_day,
        by_hour=by_hour,
        longest_streak=longest_streak(commit_days),
        first_commit_date=first or "",
        last_commit_date=last or "",
        top_commit_messages=extract_top_words(messages),
        commit_dates=[day.isoformat() for day in commit_days],
    )


def merge_hours(created: datetime, closed: datetime) -> float:
    return (closed - created).total_seconds() / 3600


def completed_pull_requests(pull_requests: Iterable[PullRequest]) -> list[PullRequest]:
    return [
        pull_request
        for pull_request in pull_requests
        if pull_request.status == PullRequestStatus.COMPLETED and pull_request.closed_date is not None
    ]


def format_merge_duration(avg_days: float) -> str:
    if avg_days <= 0:
        return "N/A"
    if avg_days < 1:
        hours = int(round_half_up(avg_days * 24))
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    days = round_half_up(avg_days, 1)
    text = f"{days:.1f}".removesuffix(".0")
    return f"{text} day" if days == 1 else f"{text} days"


def count_by_status(pull_requests: Sequence[PullRequest], user_email: Optional[str]) -> tuple[int, int, int, int]:
    """``(created, merged, abandoned, reviewed)`` from the viewpoint of ``user_email``."""
    if user_email:
        created = [pr for pr in pull_requests if pr.created_by_user(user_email)]
        reviewed = sum(
            1 for pr in pull_requests if pr.reviewed_by_user(user_email) and not pr.created_by_user(user_email)
        )
    else:
        created = list(pull_requests)
        reviewed = 0
    merged = sum(1 for pr in created if pr.status == PullRequestStatus.COMPLETED)
    abandoned = sum(1 for pr in created if pr.status == PullRequestStatus.ABANDONED)
    return len(created), merged, abandoned, reviewed


def find_largest_pull_request(pull_requests: Sequence[PullRequest]) -> Optional[LargestPullRequest]:
    if not pull_requests:
        return None
    largest = max(pull_requests, key=lambda pr: len(pr.title) + len(pr.description or ""))
    return LargestPullRequest(id=largest.pull_request_id, title=largest.title, files_changed=0)


def aggregate_pull_request_stats(pull_requests: Sequence[PullRequest], user_email: Optional[str]) -> PullRequestStats:
    created, merged, abandoned, reviewed = count_by_status(pull_requests, user_email)

    by_month, by_day, by_hour = seed_histograms()
    first: Optional[str] = None
    last: Optional[str] = None
    for pull_request in pull_requests:
        opened = pull_request.creation_date
        by_month[month_name(opened)] += 1
        by_day[day_name(opened)] += 1
        by_hour[opened.hour] += 1
        stamp = iso_timestamp(opened)
        if first is None or stamp < first:
            first = stamp
        if last is None or stamp > last:
            last = stamp

    completed = completed_pull_requests(pull_requests)
    avg_days = 0.0
    fastest: Optional[FastestMerge] = None
    slowest: Optional[SlowestMerge] = None
    if completed:
        durations = [
            (merge_hours(pull_request.creation_date, pull_request.closed_date), pull_request)
            for pull_request in completed
            if pull_request.closed_date is not None
        ]
        avg_days = sum(hours for hours, _ in durations) / len(durations) / 24
        # sorted() is stable, so equal durations keep encounter order.
        ordered = sorted(durations, key=lambda entry: entry[0])
        quickest_hours, quickest = ordered[0]
        longest_hours, longest = ordered[-1]
        fastest = FastestMerge(
            id=quickest.pull_request_id, title=quickest.title, hours=round_half_up(quickest_hours, 1)
        )
        slowest = SlowestMerge(id=longest.pull_request_id, title=longest.title, days=round_half_up(longest_hours / 24, 1))

    return PullRequestStats(
        created=created,
        merged=merged,
        abandoned=abandoned,
        reviewed=reviewed,
        avg_days_to_merge=round_half_up(avg_days, 1),
        avg_days_to_merge_formatted=format_merge_duration(avg_days),
        largest_pr=find_largest_pull_request(pull_requests),
        by_month=by_month,
        by_day_of_week=by_day,
        by_hour=by_hour,
        first_pr_date=first or "",
        last_pr_date=last or "",
        total_comments=sum(len(pull_request.reviewers) for pull_request in pull_requests),
        fastest_merge=fastest,
        slowest_merge=slowest,
    )


def split_tags(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [tag.strip() for tag in raw.split(";") if tag.strip()]


def area_leaf(area_path: Optional[str]) -> Optional[str]:
    if not area_path:
        return None
    leaf = area_path.split("\\")[-1].strip()
    return leaf or None


def aggregate_work_item_stats(work_items: Sequence[WorkItem]) -> WorkItemStats:
    if not work_items:
        return WorkItemStats(by_month={name: 0 for name in MONTH_NAMES})

    by_type: Counter[str] = Counter()
    by_priority: Counter[int] = Counter()
    by_month = {name: 0 for name in MONTH_NAMES}
    bugs_by_severity: Counter[str] = Counter()
    tags: Counter[str] = Counter()
    areas: Counter[str] = Counter()
    bugs_fixed = 0
    total_hours = 0
    timed = 0
    fastest: Optional[FastestResolution] = None
    first: Optional[str] = None
    last: Optional[str] = None

    for item in work_items:
        item_type = item.work_item_type or "Unknown"
        by_type[item_type] += 1
        if item_type == "Bug":
            bugs_fixed += 1
            if item.severity:
                bugs_by_severity[item.severity] += 1
        if item.priority is not None:
            by_priority[item.priority] += 1
        for tag in split_tags(item.tags):
            tags[tag] += 1
        leaf = area_leaf(item.area_path)
        if leaf:
            areas[leaf] += 1

        resolved = resolution_date(item)
        if resolved is None:
            continue
        by_month[month_name(resolved)] += 1
        stamp = iso_timestamp(resolved)
        if first is None or stamp < first:
            first = stamp
        if last is None or stamp > last:
            last = stamp

        if item.created_date is None:
            continue
        seconds = (resolved - item.created_date).total_seconds()
        if seconds < 0:
            _logger.debug("Work item %s resolved before it was created; excluded from timing", item.id)
            continue
        hours = int(seconds // 3600)
        total_hours += hours
        timed += 1
        if fastest is None or hours < fastest.hours:
            fastest = FastestResolution(id=item.id, title=item.title, hours=hours)

    return WorkItemStats(
        total=len(work_items),
        by_type=dict(by_type),
        by_priority=dict(by_priority),
        by_month=by_month,
        bugs_fixed=bugs_fixed,
        bugs_by_severity=dict(bugs_by_severity),
        top_tags=[TagCount(tag=tag, count=count) for tag, count in tags.most_common(TOP_TAGS)],
        avg_resolution_days=round_half_up(total_hours / timed / 24, 1) if timed else 0.0,
        fastest_resolution=fastest,
        first_resolved_date=first or "",
        last_resolved_date=last or "",
        top_areas=[AreaCount(area=area, count=count) for area, count in areas.most_common(TOP_AREAS)],
    )


def activity_shares(timestamps: Sequence[datetime]) -> ActivityShares:
    if not timestamps:
        return ActivityShares()
    total = len(timestamps)

    def percent(count: int) -> float:
        return count * 100 / total

    return ActivityShares(
        night=percent(sum(1 for ts in timestamps if ts.hour in NIGHT_HOURS)),
        morning=percent(sum(1 for ts in timestamps if ts.hour in MORNING_HOURS)),
        business=percent(sum(1 for ts in timestamps if ts.hour in BUSINESS_HOURS)),
        weekend=percent(sum(1 for ts in timestamps if day_name(ts) in WEEKEND_DAYS)),
    )


def classify_personality(shares: ActivityShares, thresholds: PersonalityThresholds) -> Personality:
    # Order matters: the first crossed threshold wins.
    if shares.weekend > thresholds.weekend:
        return "Weekend Warrior"
    if shares.night > thresholds.night:
        return "Night Owl"
    if shares.morning > thresholds.morning:
        return "Early Bird"
    return "Nine-to-Fiver"


def top_file_extensions(commits: Sequence[Commit], top_n: int = TOP_EXTENSIONS) -> list[ExtensionCount]:
    counts: Counter[str] = Counter()
    for commit in commits:
        for path in commit.changed_paths():
            name = path.rsplit("/", 1)[-1]
            if "." not in name:
                continue
            extension = name.rsplit(".", 1)[-1].lower()
            if extension:
                counts[extension] += 1
    return [ExtensionCount(ext=ext, count=count) for ext, count in counts.most_common(top_n)]


def _argmax(values: Iterable) -> Optional[object]:
    ranked = Counter(values).most_common(1)
    return ranked[0][0] if ranked else None


def generate_insights(
    commits: Sequence[Commit],
    pull_requests: Sequence[PullRequest],
    thresholds: PersonalityThresholds,
) -> Insights:
    if commits:
        timestamps = [commit.author.date for commit in commits]
        extensions = top_file_extensions(commits)
    elif pull_requests:
        timestamps = [pull_request.creation_date for pull_request in pull_requests]
        extensions = []
    else:
        return Insights()

    shares = activity_shares(timestamps)
    return Insights(
        personality=classify_personality(shares, thresholds),
        busiest_month=_argmax(month_name(ts) for ts in timestamps),
        busiest_day=_argmax(day_name(ts) for ts in timestamps),
        favorite_commit_hour=_argmax(ts.hour for ts in timestamps),
        top_file_extensions=extensions,
        activity_shares=shares,
    )


def aggregate_stats(
    commits: Sequence[Commit],
    pull_requests: Sequence[PullRequest],
    work_items: Sequence[WorkItem],
    scope: AggregationScope,
    *,
    thresholds: Optional[PersonalityThresholds] = None,
    generated_at: Optional[datetime] = None,
) -> WrappedStats:
    _logger.debug(
        "Aggregating %d commits, %d pull requests, %d work items",
        len(commits),
        len(pull_requests),
        len(work_items),
    )
    return WrappedStats(
        meta=MetaInfo(
            organization=scope.organization,
            projects=list(scope.projects),
            repositories=list(scope.repositories),
            year=scope.year,
            generated_at=iso_timestamp(generated_at or datetime.now(timezone.utc)),
            user_email=scope.user_email,
        ),
        commits=aggregate_commit_stats(commits),
        pull_requests=aggregate_pull_request_stats(pull_requests, scope.user_email),
        work_items=aggregate_work_item_stats(work_items),
        insights=generate_insights(commits, pull_requests, thresholds or PersonalityThresholds()),
    )
