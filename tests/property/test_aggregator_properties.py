from datetime import date, datetime, timedelta, timezone

from hypothesis import given, strategies as st

from wrapped.models.devops import Commit
from wrapped.services.aggregator import (
    DAY_NAMES,
    MONTH_NAMES,
    PersonalityThresholds,
    activity_shares,
    aggregate_commit_stats,
    classify_personality,
    longest_streak,
)
from wrapped.services.orchestrator import ActivityMerger, ProjectFetch

YEAR_START = datetime(2024, 1, 1, tzinfo=timezone.utc)

timestamps = st.integers(min_value=0, max_value=366 * 24 * 60 - 1).map(lambda minutes: YEAR_START + timedelta(minutes=minutes))


def _commit(commit_id: str, when: datetime) -> Commit:
    stamp = when.isoformat().replace("+00:00", "Z")
    person = {"name": "Dana", "email": "dana@example.com", "date": stamp}
    return Commit.model_validate({"commitId": commit_id, "author": person, "committer": person, "comment": "work"})


@given(st.lists(st.lists(st.integers(min_value=0, max_value=30), max_size=15), min_size=1, max_size=4))
def test_merge_keeps_first_occurrence_of_each_commit(project_ids):
    merger = ActivityMerger()
    for index, ids in enumerate(project_ids):
        commits = [_commit(f"c{value}", YEAR_START) for value in ids]
        fetch = ProjectFetch(project=f"P{index}", commits=commits, attempted=1)
        merger.add(fetch)
        # Replaying a project changes nothing.
        merger.add(fetch)

    expected = list(dict.fromkeys(f"c{value}" for ids in project_ids for value in ids))
    assert [commit.commit_id for commit in merger.merged.commits] == expected
    assert merger.merged.successful_projects == 2 * len(project_ids)


@given(st.lists(timestamps, max_size=40))
def test_histograms_account_for_every_commit(moments):
    stats = aggregate_commit_stats([_commit(f"c{i}", moment) for i, moment in enumerate(moments)])

    assert list(stats.by_month) == list(MONTH_NAMES)
    assert list(stats.by_day_of_week) == list(DAY_NAMES)
    assert list(stats.by_hour) == list(range(24))
    assert sum(stats.by_month.values()) == stats.total == len(moments)
    assert sum(stats.by_day_of_week.values()) == len(moments)
    assert sum(stats.by_hour.values()) == len(moments)
    if moments:
        assert stats.first_commit_date <= stats.last_commit_date


@given(st.lists(st.dates(min_value=date(2023, 1, 1), max_value=date(2025, 12, 31)), max_size=40))
def test_streak_is_bounded_by_distinct_days(days):
    streak = longest_streak(days)

    if not days:
        assert streak == 0
    else:
        assert 1 <= streak <= len(set(days))


@given(st.dates(min_value=date(2023, 1, 1), max_value=date(2025, 1, 1)), st.integers(min_value=1, max_value=60))
def test_consecutive_run_is_one_streak(start, length):
    days = [start + timedelta(days=offset) for offset in range(length)]

    assert longest_streak(list(reversed(days)) + days) == length


@given(st.lists(timestamps, min_size=1, max_size=60))
def test_personality_follows_the_cascade(moments):
    shares = activity_shares(moments)
    thresholds = PersonalityThresholds()
    personality = classify_personality(shares, thresholds)

    for value in (shares.night, shares.morning, shares.business, shares.weekend):
        assert 0.0 <= value <= 100.0
    if shares.weekend > thresholds.weekend:
        assert personality == "Weekend Warrior"
    elif shares.night > thresholds.night:
        assert personality == "Night Owl"
    elif shares.morning > thresholds.morning:
        assert personality == "Early Bird"
    else:
        assert personality == "Nine-to-Fiver"
