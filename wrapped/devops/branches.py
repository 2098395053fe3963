"""Ordered branch-name fallback as a small state machine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, TypeVar, Union

from wrapped.core.result import Result, capture

T = TypeVar("T")


@dataclass(frozen=True)
class TryNext:
    branch: Optional[str]


@dataclass(frozen=True)
class Found:
    branch: Optional[str]
    items: list


@dataclass(frozen=True)
class Exhausted:
    last: Optional[Result]


Step = Union[TryNext, Found, Exhausted]


def advance(candidates: Sequence[Optional[str]], attempted: int, outcome: Optional[Result]) -> Step:
    """Next step after ``attempted`` candidates, the last of which produced ``outcome``."""
    if outcome is not None and outcome.ok and outcome.value:
        return Found(candidates[attempted - 1], outcome.value)
    if attempted < len(candidates):
        return TryNext(candidates[attempted])
    return Exhausted(outcome)


async def first_non_empty(
    candidates: Sequence[Optional[str]],
    fetch: Callable[[Optional[str]], Awaitable[list[T]]],
) -> list[T]:
    """Items from the first candidate branch that yields any.

    A failing candidate moves on to the next one; if the final candidate fails
    its error propagates, otherwise the result is empty.
    """
    attempted = 0
    step = advance(candidates, attempted, None)
    while isinstance(step, TryNext):
        outcome = await capture(fetch(step.branch))
        attempted += 1
        step = advance(candidates, attempted, outcome)
    if isinstance(step, Found):
        return step.items
    if step.last is None:
        return []
    return step.last.unwrap()
