"""File round-trip for the ``WrappedStats`` document."""

from __future__ import annotations

from pathlib import Path

from wrapped.models.stats import WrappedStats


def dump_stats(stats: WrappedStats, path: str | Path) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(stats.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    return target


def load_stats(path: str | Path) -> WrappedStats:
    return WrappedStats.model_validate_json(Path(path).read_text(encoding="utf-8"))
