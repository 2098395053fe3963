"""Inspect or clear the Azure DevOps response cache."""

from __future__ import annotations

import argparse

from wrapped.core.config import settings
from wrapped.devops.cache import cache_from_settings


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Manage the Azure DevOps response cache")
    parser.add_argument("command", choices=["stats", "clear"], help="Action to perform on the cache")
    args = parser.parse_args(argv)

    cache = cache_from_settings()
    if not hasattr(cache, "stats"):
        print(f"Cache backend '{settings.cache_backend}' keeps no entries.")
        return 0

    if args.command == "stats":
        stats = cache.stats()
        print("Cache statistics:")
        print(f"  Entries:    {stats['entries']}")
        print(f"  Total size: {_format_size(stats['total_size'])}")
        print(f"  Location:   {stats['location']}")
    else:
        removed = cache.clear()
        print(f"Removed {removed} cache entries.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
