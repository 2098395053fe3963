"""Generate the yearly summary from environment configuration and write it as JSON."""

from __future__ import annotations

import argparse
import asyncio
import logging

from wrapped.core.config import settings
from wrapped.core.errors import DevOpsError
from wrapped.devops.cache import cache_from_settings
from wrapped.services.aggregator import PersonalityThresholds
from wrapped.services.export import dump_stats
from wrapped.services.orchestrator import FetchOptions
from wrapped.services.stats import StatsRequest, StatsService, client_factory_from_settings, resolve_scope

_logger = logging.getLogger("wrapped.export")


def main(argv: list[str] | None = None, service: StatsService | None = None) -> int:
    parser = argparse.ArgumentParser(description="Export Azure DevOps Wrapped stats")
    parser.add_argument("--output", default="wrapped-stats.json", help="Path to write (default: wrapped-stats.json)")
    parser.add_argument("--year", type=int, default=None, help="Override ADO_YEAR")
    parser.add_argument("--user-email", default=None, help="Override ADO_USER_EMAIL")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = settings.model_copy(update={"year": args.year}) if args.year else settings
    service = service or StatsService(
        client_factory_from_settings(config, cache_from_settings()),
        options=FetchOptions.from_settings(config),
        thresholds=PersonalityThresholds.from_settings(config),
    )

    try:
        scope, token = resolve_scope(StatsRequest(user_email=args.user_email), config)
        report = asyncio.run(service.generate(scope, token))
    except DevOpsError as exc:
        _logger.error("Export failed (%s): %s", exc.category, exc.message)
        return 1

    for error in report.errors:
        _logger.warning("Partial data for %s", error.describe())
    path = dump_stats(report.stats, args.output)
    print(f"Stats written to {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
