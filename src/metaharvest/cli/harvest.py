"""CLI entrypoint for incremental OAI-PMH harvesting of configured sources."""

from __future__ import annotations

import argparse
from dataclasses import replace
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

from metaharvest.config import HarvestSettings, SourceConfigError, load_sources
from metaharvest.harvest.models import HarvestSummary, HarvestWindow
from metaharvest.harvest.runner import run_harvests


load_dotenv()

LOGGER = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Harvest metadata records from OAI-PMH repositories")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--source", action="append", help="Source id to harvest (repeatable)")
    target.add_argument("--all", action="store_true", help="Harvest every configured source")
    parser.add_argument("--from", dest="start", default=None, help="Override the start date")
    parser.add_argument("--until", dest="end", default=None, help="Override the end date")
    parser.add_argument("--config", default=None, help="Datasources INI file")
    parser.add_argument("--db-path", default=None, help="SQLite database path")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _describe(result: HarvestSummary | BaseException) -> dict[str, object]:
    if isinstance(result, HarvestSummary):
        return {"status": "ok", **result.to_dict()}
    return {"status": "error", "error_type": type(result).__name__, "error": str(result)}


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        settings = HarvestSettings.from_env()
    except ValueError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return 2

    config_path = args.config or settings.datasources
    try:
        sources = load_sources(config_path)
    except SourceConfigError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return 2

    if not args.all:
        unknown = [name for name in args.source if name not in sources]
        if unknown:
            LOGGER.error("Unknown source(s): %s", ", ".join(unknown))
            return 2
        sources = {name: sources[name] for name in args.source}

    if args.db_path:
        settings = replace(settings, db_path=Path(args.db_path))

    window = None
    if args.start or args.end:
        window = HarvestWindow(start=args.start, end=args.end)

    try:
        results = run_harvests(sources, settings, window)
    except KeyboardInterrupt:
        LOGGER.info("Harvest interrupted by user")
        return 130

    payload = {name: _describe(result) for name, result in results.items()}
    print(json.dumps(payload, ensure_ascii=True, indent=2))
    return 0 if all(isinstance(result, HarvestSummary) for result in results.values()) else 1


if __name__ == "__main__":
    raise SystemExit(main())
