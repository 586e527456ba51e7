"""CLI command that normalizes a single record file and prints its canonical fields."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

from metaharvest.config import SourceConfigError, SourceSettings, load_sources
from metaharvest.normalize import PROFILES, ParsedRecord, RecordNormalizer, RecordRejected
from metaharvest.normalize.base import NormalizerParams


load_dotenv()

LOGGER = logging.getLogger(__name__)


def _build_normalizer(args: argparse.Namespace) -> RecordNormalizer:
    if args.config:
        sources = load_sources(args.config)
        if args.source not in sources:
            raise SourceConfigError(args.source, f"Source not found in {args.config}")
        source: SourceSettings = sources[args.source]
        return RecordNormalizer(
            PROFILES[source.format],
            source.normalizer,
            authority=source.authority_mapper(),
        )
    return RecordNormalizer(PROFILES[args.format], NormalizerParams(source_id=args.source))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Normalize one metadata record and print canonical fields")
    parser.add_argument("--path", required=True, help="Record XML file")
    parser.add_argument("--source", default="local", help="Source id used for prefixes and settings")
    parser.add_argument("--config", default=None, help="Datasources INI file with the source's settings")
    parser.add_argument("--format", default="lido", choices=sorted(PROFILES), help="Record schema")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    record_path = Path(args.path)
    try:
        normalizer = _build_normalizer(args)
        payload_bytes = record_path.read_bytes()
    except (SourceConfigError, OSError) as exc:
        LOGGER.error("Cannot normalize %s: %s", record_path, exc)
        print(json.dumps({"path": str(record_path), "error": str(exc)}, ensure_ascii=True, indent=2))
        return 2

    try:
        with ParsedRecord.from_xml(payload_bytes, source_id=args.source) as record:
            fields = normalizer.normalize(record)
            locations = normalizer.locations(record)
            warnings = list(record.warnings)
            record_id = record.record_id
    except RecordRejected as exc:
        LOGGER.warning("Rejected %s: %s", record_path, exc)
        print(json.dumps({"path": str(record_path), "error": str(exc)}, ensure_ascii=True, indent=2))
        return 1

    payload = {
        "path": str(record_path),
        "source": args.source,
        "record_id": record_id,
        "fields": fields.to_dict(),
        "locations": locations.to_dict(),
        "warnings": warnings,
    }
    print(json.dumps(payload, ensure_ascii=True, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
