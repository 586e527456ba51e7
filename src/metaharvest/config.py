"""Deployment settings and per-source harvesting configuration."""

from __future__ import annotations

import configparser
from dataclasses import dataclass, field
import os
from pathlib import Path
import tempfile
from typing import Mapping

from metaharvest.normalize.authority import AuthorityNamespaceMapper
from metaharvest.normalize.base import NormalizerParams

DEFAULT_MAX_TRIES = 5
DEFAULT_RETRY_WAIT = 30.0
DEFAULT_HTTP_TIMEOUT = 60.0
DEFAULT_DB_PATH = ".metaharvest.db"
DEFAULT_DATASOURCES = "datasources.ini"

GRANULARITIES = ("day", "second")
SUPPORTED_FORMATS = ("lido",)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(slots=True)
class SourceConfigError(Exception):
    """Raised before any network activity when a source is misconfigured."""

    source: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (source={self.source})"


def _read_int(source: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    raw = source.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _read_float(source: Mapping[str, str], name: str, default: float) -> float:
    raw = source.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{name} cannot be negative")
    return value


@dataclass(frozen=True, slots=True)
class HarvestSettings:
    """Deployment-wide retry, timeout and storage settings."""

    max_tries: int = DEFAULT_MAX_TRIES
    retry_wait: float = DEFAULT_RETRY_WAIT
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    temp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    db_path: Path = Path(DEFAULT_DB_PATH)
    datasources: Path = Path(DEFAULT_DATASOURCES)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "HarvestSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        temp_dir = source.get("METAHARVEST_TEMP_DIR", "").strip()
        return cls(
            max_tries=_read_int(source, "METAHARVEST_MAX_TRIES", DEFAULT_MAX_TRIES, minimum=1),
            retry_wait=_read_float(source, "METAHARVEST_RETRY_WAIT", DEFAULT_RETRY_WAIT),
            http_timeout=_read_float(source, "METAHARVEST_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            temp_dir=Path(temp_dir) if temp_dir else Path(tempfile.gettempdir()),
            db_path=Path(source.get("METAHARVEST_DB_PATH", "").strip() or DEFAULT_DB_PATH),
            datasources=Path(source.get("METAHARVEST_DATASOURCES", "").strip() or DEFAULT_DATASOURCES),
        )


@dataclass(frozen=True, slots=True)
class SourceSettings:
    """One harvestable source, as declared in the datasources INI file."""

    source_id: str
    url: str
    metadata_prefix: str = "lido"
    set_spec: str = ""
    id_prefix: str = ""
    pre_transformation: Path | None = None
    granularity: str = "day"
    format: str = "lido"
    normalizer: NormalizerParams = field(default_factory=NormalizerParams)
    authority: Mapping[str, str] = field(default_factory=dict)

    def authority_mapper(self) -> AuthorityNamespaceMapper:
        return AuthorityNamespaceMapper(dict(self.authority))


def _parse_bool(source_id: str, key: str, raw: str | None) -> bool | None:
    if raw is None or not raw.strip():
        return None
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise SourceConfigError(source_id, f"{key} must be a boolean, got {raw!r}")


def _parse_pairs(source_id: str, key: str, raw: str | None) -> dict[str, str]:
    pairs: dict[str, str] = {}
    if not raw:
        return pairs
    for item in raw.replace("\n", ",").split(","):
        item = item.strip()
        if not item:
            continue
        label, separator, value = item.partition(":")
        if not separator or not label.strip():
            raise SourceConfigError(source_id, f"{key} entries must look like 'name:value', got {item!r}")
        pairs[label.strip()] = value.strip()
    return pairs


def _parse_priorities(source_id: str, key: str, raw: str | None) -> dict[str, int] | None:
    pairs = _parse_pairs(source_id, key, raw)
    if not pairs:
        return None
    try:
        return {label.lower(): int(priority) for label, priority in pairs.items()}
    except ValueError as exc:
        raise SourceConfigError(source_id, f"{key} priorities must be integers") from exc


def source_from_section(source_id: str, section: Mapping[str, str], base_dir: Path | None = None) -> SourceSettings:
    """Validate one INI section into ``SourceSettings``."""

    url = (section.get("url") or "").strip()
    if not url:
        raise SourceConfigError(source_id, "Missing url")
    if not (url.startswith("http://") or url.startswith("https://")):
        raise SourceConfigError(source_id, "url must start with http:// or https://")

    granularity = (section.get("granularity") or "day").strip().lower()
    if granularity not in GRANULARITIES:
        raise SourceConfigError(source_id, f"granularity must be one of {', '.join(GRANULARITIES)}")

    record_format = (section.get("format") or "lido").strip().lower()
    if record_format not in SUPPORTED_FORMATS:
        raise SourceConfigError(source_id, f"Unsupported record format {record_format!r}")

    pre_transformation = None
    xslt = (section.get("pre_transformation") or "").strip()
    if xslt:
        pre_transformation = Path(xslt)
        if not pre_transformation.is_absolute() and base_dir is not None:
            pre_transformation = base_dir / pre_transformation
        if not pre_transformation.is_file():
            raise SourceConfigError(source_id, f"Pre-transformation not found: {pre_transformation}")

    free_online_default = _parse_bool(source_id, "free_online_default", section.get("free_online_default"))
    params = NormalizerParams(
        source_id=source_id,
        main_events=_parse_priorities(source_id, "main_events", section.get("main_events")),
        place_events=_parse_priorities(source_id, "place_events", section.get("place_events")),
        online=_parse_bool(source_id, "online", section.get("online")),
        free_online=_parse_bool(source_id, "free_online", section.get("free_online")),
        free_online_default=True if free_online_default is None else free_online_default,
        split_titles=bool(_parse_bool(source_id, "split_titles", section.get("split_titles"))),
        institution_in_building=bool(
            _parse_bool(source_id, "institution_in_building", section.get("institution_in_building"))
        ),
        collection_in_building=bool(
            _parse_bool(source_id, "collection_in_building", section.get("collection_in_building"))
        ),
        institution=(section.get("institution") or "").strip(),
        collection=(section.get("collection") or "").strip(),
        default_language=(section.get("default_language") or "fi").strip(),
    )

    return SourceSettings(
        source_id=source_id,
        url=url,
        metadata_prefix=(section.get("metadata_prefix") or "lido").strip(),
        set_spec=(section.get("set") or "").strip(),
        id_prefix=(section.get("id_prefix") or "").strip(),
        pre_transformation=pre_transformation,
        granularity=granularity,
        format=record_format,
        normalizer=params,
        authority=_parse_pairs(source_id, "authority", section.get("authority")),
    )


def load_sources(path: str | Path) -> dict[str, SourceSettings]:
    """Read every section of a datasources INI file."""

    config_path = Path(path)
    if not config_path.is_file():
        raise SourceConfigError("*", f"Datasource configuration not found: {config_path}")

    parser = configparser.ConfigParser(interpolation=None)
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            parser.read_file(handle)
    except configparser.Error as exc:
        raise SourceConfigError("*", f"Invalid datasource configuration {config_path}: {exc}") from exc

    return {
        name: source_from_section(name, parser[name], base_dir=config_path.parent)
        for name in parser.sections()
    }
