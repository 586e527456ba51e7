"""Domain errors raised while harvesting a source."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from metaharvest.config import SourceConfigError


@dataclass(slots=True)
class HarvestRequestError(RuntimeError):
    """A repository request failed for good."""

    source: str
    url: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (source={self.source}, url={self.url})"


@dataclass(slots=True)
class HarvestParseError(RuntimeError):
    """A page body could not be parsed or pre-transformed."""

    source: str
    stage: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (source={self.source}, stage={self.stage})"


@dataclass(slots=True)
class HarvestProtocolError(RuntimeError):
    """The repository answered with a protocol-level error."""

    source: str
    code: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (source={self.source}, code={self.code})"


@dataclass(slots=True)
class HarvestCancelled(RuntimeError):
    source: str

    def __str__(self) -> str:
        return f"Harvest cancelled (source={self.source})"


@dataclass(slots=True)
class TempFileError(RuntimeError):
    path: Path
    message: str

    def __str__(self) -> str:
        return f"{self.message} (path={self.path})"


__all__ = [
    "HarvestCancelled",
    "HarvestParseError",
    "HarvestProtocolError",
    "HarvestRequestError",
    "SourceConfigError",
    "TempFileError",
]
