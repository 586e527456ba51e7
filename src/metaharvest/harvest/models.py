"""Values exchanged between the harvest controller, its sinks and its store."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum


class RecordStatus(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class RawRecord:
    """One record as delivered by the repository, before normalization."""

    identifier: str
    xml_payload: str
    status: RecordStatus = RecordStatus.ACTIVE
    datestamp: str = ""

    @property
    def deleted(self) -> bool:
        return self.status is RecordStatus.DELETED


@dataclass(frozen=True, slots=True)
class HarvestWindow:
    """Explicit ``from``/``until`` bounds; ``None`` means use the default."""

    start: str | None = None
    end: str | None = None


@dataclass(slots=True)
class HarvestState:
    source_id: str
    last_harvested_date: str | None = None

    @property
    def state_id(self) -> str:
        return state_id(self.source_id)

    def to_dict(self) -> dict[str, object]:
        return {"id": self.state_id, "value": self.last_harvested_date}


def state_id(source_id: str) -> str:
    return f"Last Harvest Date {source_id}"


@dataclass(slots=True)
class HarvestSummary:
    """Counters and timing for one harvest run."""

    source: str
    changed: int = 0
    deleted: int = 0
    unchanged: int = 0
    rejected: int = 0
    pages: int = 0
    last_harvested_date: str | None = None
    duration_ms: int = 0

    @property
    def harvested_count(self) -> int:
        return self.changed + self.deleted + self.unchanged + self.rejected

    def to_dict(self) -> dict[str, object]:
        payload = asdict(self)
        payload["harvested_count"] = self.harvested_count
        return payload
