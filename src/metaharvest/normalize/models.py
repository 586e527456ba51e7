"""Canonical data structures shared by the normalization pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Callable, Iterable, Iterator, TypeVar, Union

from lxml import etree

from metaharvest.normalize.xml import first_child, secure_parser

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class RecordRejected(Exception):
    """Raised when a record cannot be indexed at all (e.g. no identifier)."""

    record_id: str | None
    message: str

    def __str__(self) -> str:
        return f"{self.message} (record={self.record_id or '<unknown>'})"


@dataclass(frozen=True, slots=True)
class DateRange:
    """Closed interval of two extended ISO-8601 instants."""

    start: str
    end: str

    def to_index_value(self) -> str:
        if self.start == self.end:
            return self.start
        return f"[{self.start} TO {self.end}]"

    @property
    def start_year(self) -> str:
        sign = "-" if self.start.startswith("-") else ""
        return sign + self.start.lstrip("-")[:4]


@dataclass(frozen=True, slots=True)
class Point:
    lat: float
    lon: float

    def to_wkt(self) -> str:
        return f"POINT ({_num(self.lon)} {_num(self.lat)})"

    def coordinates(self) -> list[tuple[float, float]]:
        return [(self.lat, self.lon)]


@dataclass(frozen=True, slots=True)
class LineString:
    points: tuple[tuple[float, float], ...]

    def to_wkt(self) -> str:
        return f"LINESTRING ({_ring(self.points)})"

    def coordinates(self) -> list[tuple[float, float]]:
        return list(self.points)


@dataclass(frozen=True, slots=True)
class Polygon:
    outer: tuple[tuple[float, float], ...]
    inner: tuple[tuple[float, float], ...] | None = None

    def to_wkt(self) -> str:
        if self.inner:
            return f"POLYGON (({_ring(self.outer)}),({_ring(self.inner)}))"
        return f"POLYGON (({_ring(self.outer)}))"

    def coordinates(self) -> list[tuple[float, float]]:
        return list(self.outer)


Geometry = Union[Point, LineString, Polygon]


def _num(value: float) -> str:
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


def _ring(points: Iterable[tuple[float, float]]) -> str:
    # Points are stored as (lat, lon); WKT wants lon first.
    return ",".join(f"{_num(lon)} {_num(lat)}" for lat, lon in points)


class CanonicalFieldMap:
    """Insertion-ordered field -> values mapping emitted as one index document."""

    def __init__(self) -> None:
        self._fields: dict[str, list[str]] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def add(self, name: str, value: Any) -> None:
        text = _as_value(value)
        if text:
            self._fields.setdefault(name, []).append(text)

    def extend(self, name: str, values: Iterable[Any]) -> None:
        for value in values:
            self.add(name, value)

    def set(self, name: str, values: Any) -> None:
        self._fields.pop(name, None)
        if isinstance(values, (list, tuple)):
            self.extend(name, values)
        else:
            self.add(name, values)

    def get(self, name: str) -> list[str]:
        return list(self._fields.get(name, []))

    def first(self, name: str) -> str | None:
        values = self._fields.get(name)
        return values[0] if values else None

    def to_dict(self) -> dict[str, list[str]]:
        return {name: list(values) for name, values in self._fields.items()}


def _as_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else ""
    return str(value).strip()


@dataclass(slots=True)
class ParsedRecord:
    """In-memory parsed document plus its warnings and per-record memo."""

    record_id: str | None
    source_id: str
    root: etree._Element
    warnings: list[str] = field(default_factory=list)
    memo: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_xml(cls, payload: str | bytes, *, source_id: str, record_id: str | None = None) -> "ParsedRecord":
        raw = payload.encode("utf-8") if isinstance(payload, str) else payload
        try:
            root = etree.fromstring(raw, parser=secure_parser())
        except etree.XMLSyntaxError as exc:
            raise RecordRejected(record_id, f"Record XML is not well-formed: {exc}") from exc
        if root is None:
            raise RecordRejected(record_id, "Record XML is empty")
        return cls(record_id=record_id, source_id=source_id, root=root)

    @property
    def document(self) -> etree._Element:
        """The schema root, unwrapping an optional wrapper element."""

        return self.memoize("document", self._find_document)

    def _find_document(self) -> etree._Element:
        if etree.QName(self.root).localname == "lido":
            return self.root
        wrapped = first_child(self.root, "lido")
        return self.root if wrapped is None else wrapped

    def store_warning(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)
        logger.debug("Record %s.%s: %s", self.source_id, self.record_id, message)

    def memoize(self, key: str, factory: Callable[[], T]) -> T:
        if key not in self.memo:
            self.memo[key] = factory()
        return self.memo[key]

    def close(self) -> None:
        self.memo.clear()

    def __enter__(self) -> "ParsedRecord":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
