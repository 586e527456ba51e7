"""Generic table-driven record normalizer.

A schema is described by a :class:`SchemaProfile`: an ordered tuple of
:class:`FieldRule` entries, each extracting one canonical field (or several
related fields at once) from an :class:`ExtractionContext`. The capabilities
the rules share (date parsing, geometry conversion, authority namespacing,
event and location lookups) are injected into the normalizer instead of
being inherited.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Callable, Mapping

from metaharvest.normalize.actors import ActorEventResolver
from metaharvest.normalize.authority import AuthorityNamespaceMapper
from metaharvest.normalize.dates import DateRangeResolver
from metaharvest.normalize.geometry import GeometryConverter
from metaharvest.normalize.locations import LocationResolver, Locations
from metaharvest.normalize.models import CanonicalFieldMap, ParsedRecord, RecordRejected

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NormalizerParams:
    """Deployment-level overrides for one source."""

    source_id: str = ""
    main_events: Mapping[str, int] | None = None
    place_events: Mapping[str, int] | None = None
    online: bool | None = None
    free_online: bool | None = None
    free_online_default: bool = True
    split_titles: bool = False
    institution_in_building: bool = False
    collection_in_building: bool = False
    institution: str = ""
    collection: str = ""
    default_language: str = "fi"


@dataclass(slots=True)
class ExtractionContext:
    """Everything a field rule may look at while one record is normalized."""

    record: ParsedRecord
    params: NormalizerParams
    profile: "SchemaProfile"
    dates: DateRangeResolver
    geometry: GeometryConverter
    authority: AuthorityNamespaceMapper
    events: ActorEventResolver
    locations: LocationResolver
    fields: CanonicalFieldMap = field(default_factory=CanonicalFieldMap)

    @property
    def document(self):
        return self.record.document

    @property
    def main_events(self) -> Mapping[str, int]:
        if self.params.main_events is not None:
            return self.params.main_events
        return self.profile.main_events

    @property
    def place_events(self) -> Mapping[str, int]:
        return self.record.memoize("place_events", lambda: self.profile.place_events(self))

    def warn(self, message: str) -> None:
        self.record.store_warning(message)


Extractor = Callable[[ExtractionContext], Any]


@dataclass(frozen=True, slots=True)
class FieldRule:
    """One row of a schema table.

    ``name`` set: ``extract`` returns the value(s) of that field.
    ``name`` None: ``extract`` returns a mapping of field name to value(s).
    """

    name: str | None
    extract: Extractor

    @classmethod
    def multi(cls, extract: Callable[[ExtractionContext], Mapping[str, Any]]) -> "FieldRule":
        return cls(None, extract)


def _default_place_events(context: ExtractionContext) -> Mapping[str, int]:
    return context.params.place_events or {}


@dataclass(frozen=True, slots=True)
class SchemaProfile:
    name: str
    record_id: Callable[[ParsedRecord], str]
    rules: tuple[FieldRule, ...]
    main_events: Mapping[str, int] = field(default_factory=dict)
    place_events: Callable[[ExtractionContext], Mapping[str, int]] = _default_place_events


class RecordNormalizer:
    """Turn a parsed record into a flat canonical field map."""

    def __init__(
        self,
        profile: SchemaProfile,
        params: NormalizerParams | None = None,
        authority: AuthorityNamespaceMapper | None = None,
        dates: DateRangeResolver | None = None,
        geometry: GeometryConverter | None = None,
        *,
        events: ActorEventResolver | None = None,
        locations: LocationResolver | None = None,
    ) -> None:
        self._profile = profile
        self._params = params or NormalizerParams()
        self._authority = authority or AuthorityNamespaceMapper()
        self._dates = dates or DateRangeResolver()
        self._geometry = geometry or GeometryConverter()
        self._events = events or ActorEventResolver()
        self._locations = locations or LocationResolver(self._events)

    @property
    def profile(self) -> SchemaProfile:
        return self._profile

    @property
    def params(self) -> NormalizerParams:
        return self._params

    def context(self, record: ParsedRecord) -> ExtractionContext:
        return ExtractionContext(
            record=record,
            params=self._params,
            profile=self._profile,
            dates=self._dates,
            geometry=self._geometry,
            authority=self._authority,
            events=self._events,
            locations=self._locations,
        )

    def normalize(self, record: ParsedRecord) -> CanonicalFieldMap:
        """Run every rule of the profile; raises ``RecordRejected`` without an id."""

        record_id = self._profile.record_id(record)
        if not record_id:
            raise RecordRejected(record.record_id, f"{self._profile.name} record has no identifier")
        if record.record_id is None:
            record.record_id = record_id

        context = self.context(record)
        for rule in self._profile.rules:
            value = rule.extract(context)
            if rule.name is not None:
                context.fields.set(rule.name, value)
                continue
            for name, item in (value or {}).items():
                context.fields.set(name, item)

        if record.warnings:
            logger.debug("Record %s.%s normalized with %d warnings", record.source_id, record_id, len(record.warnings))
        return context.fields

    def locations(self, record: ParsedRecord) -> Locations:
        """Geocoding candidates for the record (primary subject, secondary event places)."""

        context = self.context(record)
        return self._locations.resolve(record, context.main_events, context.place_events)
