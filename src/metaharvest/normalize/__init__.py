"""Record normalization: parsed schema documents to canonical index fields."""

from .actors import ActorEventResolver
from .authority import AuthorityNamespaceMapper
from .base import ExtractionContext, FieldRule, NormalizerParams, RecordNormalizer, SchemaProfile
from .dates import DateRangeResolver
from .geometry import GeometryConverter, center_of
from .lido import LIDO_PROFILE
from .locations import LocationResolver, Locations
from .models import CanonicalFieldMap, DateRange, LineString, ParsedRecord, Point, Polygon, RecordRejected

PROFILES = {LIDO_PROFILE.name: LIDO_PROFILE}

__all__ = [
    "ActorEventResolver",
    "AuthorityNamespaceMapper",
    "CanonicalFieldMap",
    "DateRange",
    "DateRangeResolver",
    "ExtractionContext",
    "FieldRule",
    "GeometryConverter",
    "LIDO_PROFILE",
    "LineString",
    "LocationResolver",
    "Locations",
    "NormalizerParams",
    "PROFILES",
    "ParsedRecord",
    "Point",
    "Polygon",
    "RecordNormalizer",
    "RecordRejected",
    "SchemaProfile",
    "center_of",
]
