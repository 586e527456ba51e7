"""Geocoding candidate strings built from subject and event places."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re

from lxml import etree

from metaharvest.normalize.actors import ActorEventResolver, EventSpec
from metaharvest.normalize.models import ParsedRecord
from metaharvest.normalize.text import strip_trailing_punctuation, unique, word_count
from metaharvest.normalize.xml import children, first_child, path_text, text_of

logger = logging.getLogger(__name__)

SUBJECT_PATH = "descriptiveMetadata/objectRelationWrap/subjectWrap/subjectSet/subject"

MUNICIPALITY_TERMS = ("kunta", "kaupunki", "kylä", "municipality", "city", "village", "town")
SUB_LOCATION_TERMS = (
    "katuosoite",
    "kartano",
    "tila",
    "talo",
    "rakennus",
    "alue",
    "street address",
    "manor",
    "estate",
    "house",
    "building",
    "area",
)
STREET_TERMS = ("katuosoite", "street address")
DISTRICT_TERMS = ("kaupunginosa", "rakennus", "district", "building")

_ADDRESS_SEPARATOR_PRESENT_RE = re.compile(r"[^\s]+(,(?!\s*\d)|\.|\s*&)\s+[^\s]+")
_ADDRESS_SEPARATOR_RE = re.compile(r"(?:,(?!\s*\d)|\.|\s*&)\s+")
_ALTERNATIVE_RE = re.compile(r" tai | or |\. ")
_DISPLAY_PLACE_RE = re.compile(r"[/;]")
_ADDRESS_LIST_BODY_RE = re.compile(r"(.+?) \d+, *\d+")
_ADDRESS_LIST_NUMBER_RE = re.compile(r" (\d+)(?=,|$)")
_TRAILING_NOTE_RE = re.compile(r"(.*[^\s]+\s+\d+),")
_PARENTHESIS_RE = re.compile(r"\(.*", re.DOTALL)


@dataclass(slots=True)
class Locations:
    primary: list[str] = field(default_factory=list)
    secondary: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {"primary": list(self.primary), "secondary": list(self.secondary)}


def split_addresses(main_place: str, sub_location: str) -> list[str]:
    """Pair the main place with each logical part of a sub-location list."""

    if _ADDRESS_SEPARATOR_PRESENT_RE.search(sub_location):
        return [f"{main_place} {part}" for part in _ADDRESS_SEPARATOR_RE.split(sub_location)]
    return [f"{main_place} {sub_location}"]


def process_locations(locations: list[str]) -> list[str]:
    """Expand address lists, add note-free variants, strip and de-duplicate."""

    result: list[str] = []
    for location in locations:
        body = _ADDRESS_LIST_BODY_RE.search(location)
        numbers = _ADDRESS_LIST_NUMBER_RE.findall(location)
        if body and numbers:
            result.extend(f"{body.group(1)} {number}" for number in numbers)
        else:
            result.append(location)

    for item in list(result):
        if word_count(item) > 2 and item.count(",") == 1:
            match = _TRAILING_NOTE_RE.search(item)
            if match:
                result.append(match.group(1))

    cleaned = (
        strip_trailing_punctuation(_PARENTHESIS_RE.sub("", item)).strip()
        for item in result
        if item
    )
    return unique([item for item in cleaned if item])


def _classification(place: etree._Element) -> str:
    return path_text(place, "placeClassification/term").lower()


def _place_name(place: etree._Element | None) -> str:
    return path_text(place, "namePlaceSet/appellationValue")


def sub_location(place: etree._Element) -> str:
    """Names of nested ``partOfPlace`` elements, depth first."""

    names: list[str] = []

    def walk(node: etree._Element) -> None:
        for part in children(node, "partOfPlace"):
            name = _place_name(part)
            if name:
                names.append(name)
            walk(part)

    walk(place)
    return " ".join(names)


class LocationResolver:
    """Derive primary (subject) and secondary (event) geocoding candidates."""

    def __init__(self, events: ActorEventResolver | None = None) -> None:
        self._events = events or ActorEventResolver()

    def resolve(self, record: ParsedRecord, main_events: EventSpec, place_events: EventSpec) -> Locations:
        subject_locations = [
            location.rstrip(",. ") for location in self.subject_locations(record)
        ]

        event_locations: list[str] = []
        for events in (main_events, place_events):
            for event in self._events.event_nodes(record, events):
                place = first_child(event, "eventPlace/place")
                # Records that already carry coordinates are not geocoded.
                if children(place, "gml"):
                    return Locations()
                event_locations.extend(self._event_place_locations(event, place))

        accepted = []
        for location in event_locations:
            if word_count(location) == 1 and any(
                subject.startswith(location) for subject in subject_locations
            ):
                continue
            accepted.append(location)

        return Locations(process_locations(subject_locations), process_locations(accepted))

    def subject_locations(self, record: ParsedRecord) -> list[str]:
        locations: list[str] = []
        for subject in children(record.document, SUBJECT_PATH):
            places = children(subject, "subjectPlace/place")

            # Flat structure: a municipality next to a street address or building.
            main_place = ""
            sub = ""
            for place in places:
                name = _place_name(place)
                if not name or not children(place, "placeClassification"):
                    continue
                classification = _classification(place)
                if any(term in classification for term in MUNICIPALITY_TERMS):
                    main_place += " " + name
                elif any(term in classification for term in SUB_LOCATION_TERMS):
                    sub += " " + name
            if main_place and sub:
                locations.extend(split_addresses(main_place.strip(), sub.strip()))
                continue

            for place in places:
                name = _place_name(place)
                if not name:
                    continue
                nested = sub_location(place)
                if not nested:
                    locations.append(name)
                    continue
                locations.extend(f"{name} {part}" for part in _ALTERNATIVE_RE.split(nested))
        return locations

    def _event_place_locations(self, event: etree._Element, place: etree._Element | None) -> list[str]:
        name = _place_name(place)
        if name:
            nested = sub_location(place)  # type: ignore[arg-type]
            if not nested:
                return name.split("/")
            return split_addresses(name, nested)

        parts = children(place, "partOfPlace")
        if parts:
            have_street = any(
                _classification(part) in STREET_TERMS and _place_name(part) for part in parts
            )
            names = []
            for part in parts:
                if have_street and _classification(part) in DISTRICT_TERMS:
                    continue
                part_name = _place_name(part)
                if part_name:
                    names.append(part_name)
            return [" ".join(names)]

        display = text_of(first_child(event, "eventPlace/displayPlace"))
        if display:
            return [part.strip() for part in _DISPLAY_PLACE_RE.split(display)]
        return []
