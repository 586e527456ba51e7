"""LIDO (museum object) extraction table."""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

from lxml import etree

from metaharvest.normalize.authority import typed_place_id
from metaharvest.normalize.base import ExtractionContext, FieldRule, SchemaProfile
from metaharvest.normalize.dates import validate_instant
from metaharvest.normalize.geometry import center_of
from metaharvest.normalize.models import DateRange, Geometry, ParsedRecord
from metaharvest.normalize.text import normalize_whitespace, unique
from metaharvest.normalize.xml import attribute, children, first_child, path_text, text_of, texts

RECORD_FORMAT = "lido"

MAIN_EVENTS: Mapping[str, int] = {
    "suunnittelu": 0,
    "design": 0,
    "valmistus": 1,
    "creation": 1,
}
PLACE_EVENTS: Mapping[str, int] = {
    "käyttö": 0,
    "use": 0,
}
CREATION_EVENTS = ("valmistus", "creation")
DESIGN_EVENTS = ("suunnittelu", "design")
PRODUCTION_EVENTS = ("tuotanto", "production")
PHOTOGRAPHY_EVENTS = ("kuvaus", "photography")
USE_EVENTS = ("käyttö", "use")
FINDING_EVENTS = ("löytyminen", "finding")
EXHIBITION_EVENTS = ("näyttely", "exhibition")

PHOTOGRAPH_WORK_TYPES = ("valokuva", "photograph")
IMAGE_WORK_TYPES = (
    "Kuva",
    "Kuva, Valokuva",
    "Valokuva",
    "dia",
    "kuva",
    "negatiivi",
    "photograph",
    "valoku",
    "valokuva",
    "valokuvat",
)
IMAGE_RESOURCE_TYPES = (
    "",
    "image_thumb",
    "thumb",
    "medium",
    "image_large",
    "large",
    "zoomview",
    "image_master",
    "image_original",
)
HIRES_RESOURCE_TYPES = ("image_original", "image_master")
IMAGE_WORK_TYPE = "Kuva"

EXCLUDED_DESCRIPTION_TYPES = ("provenienssi", "provenance")
EXCLUDED_SUBJECT_TYPES = ("aihe", "iconclass")
EXCLUDED_TOPIC_ID_TYPES = ("iconclass",)
SUBJECT_DESCRIPTION_LABEL = "aihe"
PARENT_RELATION_TYPES = (
    "kokoelma",
    "kuuluu kokoelmaan",
    "arkisto",
    "alakokoelma",
    "erityiskokoelma",
    "hankintaerä",
    "collection",
    "archive",
)

LIDO_REC_ID = "lidoRecID"
TITLE_VALUES = "descriptiveMetadata/objectIdentificationWrap/titleWrap/titleSet/appellationValue"
DESCRIPTION_SETS = "descriptiveMetadata/objectIdentificationWrap/objectDescriptionWrap/objectDescriptionSet"
MEASUREMENT_SETS = "descriptiveMetadata/objectIdentificationWrap/objectMeasurementsWrap/objectMeasurementsSet"
REPOSITORY_NAME = (
    "descriptiveMetadata/objectIdentificationWrap/repositoryWrap/repositorySet/"
    "repositoryName/legalBodyName/appellationValue"
)
CLASSIFICATION_TERMS = "descriptiveMetadata/objectClassificationWrap/classificationWrap/classification/term"
WORK_TYPE_TERMS = "descriptiveMetadata/objectClassificationWrap/objectWorkTypeWrap/objectWorkType/term"
SUBJECT_SETS = "descriptiveMetadata/objectRelationWrap/subjectWrap/subjectSet"
RELATED_WORK_SETS = "descriptiveMetadata/objectRelationWrap/relatedWorksWrap/relatedWorkSet"
RECORD_SOURCE_NAME = "administrativeMetadata/recordWrap/recordSource/legalBodyName/appellationValue"
RESOURCE_SETS = "administrativeMetadata/resourceWrap/resourceSet"

_TITLE_SPLIT_RE = re.compile(r"^(.{3,}?[^\s.]{2,})\. +\S")


# ---------------------------------------------------------------------------
# Shared lookups
# ---------------------------------------------------------------------------

def record_id(record: ParsedRecord) -> str:
    return path_text(record.document, LIDO_REC_ID)


def work_type(context: ExtractionContext) -> str:
    return path_text(context.document, WORK_TYPE_TERMS)


def place_events(context: ExtractionContext) -> Mapping[str, int]:
    """Place events, with creation included for everything but photographs."""

    events = dict(context.params.place_events or PLACE_EVENTS)
    if work_type(context).lower() not in PHOTOGRAPH_WORK_TYPES:
        for label in CREATION_EVENTS:
            events[label] = 999
    return events


def _title(context: ExtractionContext) -> str:
    def build() -> str:
        values = children(context.document, TITLE_VALUES)
        language = context.params.default_language
        preferred = [node for node in values if attribute(node, "lang") == language]
        return "; ".join(text for text in (text_of(node) for node in preferred or values) if text)

    return context.record.memoize("title", build)


def split_title(title: str) -> str:
    """First sentence of a long title, or empty when it does not split."""

    match = _TITLE_SPLIT_RE.match(title)
    return match.group(1) if match else ""


def _resource_links(context: ExtractionContext) -> list[tuple[str, str]]:
    """(link, representation type) pairs of every non-empty resource link."""

    def build() -> list[tuple[str, str]]:
        links = []
        for resource_set in children(context.document, RESOURCE_SETS):
            for representation in children(resource_set, "resourceRepresentation"):
                link = path_text(representation, "linkResource")
                if link:
                    links.append((link, attribute(representation, "type")))
        return links

    return context.record.memoize("resource_links", build)


def _subject_nodes(context: ExtractionContext) -> list[etree._Element]:
    return [
        subject
        for subject_set in children(context.document, SUBJECT_SETS)
        for subject in children(subject_set, "subject")
    ]


def _event_date_range(context: ExtractionContext, events: Iterable[str] | None) -> DateRange | None:
    start = end = display = period = ""
    for event in context.events.event_nodes(context.record, events):
        earliest = path_text(event, "eventDate/date/earliestDate")
        latest = path_text(event, "eventDate/date/latestDate")
        if not start and earliest and latest:
            start, end = earliest, latest
        if not display:
            display = path_text(event, "eventDate/displayDate")
        if not period:
            period = path_text(event, "periodName/term")
    return context.dates.resolve(start, end, display, period, warn=context.warn)


def _subject_date_ranges(context: ExtractionContext) -> list[DateRange]:
    ranges = []
    for subject in _subject_nodes(context):
        earliest = path_text(subject, "subjectDate/date/earliestDate")
        latest = path_text(subject, "subjectDate/date/latestDate")
        start, end = (earliest, latest) if earliest and latest else ("", "")
        display = path_text(subject, "subjectDate/displayDate")
        resolved = context.dates.resolve(start, end, display, None, warn=context.warn)
        if resolved is not None:
            ranges.append(resolved)
    return ranges


# ---------------------------------------------------------------------------
# Field extractors
# ---------------------------------------------------------------------------

def extract_id(context: ExtractionContext) -> str:
    identifier = record_id(context.record)
    source = context.params.source_id
    return f"{source}.{identifier}" if source else identifier


def extract_titles(context: ExtractionContext) -> dict[str, Any]:
    title = _title(context)
    short = path_text(context.document, TITLE_VALUES)
    if context.params.split_titles:
        short = split_title(title) or title
    return {"title": title, "title_short": short}


def extract_description(context: ExtractionContext) -> str:
    document = context.document
    notes = []
    for description_set in children(document, DESCRIPTION_SETS):
        if attribute(description_set, "type").lower() in EXCLUDED_DESCRIPTION_TYPES:
            continue
        notes.extend(texts(description_set, "descriptiveNoteValue"))

    title = _title(context)
    if notes and title == "; ".join(notes):
        notes = []

    comparable_title = _without_separators(title)
    if context.params.split_titles:
        comparable_title = _without_separators(split_title(comparable_title) or comparable_title)

    subject_descriptions = []
    for subject_set in children(document, SUBJECT_SETS):
        display = first_child(subject_set, "displaySubject")
        if display is None:
            continue
        text = text_of(display)
        label = attribute(display, "label")
        if (not label or label.lower() == SUBJECT_DESCRIPTION_LABEL) and _without_separators(text) != comparable_title:
            subject_descriptions.append(text)

    return " ".join(item for item in unique(subject_descriptions + notes) if item).strip()


def _without_separators(text: str) -> str:
    return normalize_whitespace(text.replace(",", " ").replace(";", " "))


def extract_authors(context: ExtractionContext) -> dict[str, Any]:
    events = context.main_events
    facet = context.events.actors(context.record, events, include_roles=False)
    return {
        "author": context.events.actors(context.record, events, include_roles=True),
        "author_facet": facet,
        "main_author": facet[0] if facet else "",
    }


def extract_role_actors(context: ExtractionContext) -> dict[str, Any]:
    actors = context.events.actors
    record = context.record
    return {
        "artist_str_mv": actors(record, CREATION_EVENTS, ("taiteilija", "artist")),
        "photographer_str_mv": actors(record, CREATION_EVENTS, ("valokuvaaja", "photographer")),
        "finder_str_mv": actors(record, FINDING_EVENTS, ("löytäjä", "finder")),
        "manufacturer_str_mv": actors(record, CREATION_EVENTS, ("valmistaja", "manufacturer")),
        "designer_str_mv": actors(record, DESIGN_EVENTS, ("suunnittelija", "designer")),
    }


def extract_classifications(context: ExtractionContext) -> list[str]:
    return texts(context.document, CLASSIFICATION_TERMS)


def extract_categories(context: ExtractionContext) -> list[str]:
    return texts(context.document, "category/term")


def extract_exhibitions(context: ExtractionContext) -> list[str]:
    return context.events.event_names(context.record, EXHIBITION_EVENTS)


def extract_materials(context: ExtractionContext) -> list[str]:
    events = context.events.event_nodes(context.record, context.main_events)
    materials = [
        term
        for event in events
        for term in texts(event, "eventMaterialsTech/materialsTech/termMaterialsTech/term")
    ]
    if materials:
        return unique(materials)

    for event in events:
        display = path_text(event, "eventMaterialsTech/displayMaterialsTech")
        if display:
            return [part.strip() for part in display.replace(",", ";").split(";") if part.strip()]
    return []


def extract_measurements(context: ExtractionContext) -> list[str]:
    results: list[str] = []
    for measurement_set in children(context.document, MEASUREMENT_SETS):
        values = texts(measurement_set, "displayObjectMeasurements")
        if not values:
            for measurements in children(measurement_set, "objectMeasurements/measurementsSet"):
                parts = [
                    path_text(measurements, name)
                    for name in ("measurementType", "measurementValue", "measurementUnit")
                ]
                joined = " ".join(part for part in parts if part)
                if joined:
                    values.append(joined)
        if not values:
            continue
        extents = ", ".join(texts(measurement_set, "objectMeasurements/extentMeasurements"))
        if extents:
            values = [value if extents in value else f"{value} ({extents})" for value in values]
        results.extend(values)
    return results


def extract_culture(context: ExtractionContext) -> list[str]:
    return [
        term
        for event in context.events.event_nodes(context.record)
        for term in texts(event, "culture/term")
    ]


def extract_rights(context: ExtractionContext) -> dict[str, Any]:
    holder = ""
    usage = []
    for resource_set in children(context.document, RESOURCE_SETS):
        if not holder:
            holder = path_text(resource_set, "rightsResource/rightsHolder/legalBodyName/appellationValue")
        usage.append(path_text(resource_set, "rightsResource/rightsType/conceptID") or "restricted")
    return {"rights": holder, "usage_rights_str_mv": usage}


def extract_organisation(context: ExtractionContext) -> dict[str, Any]:
    params = context.params
    institution = (
        params.institution
        or path_text(context.document, REPOSITORY_NAME)
        or path_text(context.document, RECORD_SOURCE_NAME)
    )
    collection = params.collection
    building = ""
    if params.institution_in_building and institution:
        building = institution.split("/", 1)[0]
    if collection and params.collection_in_building:
        building = f"{building}/{collection}" if building else collection
    return {"institution": institution, "building": building, "collection": collection}


def extract_topics(context: ExtractionContext) -> dict[str, Any]:
    terms = []
    ids = []
    for subject in _subject_nodes(context):
        subject_type = attribute(subject, "type").lower()
        if subject_type not in EXCLUDED_TOPIC_ID_TYPES:
            ids.extend(texts(subject, "subjectConcept/conceptID"))
        if subject_type in EXCLUDED_SUBJECT_TYPES:
            continue
        for term in texts(subject, "subjectConcept/term"):
            terms.extend(part.strip() for part in term.split(",") if part.strip())
    return {
        "topic": terms,
        "topic_facet": terms,
        "topic_id_str_mv": context.authority.add_namespace(ids, "topic"),
    }


def extract_geographic(context: ExtractionContext) -> dict[str, Any]:
    names = []
    ids = []
    for event in context.events.event_nodes(context.record, context.place_events):
        for place in children(event, "eventPlace/place"):
            ids.extend(_place_ids(place))
    for subject in _subject_nodes(context):
        for subject_place in children(subject, "subjectPlace"):
            name = path_text(subject_place, "place/namePlaceSet/appellationValue") or path_text(
                subject_place, "displayPlace"
            )
            if name:
                names.append(name)
            for place in children(subject_place, "place"):
                ids.extend(_place_ids(place))
    return {
        "geographic": unique(names),
        "geographic_id_str_mv": context.authority.add_namespace(ids, "geographic"),
    }


def _place_ids(place: etree._Element) -> list[str]:
    return [
        typed_place_id(text_of(node), attribute(node, "type"))
        for node in children(place, "placeID")
        if text_of(node)
    ]


def extract_dates(context: ExtractionContext) -> dict[str, Any]:
    data: dict[str, Any] = {}
    search: list[str] = []
    main: DateRange | None = None

    for subject_range in _subject_date_ranges(context):
        main = main or subject_range
        search.append(subject_range.to_index_value())

    creation = _event_date_range(context, CREATION_EVENTS)
    if creation is not None:
        main = main or creation
        data["creation_daterange"] = creation.to_index_value()
        search.append(data["creation_daterange"])
    else:
        for field_name, events in (
            ("design_daterange", DESIGN_EVENTS),
            ("production_daterange", PRODUCTION_EVENTS),
            ("photography_daterange", PHOTOGRAPHY_EVENTS),
        ):
            resolved = _event_date_range(context, events)
            if resolved is None:
                continue
            data[field_name] = resolved.to_index_value()
            if not search:
                search.append(data[field_name])
            main = main or resolved

    for field_name, events in (("use_daterange", USE_EVENTS), ("finding_daterange", FINDING_EVENTS)):
        resolved = _event_date_range(context, events)
        if resolved is not None:
            data[field_name] = resolved.to_index_value()

    if main is not None:
        data["main_date_str"] = main.start_year
        data["main_date"] = main.start if validate_instant(main.start) else ""
    data["search_daterange_mv"] = search
    return data


def extract_geolocation(context: ExtractionContext) -> dict[str, Any]:
    geometries: list[Geometry] = []
    for event in context.events.event_nodes(context.record):
        for gml in children(event, "eventPlace/place/gml"):
            geometry = context.geometry.parse(gml, warn=context.warn)
            if geometry is not None:
                geometries.append(geometry)
    return {
        "location_geo": [geometry.to_wkt() for geometry in geometries],
        "center_coords": center_of(geometries),
    }


def extract_online(context: ExtractionContext) -> dict[str, Any]:
    params = context.params
    links = _resource_links(context)
    online = params.online if params.online is not None else bool(links)
    if not online:
        return {}
    source = params.source_id
    data: dict[str, Any] = {"online_boolean": True, "online_str_mv": source}
    free = params.free_online if params.free_online is not None else params.free_online_default
    if free:
        data.update(free_online_boolean=True, free_online_str_mv=source)
    if any(kind in HIRES_RESOURCE_TYPES for _, kind in links):
        data.update(hires_image_boolean=True, hires_image_str_mv=source)
    return data


def extract_formats(context: ExtractionContext) -> list[str]:
    result = [work_type(context)]
    if not any(value in IMAGE_WORK_TYPES for value in result):
        if any(kind in IMAGE_RESOURCE_TYPES for _, kind in _resource_links(context)):
            result.append(IMAGE_WORK_TYPE)
    return [value for value in result if value]


def extract_parent_titles(context: ExtractionContext) -> list[str]:
    titles = []
    for related in children(context.document, RELATED_WORK_SETS):
        relation = {term.lower() for term in texts(related, "relatedWorkRelType/term")}
        if relation.intersection(PARENT_RELATION_TYPES):
            title = path_text(related, "relatedWork/displayObject")
            if title:
                titles.append(title)
    return titles


def extract_urls(context: ExtractionContext) -> list[str]:
    return unique([link for link, _ in _resource_links(context)])


def extract_sources(context: ExtractionContext) -> dict[str, Any]:
    source = context.params.source_id
    return {"source_str_mv": source, "datasource_str_mv": source}


def extract_allfields(context: ExtractionContext) -> list[str]:
    values = [
        normalize_whitespace(text)
        for node in children(context.document, "descriptiveMetadata")
        for text in node.itertext()
    ]
    values.append(path_text(context.document, RECORD_SOURCE_NAME))
    return unique([value for value in values if value])


def extract_languages(context: ExtractionContext) -> list[str]:
    return unique(
        [
            attribute(node, "lang")
            for node in children(context.document, "descriptiveMetadata")
            if attribute(node, "lang")
        ]
    )


LIDO_PROFILE = SchemaProfile(
    name=RECORD_FORMAT,
    record_id=record_id,
    main_events=MAIN_EVENTS,
    place_events=place_events,
    rules=(
        FieldRule("id", extract_id),
        FieldRule("record_format", lambda context: RECORD_FORMAT),
        FieldRule.multi(extract_titles),
        FieldRule("description", extract_description),
        FieldRule.multi(extract_authors),
        FieldRule.multi(extract_role_actors),
        FieldRule("classification_str_mv", extract_classifications),
        FieldRule("category_str_mv", extract_categories),
        FieldRule("exhibition_str_mv", extract_exhibitions),
        FieldRule("material", extract_materials),
        FieldRule("measurements", extract_measurements),
        FieldRule("culture", extract_culture),
        FieldRule.multi(extract_rights),
        FieldRule.multi(extract_organisation),
        FieldRule.multi(extract_topics),
        FieldRule.multi(extract_geographic),
        FieldRule.multi(extract_dates),
        FieldRule.multi(extract_geolocation),
        FieldRule.multi(extract_online),
        FieldRule("format_ext_str_mv", extract_formats),
        FieldRule("hierarchy_parent_title", extract_parent_titles),
        FieldRule("url", extract_urls),
        FieldRule.multi(extract_sources),
        FieldRule("allfields", extract_allfields),
        FieldRule("language", extract_languages),
    ),
)
