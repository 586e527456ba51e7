from __future__ import annotations

from metaharvest.normalize import LIDO_PROFILE, NormalizerParams, ParsedRecord, RecordNormalizer
from metaharvest.normalize.actors import ActorEventResolver, priority_table
from metaharvest.normalize.locations import LocationResolver, process_locations, split_addresses

LIDO_NS = 'xmlns:lido="http://www.lido-schema.org" xmlns:gml="http://www.opengis.net/gml"'


def _event(event_type: str, place: str = "", extra: str = "") -> str:
    return (
        "<lido:eventSet><lido:event>"
        f"<lido:eventType><lido:term>{event_type}</lido:term></lido:eventType>"
        f"{extra}"
        f"<lido:eventPlace>{place}</lido:eventPlace>"
        "</lido:event></lido:eventSet>"
    )


def _named_place(name: str) -> str:
    return f"<lido:place><lido:namePlaceSet><lido:appellationValue>{name}</lido:appellationValue></lido:namePlaceSet></lido:place>"


def _classified_place(name: str, classification: str) -> str:
    return (
        "<lido:place>"
        f"<lido:namePlaceSet><lido:appellationValue>{name}</lido:appellationValue></lido:namePlaceSet>"
        f"<lido:placeClassification><lido:term>{classification}</lido:term></lido:placeClassification>"
        "</lido:place>"
    )


def _subject(*places: str) -> str:
    body = "".join(f"<lido:subjectPlace>{place}</lido:subjectPlace>" for place in places)
    return f"<lido:subjectSet><lido:subject>{body}</lido:subject></lido:subjectSet>"


def _record(events: str, subjects: str = "") -> ParsedRecord:
    payload = f"""<lido:lido {LIDO_NS}>
  <lido:lidoRecID>L1</lido:lidoRecID>
  <lido:descriptiveMetadata>
    <lido:objectClassificationWrap><lido:objectWorkTypeWrap><lido:objectWorkType>
      <lido:term>astia</lido:term>
    </lido:objectWorkType></lido:objectWorkTypeWrap></lido:objectClassificationWrap>
    <lido:eventWrap>{events}</lido:eventWrap>
    <lido:objectRelationWrap><lido:subjectWrap>{subjects}</lido:subjectWrap></lido:objectRelationWrap>
  </lido:descriptiveMetadata>
</lido:lido>"""
    return ParsedRecord.from_xml(payload, source_id="test")


def _locations(record: ParsedRecord, **params: object):
    normalizer = RecordNormalizer(LIDO_PROFILE, NormalizerParams(source_id="test", **params))
    return normalizer.locations(record)


def test_use_and_creation_places_are_both_included() -> None:
    record = _record(_event("creation", _named_place("Turku")) + _event("use", _named_place("Helsinki")))

    locations = _locations(record, place_events={"use": 0, "creation": 1})

    assert "Helsinki" in locations.secondary
    assert "Turku" in locations.secondary


def test_place_event_priority_orders_events() -> None:
    record = _record(_event("creation", _named_place("Turku")) + _event("use", _named_place("Helsinki")))
    resolver = ActorEventResolver()

    ordered = resolver.event_nodes(record, {"use": 0, "creation": 1})

    assert [resolver.event_types(node) for node in ordered] == [["use"], ["creation"]]


def test_single_word_event_place_is_suppressed_by_subject_prefix() -> None:
    record = _record(
        _event("käyttö", _named_place("Helsinki")) + _event("käyttö", _named_place("Turku")),
        _subject(_named_place("Helsinki, Kallio")),
    )

    locations = _locations(record)

    assert locations.primary == ["Helsinki, Kallio"]
    assert locations.secondary == ["Turku"]


def test_multi_word_event_place_is_not_suppressed() -> None:
    record = _record(
        _event("käyttö", _named_place("Helsinki Kallio")),
        _subject(_named_place("Helsinki, Kallio")),
    )

    assert _locations(record).secondary == ["Helsinki Kallio"]


def test_municipality_prefixes_each_sub_location_part() -> None:
    record = _record(
        "",
        _subject(
            _classified_place("Helsinki", "kunta"),
            _classified_place("Mannerheimintie 1 &amp; Aleksanterinkatu 2", "katuosoite"),
        ),
    )

    assert _locations(record).primary == [
        "Helsinki Mannerheimintie 1",
        "Helsinki Aleksanterinkatu 2",
    ]


def test_nested_parts_are_appended_to_place_name() -> None:
    nested = (
        "<lido:place><lido:namePlaceSet><lido:appellationValue>Porvoo</lido:appellationValue></lido:namePlaceSet>"
        "<lido:partOfPlace><lido:namePlaceSet><lido:appellationValue>Vanha kaupunki</lido:appellationValue>"
        "</lido:namePlaceSet></lido:partOfPlace></lido:place>"
    )
    record = _record("", _subject(nested))

    assert _locations(record).primary == ["Porvoo Vanha kaupunki"]


def test_event_display_place_is_split_on_slashes() -> None:
    display = "<lido:displayPlace>Tampere / Pirkkala</lido:displayPlace>"
    record = _record(_event("käyttö", display))

    assert _locations(record).secondary == ["Tampere", "Pirkkala"]


def test_records_with_coordinates_are_not_geocoded() -> None:
    gml_place = (
        "<lido:place><lido:namePlaceSet><lido:appellationValue>Oulu</lido:appellationValue></lido:namePlaceSet>"
        "<lido:gml><gml:Point><gml:pos>65.0 25.5</gml:pos></gml:Point></lido:gml></lido:place>"
    )
    record = _record(_event("käyttö", gml_place), _subject(_named_place("Oulu")))

    locations = _locations(record)

    assert locations.primary == []
    assert locations.secondary == []


def test_split_addresses_keeps_house_number_commas() -> None:
    assert split_addresses("Helsinki", "Katu 1, 2") == ["Helsinki Katu 1, 2"]
    assert split_addresses("Helsinki", "Katu 1, Tie 2") == ["Helsinki Katu 1", "Helsinki Tie 2"]


def test_process_locations_expands_number_lists_and_strips_notes() -> None:
    assert process_locations(["Helsinki Katu 1, 3"]) == ["Helsinki Katu 1", "Helsinki Katu 3"]
    assert process_locations(["Helsinki (kaupunki)"]) == ["Helsinki"]
    assert process_locations(["Turku;", "Turku"]) == ["Turku"]


def test_actor_roles_and_priority_table() -> None:
    actor = (
        "<lido:eventActor><lido:actorInRole>"
        "<lido:actor><lido:nameActorSet><lido:appellationValue>Aalto, Alvar</lido:appellationValue>"
        "</lido:nameActorSet></lido:actor>"
        "<lido:roleActor><lido:term>suunnittelija</lido:term></lido:roleActor>"
        "</lido:actorInRole></lido:eventActor>"
    )
    record = _record(_event("suunnittelu", extra=actor))
    resolver = ActorEventResolver()

    assert resolver.actors(record, "suunnittelu", include_roles=True) == ["Aalto, Alvar, suunnittelija"]
    assert resolver.actors(record, ("suunnittelu",), roles="valmistaja") == []
    assert resolver.actors(record, None, roles="Suunnittelija") == ["Aalto, Alvar"]
    assert priority_table("Use") == {"use": 0}
    assert priority_table(None) is None


def test_resolver_is_usable_without_normalizer() -> None:
    record = _record(_event("use", _named_place("Vaasa")))

    locations = LocationResolver().resolve(record, {}, {"use": 0})

    assert locations.to_dict() == {"primary": [], "secondary": ["Vaasa"]}
