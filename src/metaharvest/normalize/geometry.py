"""GML place geometry converted to WKT for the geolocation index field.

Coordinates in museum GML are written latitude first; WKT wants longitude
first, so every pair is swapped on the way out. WGS 84 is assumed.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from lxml import etree

from metaharvest.normalize.models import Geometry, LineString, Point, Polygon
from metaharvest.normalize.xml import children, local_name, secure_parser, text_of

logger = logging.getLogger(__name__)

WarningSink = Callable[[str], None]
Pair = tuple[float, float]

_SHAPES = ("Polygon", "LineString", "Point")


class InvalidCoordinates(ValueError):
    pass


def _as_float(value: str) -> float:
    try:
        return float(value.strip())
    except ValueError as exc:
        raise InvalidCoordinates(value) from exc


def coordinate_pairs(text: str) -> tuple[Pair, ...]:
    """Parse legacy ``lat,lon lat,lon`` tuples (an optional altitude is ignored)."""

    pairs: list[Pair] = []
    for item in text.split():
        parts = item.split(",")
        if len(parts) < 2:
            raise InvalidCoordinates(item)
        pairs.append((_as_float(parts[0]), _as_float(parts[1])))
    return tuple(pairs)


def pos_list_pairs(text: str) -> tuple[Pair, ...]:
    """Parse a GML 3 ``posList`` (``lat lon lat lon ...``)."""

    values = [_as_float(item) for item in text.split()]
    if len(values) % 2:
        raise InvalidCoordinates(text)
    return tuple((values[index], values[index + 1]) for index in range(0, len(values), 2))


def _in_range(lat: float, lon: float) -> bool:
    return -90 <= lat <= 90 and -180 <= lon <= 180


class GeometryConverter:
    """Convert ``gml`` elements (or markup) into geometry values and WKT."""

    def to_wkt(self, fragment: etree._Element | str | bytes | None, *, warn: WarningSink | None = None) -> str:
        geometry = self.parse(fragment, warn=warn)
        return geometry.to_wkt() if geometry is not None else ""

    def parse(
        self,
        fragment: etree._Element | str | bytes | None,
        *,
        warn: WarningSink | None = None,
    ) -> Geometry | None:
        sink = warn or _discard
        node = self._as_element(fragment, sink)
        if node is None:
            return None
        try:
            return self._parse_element(node, sink)
        except InvalidCoordinates as exc:
            logger.debug("Discarding invalid GML coordinates '%s'", exc)
            sink("invalid gml coordinates")
            return None

    def _as_element(self, fragment: etree._Element | str | bytes | None, sink: WarningSink) -> etree._Element | None:
        if fragment is None:
            return None
        if isinstance(fragment, (str, bytes)):
            raw = fragment.encode("utf-8") if isinstance(fragment, str) else fragment
            if not raw.strip():
                return None
            try:
                return etree.fromstring(raw, parser=secure_parser())
            except etree.XMLSyntaxError as exc:
                logger.debug("Unparseable GML fragment: %s", exc)
                sink("invalid gml")
                return None
        return fragment

    def _parse_element(self, node: etree._Element, sink: WarningSink) -> Geometry | None:
        # Accept both the wrapping <gml> element and a bare geometry element.
        name = local_name(node)
        if name in _SHAPES:
            shapes = {kind: [node] if kind == name else [] for kind in _SHAPES}
        else:
            shapes = {kind: children(node, kind) for kind in _SHAPES}

        if shapes["Polygon"]:
            return self._polygon(shapes["Polygon"][0], sink)
        if shapes["LineString"]:
            return self._line_string(shapes["LineString"][0], sink)
        if shapes["Point"]:
            return self._point(shapes["Point"][0], sink)
        return None

    def _polygon(self, node: etree._Element, sink: WarningSink) -> Polygon | None:
        outer = self._ring(node, ("outerBoundaryIs", "exterior"))
        if not outer:
            logger.debug("GML Polygon missing outer boundary")
            sink("gml polygon missing outer boundary")
            return None
        inner = self._ring(node, ("innerBoundaryIs", "interior"))
        return Polygon(outer, inner or None)

    def _ring(self, node: etree._Element, boundaries: tuple[str, ...]) -> tuple[Pair, ...]:
        for boundary in boundaries:
            coordinates = text_of(_first(children(node, f"{boundary}/LinearRing/coordinates")))
            if coordinates:
                return coordinate_pairs(coordinates)
            positions = text_of(_first(children(node, f"{boundary}/LinearRing/posList")))
            if positions:
                return pos_list_pairs(positions)
        return ()

    def _line_string(self, node: etree._Element, sink: WarningSink) -> LineString | None:
        coordinates = text_of(_first(children(node, "coordinates")))
        if coordinates:
            return LineString(coordinate_pairs(coordinates))
        positions = text_of(_first(children(node, "posList")))
        if positions:
            return LineString(pos_list_pairs(positions))
        logger.debug("GML LineString missing coordinates")
        sink("gml linestring missing coordinates")
        return None

    def _point(self, node: etree._Element, sink: WarningSink) -> Point | None:
        lat = lon = None
        pos_nodes = children(node, "pos")
        coordinate_nodes = children(node, "coordinates")
        if pos_nodes:
            text = text_of(pos_nodes[0])
            if not text:
                sink("empty gml pos in point")
            parts = text.split(None, 1)
            if len(parts) == 2:
                lat, lon = parts
        elif coordinate_nodes:
            text = text_of(coordinate_nodes[0])
            if not text:
                sink("empty gml coordinates in point")
                return None
            parts = text.split(",", 1)
            if len(parts) == 2:
                lat, lon = parts

        if lat is None or lon is None:
            logger.debug("GML Point does not contain pos or coordinates")
            sink("gml point missing data")
            return None

        lat_value, lon_value = _as_float(lat), _as_float(lon)
        if not _in_range(lat_value, lon_value):
            raise InvalidCoordinates(f"{lat.strip()},{lon.strip()}")
        return Point(lat_value, lon_value)


def center_of(geometries: Iterable[Geometry]) -> str:
    """Bounding box centre of all geometries as ``lon lat``; empty when none."""

    pairs = [pair for geometry in geometries for pair in geometry.coordinates()]
    if not pairs:
        return ""
    lats = [lat for lat, _ in pairs]
    lons = [lon for _, lon in pairs]
    center = Point((min(lats) + max(lats)) / 2, (min(lons) + max(lons)) / 2)
    return center.to_wkt()[len("POINT (") : -1]


def _first(nodes: list[etree._Element]) -> etree._Element | None:
    return nodes[0] if nodes else None


def _discard(message: str) -> None:
    return None
