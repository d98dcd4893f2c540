"""Decode KML documents into plain coordinate structures.

Boundary and track files come from several sources (hand-drawn park
boundaries, FlightRadar24 and ADS-B Exchange exports) that nest their
geometry differently.  Rather than guessing where data lives, this module
parses the XML once and walks every element, matching on local tag names so
KML 2.1, KML 2.2 and un-namespaced documents all decode the same way.

Individual malformed coordinate tokens are skipped; only a document that is
not XML at all is an error."""

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Union

from lxml import etree

from .errors import ParseFailure
from .stats import Stats

logger = logging.getLogger(__name__)

LonLat = tuple[float, float]
Ring = list[LonLat]

@dataclass
class DecodedPolygon:
    outer: Ring
    inner: list[Ring] = field(default_factory=list)

@dataclass
class DecodedTrack:
    """Coordinate samples found in a track document, grouped by where they
    were found.  Each list is in document order."""
    track_coords: list[LonLat] = field(default_factory=list)   # gx:Track gx:coord
    line_coords: list[LonLat] = field(default_factory=list)    # LineString / LinearRing
    point_coords: list[LonLat] = field(default_factory=list)   # Point placemarks
    other_coords: list[LonLat] = field(default_factory=list)

    def samples(self) -> list[LonLat]:
        """The best available sample sequence: timestamped track points,
        then line geometry, then point placemarks, then anything else."""
        for coords in (self.track_coords, self.line_coords,
                       self.point_coords, self.other_coords):
            if coords:
                return coords
        return []

def _parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True,
                           remove_comments=True, huge_tree=True)

def read_document(source: Union[bytes, str, Path]) -> etree._Element:
    """Parse KML bytes, or the file at the given path, into an element tree.

    Raises ParseFailure if the file can't be read or isn't well-formed XML."""
    if isinstance(source, (str, Path)):
        try:
            data = Path(source).read_bytes()
        except OSError as e:
            raise ParseFailure(f"cannot read {source}: {e}") from e
    else:
        data = source
    try:
        root = etree.fromstring(data, _parser())
    except etree.XMLSyntaxError as e:
        raise ParseFailure(f"unparseable KML: {e}") from e
    if root is None:
        raise ParseFailure("empty KML document")
    return root

def local_name(element) -> str:
    return etree.QName(element).localname

def iter_local(element, name: str) -> Iterator[etree._Element]:
    """All descendants (and element itself) with the given local tag name,
    in document order."""
    for el in element.iter(etree.Element):
        if local_name(el) == name:
            yield el

def _children(element, name: str) -> list:
    return [c for c in element if isinstance(c.tag, str) and local_name(c) == name]

def _to_lonlat(lon_str: str, lat_str: str) -> Optional[LonLat]:
    try:
        lon = float(lon_str)
        lat = float(lat_str)
    except ValueError:
        return None
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return None
    return (lon, lat)

def parse_coordinate_string(text: Optional[str]) -> list[LonLat]:
    """Parse a KML <coordinates> string of whitespace-separated
    lon,lat[,alt] tuples.  Altitude is ignored; bad tuples are skipped."""
    coords = []
    if not text:
        return coords
    skipped = 0
    for token in text.split():
        parts = token.split(",")
        pair = _to_lonlat(parts[0], parts[1]) if len(parts) >= 2 else None
        if pair is None:
            skipped += 1
            continue
        coords.append(pair)
    if skipped:
        Stats.coordinate_tokens_skipped += skipped
        logger.debug("Skipped %d malformed coordinate tokens", skipped)
    return coords

def parse_gx_coord(text: Optional[str]) -> Optional[LonLat]:
    """Parse a gx:coord value, "lon lat alt" separated by spaces."""
    parts = (text or "").split()
    pair = _to_lonlat(parts[0], parts[1]) if len(parts) >= 2 else None
    if pair is None:
        Stats.coordinate_tokens_skipped += 1
        logger.debug("Skipped malformed gx:coord %r", text)
    return pair

def _ring_coordinates(container) -> Ring:
    """Coordinates of the first LinearRing inside a boundary element."""
    for ring in iter_local(container, "LinearRing"):
        for coords in _children(ring, "coordinates"):
            return parse_coordinate_string(coords.text)
    return []

def decode_polygons(root) -> list[DecodedPolygon]:
    """Find every Polygon anywhere in the document, including inside
    MultiGeometry containers and nested Folders."""
    polygons = []
    for poly in iter_local(root, "Polygon"):
        outer: Ring = []
        for boundary in _children(poly, "outerBoundaryIs"):
            outer = _ring_coordinates(boundary)
            if outer:
                break
        if not outer:
            logger.debug("Dropping polygon with no valid outer ring")
            continue

        inner = []
        for boundary in _children(poly, "innerBoundaryIs"):
            # some writers put several LinearRings in one innerBoundaryIs
            for ring in iter_local(boundary, "LinearRing"):
                for coords in _children(ring, "coordinates"):
                    hole = parse_coordinate_string(coords.text)
                    if hole:
                        inner.append(hole)
        polygons.append(DecodedPolygon(outer=outer, inner=inner))
    return polygons

def decode_track(root) -> DecodedTrack:
    """Collect every coordinate sample in the document, bucketed by the
    kind of geometry it came from."""
    track = DecodedTrack()
    for el in root.iter(etree.Element):
        name = local_name(el)
        if name == "coord":
            pair = parse_gx_coord(el.text)
            if pair:
                track.track_coords.append(pair)
        elif name == "coordinates":
            parent = el.getparent()
            kind = local_name(parent) if parent is not None else ""
            coords = parse_coordinate_string(el.text)
            if kind in ("LineString", "LinearRing"):
                track.line_coords.extend(coords)
            elif kind == "Point":
                track.point_coords.extend(coords)
            else:
                track.other_coords.extend(coords)
    return track
