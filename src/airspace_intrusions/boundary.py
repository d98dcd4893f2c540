"""Representation for the restricted airspace boundary found in a kml file.

The boundary is one or more polygons, each with an outer ring and optional
holes.  Polygons can be anywhere in the document: directly in a Placemark,
inside a MultiGeometry, or inside (possibly invisible) nested Folders.

Note there is a Polygon object and a BoundarySet object, the latter
containing Polygon objects."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

from shapely.geometry import MultiPoint
from shapely.geometry import Polygon as ShapelyPolygon

from . import kml
from .cache import Cache
from .geometry import GeoBounds, Point, point_in_boundary

logger = logging.getLogger(__name__)

# Table Mountain National Park, used to frame maps when no boundary loaded
DEFAULT_BOUNDS = GeoBounds(min_lat=-34.5, max_lat=-33.7,
                           min_lon=18.2, max_lon=18.6)

@dataclass(frozen=True)
class Polygon:
    """A single boundary polygon.  Coordinates are (lon, lat)."""
    outer: tuple[Point, ...]
    inner: tuple[tuple[Point, ...], ...] = ()

    @property
    def shape(self) -> ShapelyPolygon:
        """This polygon as a shapely geometry, for validity checks."""
        return ShapelyPolygon(self.outer, [hole for hole in self.inner])

    def is_valid(self) -> bool:
        """False for degenerate or self-intersecting rings."""
        rings = (self.outer,) + self.inner
        if any(len(ring) < 3 for ring in rings):
            return False
        return self.shape.is_valid

    def vertex_count(self) -> int:
        return len(self.outer) + sum(len(hole) for hole in self.inner)

class BoundarySet:
    """An immutable, ordered collection of Polygon objects, defined by a
    KML file with polygons inside."""

    def __init__(self, polygons=()):
        self.polygons: tuple[Polygon, ...] = tuple(polygons)

    def __iter__(self) -> Iterator[Polygon]:
        return iter(self.polygons)

    def __len__(self):
        return len(self.polygons)

    def __getitem__(self, i) -> Polygon:
        return self.polygons[i]

    def contains(self, lat: float, lon: float) -> bool:
        return point_in_boundary((lon, lat), self.polygons)

    def bounds(self) -> Optional[GeoBounds]:
        """Bounding box of all outer rings, None if the set is empty."""
        vertices = [v for p in self.polygons for v in p.outer]
        if not vertices:
            return None
        min_lon, min_lat, max_lon, max_lat = MultiPoint(vertices).bounds
        return GeoBounds(min_lat=min_lat, max_lat=max_lat,
                         min_lon=min_lon, max_lon=max_lon)

    def vertex_count(self) -> int:
        return sum(p.vertex_count() for p in self.polygons)

    @classmethod
    def from_kml(cls, source: Union[bytes, str, Path]) -> "BoundarySet":
        """Parse KML bytes or a KML file path.  Raises ParseFailure if the
        document can't be read at all."""
        root = kml.read_document(source)
        polygons = [Polygon(outer=tuple(d.outer),
                            inner=tuple(tuple(hole) for hole in d.inner))
                    for d in kml.decode_polygons(root)]
        boundary = cls(polygons)
        for i, p in enumerate(boundary):
            if not p.is_valid():
                logger.warning("Boundary polygon %d is not a simple polygon, "
                               "containment uses the even-odd rule", i)
        logger.info("Loaded %d boundary polygons with %d total boundary points",
                    len(boundary), boundary.vertex_count())
        return boundary

def load_boundary(path, cache: Optional[Cache] = None) -> BoundarySet:
    """Load the boundary file at path, going through cache if given.

    The cache key includes the file's mtime, so editing the boundary file
    invalidates the cached copy."""
    path = Path(path)
    if cache is None:
        return BoundarySet.from_kml(path)

    try:
        mtime = os.stat(path).st_mtime_ns
    except OSError:
        mtime = 0   # from_kml reports the read failure
    key = f"boundary:{path.resolve()}:{mtime}"
    boundary = cache.get(key)
    if boundary is None:
        boundary = BoundarySet.from_kml(path)
        cache.put(key, boundary)
    else:
        logger.debug("Boundary cache hit for %s", path)
    return boundary
