"""Point-in-polygon predicates.

Points and ring vertices are (x, y) = (lon, lat) pairs.  These are planar
tests on raw degrees; over a national park sized region that is accurate
enough, and it matches what the published boundary maps show."""

from dataclasses import dataclass
from typing import Iterable, Sequence

Point = tuple[float, float]

@dataclass(frozen=True)
class GeoBounds:
    """Geographic bounding box in degrees."""
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @property
    def lat_span(self) -> float:
        return self.max_lat - self.min_lat

    @property
    def lon_span(self) -> float:
        return self.max_lon - self.min_lon

    @property
    def center(self) -> tuple[float, float]:
        """(lat, lon) of the box center."""
        return ((self.min_lat + self.max_lat) / 2,
                (self.min_lon + self.max_lon) / 2)

def point_in_ring(point: Point, ring: Sequence[Point]) -> bool:
    """Even-odd ray casting test.

    The ring is implicitly closed.  A ray is cast from point in the +x
    direction and the number of edges it crosses is counted; odd means
    inside.  Points exactly on an edge may go either way."""
    x, y = point
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside

def point_in_polygon(point: Point, outer: Sequence[Point],
                     inner: Iterable[Sequence[Point]] = ()) -> bool:
    """Inside the outer ring and outside every hole of this polygon."""
    if not point_in_ring(point, outer):
        return False
    return not any(point_in_ring(point, hole) for hole in inner)

def point_in_boundary(point: Point, polygons) -> bool:
    """True if point is inside any polygon of the set.

    Holes only apply to the polygon that owns them: a point in a hole of one
    polygon is still inside if another polygon covers it."""
    return any(point_in_polygon(point, p.outer, p.inner) for p in polygons)
