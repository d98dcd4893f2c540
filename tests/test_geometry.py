"""Tests for point-in-polygon predicates and boundary containment."""

from airspace_intrusions.boundary import BoundarySet, Polygon
from airspace_intrusions.geometry import (GeoBounds, point_in_boundary,
                                          point_in_polygon, point_in_ring)

SQUARE = [(0.0, 0.0), (0.0, 1.0), (1.0, 1.0), (1.0, 0.0)]
HOLE = [(0.4, 0.4), (0.4, 0.6), (0.6, 0.6), (0.6, 0.4)]


class TestPointInRing:
    """Even-odd ray casting against a single ring."""

    def test_center_inside(self):
        assert point_in_ring((0.5, 0.5), SQUARE)

    def test_far_outside(self):
        """Points far away in every direction are outside."""
        for p in [(-100, 0.5), (100, 0.5), (0.5, -100), (0.5, 100), (1e6, -1e6)]:
            assert not point_in_ring(p, SQUARE), p

    def test_concave_ring(self):
        """The notch of a U shape is outside, its arms inside."""
        u_shape = [(0, 0), (3, 0), (3, 3), (2, 3), (2, 1), (1, 1), (1, 3), (0, 3)]
        assert point_in_ring((0.5, 2), u_shape)
        assert point_in_ring((2.5, 2), u_shape)
        assert not point_in_ring((1.5, 2), u_shape)
        assert point_in_ring((1.5, 0.5), u_shape)

    def test_closed_ring_same_answer(self):
        """Repeating the first vertex at the end doesn't change the result."""
        closed = SQUARE + [SQUARE[0]]
        for p in [(0.5, 0.5), (2, 2), (0.1, 0.9)]:
            assert point_in_ring(p, closed) == point_in_ring(p, SQUARE)

    def test_degenerate_rings(self):
        assert not point_in_ring((0.5, 0.5), [])
        assert not point_in_ring((0.5, 0.5), [(0, 0)])


class TestPointInPolygon:
    """Holes belong to the polygon that declares them."""

    def test_in_hole_is_outside(self):
        assert not point_in_polygon((0.5, 0.5), SQUARE, [HOLE])

    def test_between_hole_and_outer(self):
        assert point_in_polygon((0.2, 0.2), SQUARE, [HOLE])

    def test_outside_outer_ignores_holes(self):
        assert not point_in_polygon((2, 2), SQUARE, [HOLE])

    def test_hole_of_one_polygon_covered_by_another(self):
        """A point in A's hole is still inside if polygon B covers it."""
        small = [(0.45, 0.45), (0.45, 0.55), (0.55, 0.55), (0.55, 0.45)]
        polygons = [Polygon(tuple(SQUARE), (tuple(HOLE),)), Polygon(tuple(small))]
        assert point_in_boundary((0.5, 0.5), polygons)
        assert not point_in_boundary((0.42, 0.42), polygons)

    def test_empty_boundary(self):
        assert not point_in_boundary((0.5, 0.5), [])


class TestBoundarySet:
    """BoundarySet takes (lat, lon) and knows its outer extent."""

    def test_contains_lat_lon_order(self):
        boundary = BoundarySet([Polygon(tuple([(10, 50), (11, 50), (11, 51), (10, 51)]))])
        assert boundary.contains(50.5, 10.5)
        assert not boundary.contains(10.5, 50.5)

    def test_bounds_use_outer_rings(self):
        boundary = BoundarySet([Polygon(tuple(SQUARE), (tuple(HOLE),)),
                                Polygon(((2, 3), (2, 4), (3, 4)))])
        assert boundary.bounds() == GeoBounds(min_lat=0, max_lat=4, min_lon=0, max_lon=3)
        assert boundary.vertex_count() == 11

    def test_empty_bounds(self):
        assert BoundarySet().bounds() is None

    def test_validity(self):
        assert Polygon(tuple(SQUARE), (tuple(HOLE),)).is_valid()
        assert not Polygon(((0, 0), (1, 1), (1, 0), (0, 1))).is_valid()
        assert not Polygon(((0, 0), (1, 1))).is_valid()
