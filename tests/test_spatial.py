"""Tests for the bbox intersection filter."""

from citymesh.models import BoundingBox, GeoElement, GeoPoint, GeometryKind
from citymesh.spatial import SpatialFilter, filter_points, intersects, point_in_polygon

BOX = BoundingBox(north=1.0, south=0.0, east=1.0, west=0.0)


class TestIntersects:

    def test_point_inside(self):
        assert intersects(GeoElement.point(1, 0.5, 0.5), BOX) is True

    def test_point_on_edge_is_inclusive(self):
        assert intersects(GeoElement.point(1, 1.0, 0.5), BOX) is True

    def test_far_away_rejected(self):
        el = GeoElement.line(1, [(5.0, 5.0), (6.0, 6.0)])
        assert intersects(el, BOX) is False

    def test_line_crossing_without_vertex_inside(self):
        el = GeoElement.line(1, [(0.5, -1.0), (0.5, 2.0)])
        assert intersects(el, BOX) is True

    def test_area_containing_box(self):
        ring = [(-1.0, -1.0), (-1.0, 2.0), (2.0, 2.0), (2.0, -1.0)]
        assert intersects(GeoElement.area(1, ring), BOX) is True

    def test_empty_element_rejected(self):
        el = GeoElement(1, GeometryKind.LINE, ())
        assert intersects(el, BOX) is False

    def test_closing_edge_only_for_areas(self):
        # Only the edge from the last point back to the first crosses the box.
        coords = [(-0.5, 1.5), (-0.5, 2.0), (1.5, 2.0), (1.5, -0.5)]
        assert intersects(GeoElement.line(1, coords), BOX) is False
        assert intersects(GeoElement.area(2, coords), BOX) is True

    def test_filter_object(self):
        f = SpatialFilter(BOX)
        assert f.intersects(GeoElement.point(1, 0.2, 0.2))


class TestPointHelpers:

    def test_point_in_polygon(self):
        ring = [GeoPoint(0, 0), GeoPoint(0, 4), GeoPoint(4, 4), GeoPoint(4, 0)]
        assert point_in_polygon(2.0, 2.0, ring) is True
        assert point_in_polygon(5.0, 5.0, ring) is False

    def test_filter_points_keeps_order(self):
        pts = [GeoPoint(0.9, 0.9), GeoPoint(2.0, 2.0), GeoPoint(0.1, 0.1)]
        assert filter_points(pts, BOX) == [GeoPoint(0.9, 0.9), GeoPoint(0.1, 0.1)]
