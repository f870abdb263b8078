"""Tests for the local equirectangular projection."""

import math

import pytest

from citymesh.models import BoundingBox, GenerationError
from citymesh.projection import CoordinateProjector, haversine_distance


class TestProject:
    """Tests for CoordinateProjector.project."""

    def test_center_maps_to_origin(self, projector, bbox):
        x, z = projector.project(*bbox.center)
        assert x == pytest.approx(0.0, abs=1e-9)
        assert z == pytest.approx(0.0, abs=1e-9)

    def test_east_is_positive_x(self):
        p = CoordinateProjector(40.0, 116.0)
        x, z = p.project(40.0, 116.001)
        assert x == pytest.approx(0.001 * 111320.0 * math.cos(math.radians(40.0)))
        assert z == pytest.approx(0.0)

    def test_north_is_negative_z(self):
        p = CoordinateProjector(40.0, 116.0)
        x, z = p.project(40.001, 116.0)
        assert x == pytest.approx(0.0)
        assert z == pytest.approx(-0.001 * 111320.0)

    def test_scale_multiplies(self):
        a = CoordinateProjector(40.0, 116.0, scale=1.0).project(40.001, 116.001)
        b = CoordinateProjector(40.0, 116.0, scale=0.5).project(40.001, 116.001)
        assert b[0] == pytest.approx(a[0] * 0.5)
        assert b[1] == pytest.approx(a[1] * 0.5)

    def test_project_many_matches_project(self, projector, building):
        many = projector.project_many(building.points)
        for (x, z), p in zip(many, building.points):
            assert (x, z) == pytest.approx(projector.project(p.lat, p.lon))

    def test_unproject_inverts(self, projector):
        x, z = projector.project(39.9071, 116.3912)
        lat, lon = projector.unproject(x, z)
        assert lat == pytest.approx(39.9071)
        assert lon == pytest.approx(116.3912)


class TestProjectorPreconditions:
    """Invalid centers are pass-level failures."""

    def test_missing_center(self):
        with pytest.raises(GenerationError):
            CoordinateProjector(None, 116.0)

    def test_non_finite_center(self):
        with pytest.raises(GenerationError):
            CoordinateProjector(float('nan'), 116.0)

    def test_latitude_out_of_range(self):
        with pytest.raises(GenerationError):
            CoordinateProjector(95.0, 116.0)

    def test_non_positive_scale(self):
        with pytest.raises(GenerationError):
            CoordinateProjector(40.0, 116.0, scale=0.0)

    def test_center_is_read_only(self, projector):
        with pytest.raises(AttributeError):
            projector.scale = 2.0

    def test_for_bbox_explicit_center(self):
        bbox = BoundingBox(north=1.0, south=0.0, east=1.0, west=0.0)
        p = CoordinateProjector.for_bbox(bbox, center=(0.25, 0.75))
        assert p.center == (0.75, 0.25)


class TestHaversine:

    def test_one_degree_latitude(self):
        d = haversine_distance(0.0, 0.0, 1.0, 0.0)
        assert d == pytest.approx(111195.0, rel=1e-3)

    def test_zero_distance(self):
        assert haversine_distance(39.9, 116.4, 39.9, 116.4) == 0.0
