"""Tests for the per-category mesh builders."""

import math

import numpy as np
import pytest

from citymesh.buildings import build_building, building_height_m, parse_number
from citymesh.config import BuildingConfig, ModelConfig, RoofConfig, VegetationConfig
from citymesh.models import BoundingBox, Category, GeoElement, GenerationError
from citymesh.projection import CoordinateProjector
from citymesh.registry import TerrainBaseline
from citymesh.roads import build_bridge, build_road, pillar_offsets
from citymesh.terrain import build_terrain
from citymesh.vegetation import build_vegetation
from citymesh.water import build_water, feature_count

BASELINE = 2.0


def world(record):
    return record.world_vertices()


class TestTerrain:

    def test_establishes_baseline_at_top(self, bbox, config, projector):
        baseline = TerrainBaseline()
        rec = build_terrain(bbox, config, projector, baseline)
        assert baseline.value == pytest.approx(2.0)
        ys = world(rec)[:, 1]
        assert ys.min() == 0.0
        assert ys.max() == pytest.approx(baseline.value)
        assert rec.category is Category.TERRAIN

    def test_second_pass_on_same_baseline_fails(self, bbox, config, projector):
        baseline = TerrainBaseline()
        build_terrain(bbox, config, projector, baseline)
        with pytest.raises(GenerationError):
            build_terrain(bbox, config, projector, baseline)

    def test_rectangular_box_has_square_corners(self, bbox, config, projector):
        rec = build_terrain(bbox, config, projector, TerrainBaseline())
        assert rec.vertex_count == 8

    def test_near_square_box_is_rounded(self, config):
        lon_span = 0.01 / math.cos(math.radians(39.905))
        square = BoundingBox(north=39.91, south=39.90, east=116.39 + lon_span, west=116.39)
        proj = CoordinateProjector.for_bbox(square)
        rec = build_terrain(square, config, proj, TerrainBaseline())
        assert rec.vertex_count > 8

    def test_disabled_still_sets_baseline(self, bbox, projector):
        cfg = ModelConfig.model_validate({'terrain': {'enabled': False}})
        baseline = TerrainBaseline()
        assert build_terrain(bbox, cfg, projector, baseline) is None
        assert baseline.value == pytest.approx(2.0)


class TestBuildingHeight:

    def test_levels(self):
        assert building_height_m({'levels': '5'}, BuildingConfig()) == 15.0

    def test_building_levels_fallback(self):
        assert building_height_m({'building:levels': '2'}, BuildingConfig()) == 6.0

    def test_default_levels(self):
        assert building_height_m({}, BuildingConfig()) == 9.0

    def test_height_tag_with_unit(self):
        assert parse_number('20 m') == 20.0
        assert building_height_m({'height': '20 m'}, BuildingConfig()) == 20.0

    def test_clamped_to_max(self):
        assert building_height_m({'levels': '40'}, BuildingConfig()) == 50.0

    def test_minimum_wins(self):
        cfg = BuildingConfig(base_height=3.0, min_height=8.0)
        assert building_height_m({'levels': '1'}, cfg) == 8.0


class TestBuilding:

    def test_base_is_flush_with_baseline(self, building, config, projector, bbox):
        rec = build_building(building, config, projector, BASELINE, bbox=bbox)
        ys = world(rec)[:, 1]
        assert ys.min() == BASELINE
        assert ys.max() == pytest.approx(BASELINE + 15.0, abs=1e-4)

    def test_footprint_centered_on_record_position(self, building, config, projector):
        rec = build_building(building, config, projector, BASELINE)
        xz = projector.project_many(building.points)
        assert rec.position[0] == pytest.approx(xz[:, 0].mean())
        assert rec.position[2] == pytest.approx(xz[:, 1].mean())

    def test_too_few_points_inside(self, config, projector, bbox):
        ring = [(39.95, 116.39), (39.95, 116.40), (39.96, 116.40), (39.905, 116.395)]
        el = GeoElement.area(9, ring, {'building': 'yes'})
        diagnostics = []
        assert build_building(el, config, projector, BASELINE, bbox=bbox,
                              diagnostics=diagnostics) is None
        assert len(diagnostics) == 1

    def test_small_area_ignored(self, config, projector):
        d = 0.00001  # about 1 m
        ring = [(39.905, 116.395), (39.905, 116.395 + d), (39.905 + d, 116.395 + d),
                (39.905 + d, 116.395)]
        el = GeoElement.area(10, ring, {'building': 'yes'})
        assert build_building(el, config, projector, BASELINE) is None

    def test_pitched_roof_rises_above_walls(self, building, projector):
        cfg = ModelConfig(buildings=BuildingConfig(roof=RoofConfig(type='pitched')))
        rec = build_building(building, cfg, projector, BASELINE)
        top = world(rec)[:, 1].max()
        assert top == pytest.approx(BASELINE + 15.0 * 1.25, abs=1e-3)

    def test_roof_shape_tag_overrides_config(self, projector):
        ring = [(39.9040, 116.3940), (39.9040, 116.3950),
                (39.9050, 116.3950), (39.9050, 116.3940)]
        el = GeoElement.area(11, ring, {'building': 'yes', 'levels': '5',
                                        'roof:shape': 'dome'})
        rec = build_building(el, ModelConfig(), projector, BASELINE)
        assert world(rec)[:, 1].max() > BASELINE + 15.0 + 1.0

    def test_decorations_stay_above_baseline(self, projector):
        ring = [(39.9040, 116.3940), (39.9040, 116.3950),
                (39.9050, 116.3950), (39.9050, 116.3940)]
        for value in ('apartments', 'office', 'warehouse', 'church', 'school'):
            el = GeoElement.area(12, ring, {'building': value, 'levels': '4'})
            rec = build_building(el, ModelConfig(), projector, BASELINE)
            assert world(rec)[:, 1].min() == BASELINE, value


class TestRoad:

    def test_one_record_per_segment(self, residential_road, config, projector, bbox):
        records = build_road(residential_road, config, projector, BASELINE, bbox=bbox)
        assert len(records) == 2
        for rec in records:
            local = np.asarray(rec.vertices)
            assert local[:, 1].min() == 0.0
            assert local[:, 1].max() == pytest.approx(0.1)
            assert local[:, 2].max() - local[:, 2].min() == pytest.approx(4.0)
            assert rec.color == '#cbd5e0'
            assert world(rec)[:, 1].min() == pytest.approx(BASELINE)

    def test_segment_length_matches_projection(self, residential_road, config, projector):
        rec = build_road(residential_road, config, projector, BASELINE)[0]
        a, b = projector.project_many(residential_road.points[:2])
        local = np.asarray(rec.vertices)
        length = local[:, 0].max() - local[:, 0].min()
        assert length == pytest.approx(np.hypot(*(b - a)), rel=1e-5)

    def test_rotation_aligns_with_segment(self, config, projector):
        # Due north: world extent along z, not x.
        el = GeoElement.line(5, [(39.901, 116.395), (39.909, 116.395)], {'highway': 'primary'})
        rec = build_road(el, config, projector, BASELINE)[0]
        w = world(rec)
        assert np.ptp(w[:, 2]) > 100.0
        assert np.ptp(w[:, 0]) == pytest.approx(8.0, abs=1e-3)

    def test_zero_length_segment_skipped(self, config, projector):
        el = GeoElement.line(6, [(39.905, 116.395), (39.905, 116.395), (39.906, 116.395)],
                             {'highway': 'footway'})
        diagnostics = []
        records = build_road(el, config, projector, BASELINE, diagnostics=diagnostics)
        assert len(records) == 1
        assert len(diagnostics) == 1

    def test_min_width_floor(self, projector):
        cfg = ModelConfig.model_validate({'roads': {'minWidth': 3.0}})
        el = GeoElement.line(7, [(39.905, 116.391), (39.905, 116.392)], {'highway': 'footway'})
        local = np.asarray(build_road(el, cfg, projector, BASELINE)[0].vertices)
        assert np.ptp(local[:, 2]) == pytest.approx(3.0)


class TestBridge:

    def test_pillar_offsets(self):
        offsets = pillar_offsets(100.0, 20.0)
        assert len(offsets) == 5
        assert offsets[0] == pytest.approx(-40.0)
        assert offsets[-1] == pytest.approx(40.0)
        assert pillar_offsets(10.0, 20.0) == []

    def test_deck_elevated_with_pillars(self, config, projector):
        el = GeoElement.line(8, [(39.905, 116.391), (39.905, 116.393)], {'bridge': 'yes'})
        rec = build_bridge(el, config, projector, BASELINE)[0]
        a, b = projector.project_many(el.points)
        n_pillars = int(np.hypot(*(b - a)) // 20.0)
        assert n_pillars > 0
        # deck box + (two 8-vertex rings and two cap centers) per pillar
        assert rec.vertex_count == 8 + n_pillars * 18
        ys = world(rec)[:, 1]
        assert ys.min() == pytest.approx(BASELINE)
        assert ys.max() == pytest.approx(BASELINE + 2.0 + 1.5)

    def test_no_pillars_when_disabled(self, projector):
        cfg = ModelConfig.model_validate({'bridges': {'pillarConfig': {'enabled': False}}})
        el = GeoElement.line(8, [(39.905, 116.391), (39.905, 116.393)], {'bridge': 'yes'})
        rec = build_bridge(el, cfg, projector, BASELINE)[0]
        assert rec.vertex_count == 8
        assert world(rec)[:, 1].min() == pytest.approx(BASELINE + 2.0)


class TestWater:

    def test_flat_plane_at_baseline(self, pond, config, projector):
        rec = build_water(pond, config, projector, BASELINE)
        ys = world(rec)[:, 1]
        assert ys.min() == BASELINE
        assert ys.max() == BASELINE

    def test_faces_point_up(self, pond, projector):
        cfg = ModelConfig.model_validate({'water': {'waveConfig': {'enabled': False}}})
        rec = build_water(pond, cfg, projector, BASELINE)
        v = np.asarray(rec.vertices, dtype=float)
        f = np.asarray(rec.faces, dtype=int)
        n = np.cross(v[f[:, 1]] - v[f[:, 0]], v[f[:, 2]] - v[f[:, 0]])
        assert (n[:, 1] > 0).all()

    def test_open_line_skipped(self, config, projector):
        el = GeoElement.line(20, [(39.901, 116.391), (39.902, 116.392)], {'waterway': 'river'})
        diagnostics = []
        assert build_water(el, config, projector, BASELINE, diagnostics=diagnostics) is None
        assert diagnostics

    def test_ripple_count(self):
        assert feature_count(4, 1.0, 3) == 3
        assert feature_count(4, 0.5, 3) == 2
        assert feature_count(4, 0.0, 3) == 0

    def test_seeded(self, pond, config, projector):
        a = build_water(pond, config, projector, BASELINE, seed=1)
        b = build_water(pond, config, projector, BASELINE, seed=1)
        np.testing.assert_array_equal(a.vertices, b.vertices)


class TestVegetation:

    def test_plane_raised_by_half_height(self, park, projector):
        cfg = ModelConfig(vegetation=VegetationConfig(trees={'enabled': False}))
        rec = build_vegetation(park, cfg, projector, BASELINE)
        ys = world(rec)[:, 1]
        assert ys.min() == pytest.approx(BASELINE + 0.75)
        assert ys.max() == pytest.approx(BASELINE + 0.75)

    def test_trees_add_geometry_above_plane(self, park, config, projector):
        rec = build_vegetation(park, config, projector, BASELINE, seed=3)
        ys = world(rec)[:, 1]
        assert ys.min() == pytest.approx(BASELINE + 0.75)
        assert ys.max() > BASELINE + 3.0

    def test_deterministic_per_seed(self, park, config, projector):
        a = build_vegetation(park, config, projector, BASELINE, seed=5)
        b = build_vegetation(park, config, projector, BASELINE, seed=5)
        c = build_vegetation(park, config, projector, BASELINE, seed=6)
        np.testing.assert_array_equal(a.vertices, b.vertices)
        assert not np.array_equal(a.vertices, c.vertices)

    def test_small_area_skipped(self, config, projector):
        d = 0.00001
        ring = [(39.905, 116.395), (39.905, 116.395 + d), (39.905 + d, 116.395 + d),
                (39.905 + d, 116.395)]
        el = GeoElement.area(21, ring, {'landuse': 'grass'})
        assert build_vegetation(el, config, projector, BASELINE) is None
