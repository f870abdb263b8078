"""End-to-end generation passes."""

import numpy as np
import pytest

from citymesh.builder import ModelGenerator, generate
from citymesh.config import ModelConfig, ProjectionConfig
from citymesh.models import BoundingBox, Category, GenerationError, GeoElement

ONLY_BUILDINGS = {'roads': {'enabled': False}, 'water': {'enabled': False},
                  'vegetation': {'enabled': False}}


class TestScenarios:

    def test_single_building(self, bbox, building):
        cfg = ModelConfig.model_validate(ONLY_BUILDINGS)
        result = generate([building], bbox, cfg)
        snap = result.snapshot
        assert len(snap.records) == 2
        assert snap.counts[Category.TERRAIN] == 1
        assert snap.counts[Category.BUILDING] == 1

        rec = snap.by_category(Category.BUILDING)[0]
        ys = rec.world_vertices()[:, 1]
        expected_h = max(cfg.buildings.base_height, 15.0, cfg.buildings.min_height) * cfg.scale
        assert ys.min() == snap.baseline
        assert ys.max() - snap.baseline == pytest.approx(expected_h, abs=1e-4)

    def test_residential_road(self, bbox, residential_road, config):
        result = generate([residential_road], bbox, config)
        snap = result.snapshot
        assert len(snap.records) == 3
        roads = snap.by_category(Category.ROAD)
        assert len(roads) == 2
        entry = config.roads.types['residential']
        for rec in roads:
            local = np.asarray(rec.vertices)
            assert np.ptp(local[:, 2]) == pytest.approx(entry.width * config.scale)
            assert np.ptp(local[:, 1]) == pytest.approx(entry.height * config.scale)
            assert rec.color == entry.color

    def test_mixed_scene(self, bbox, building, residential_road, pond, park, config):
        result = generate([building, residential_road, pond, park], bbox, config)
        counts = result.snapshot.counts
        assert counts[Category.BUILDING] == 1
        assert counts[Category.ROAD] == 2
        assert counts[Category.WATER] == 1
        assert counts[Category.VEGETATION] == 1
        assert result.warning_count == 0


class TestPassBehavior:

    def test_regenerate_is_idempotent(self, bbox, building, residential_road, config):
        gen = ModelGenerator(config)
        first = gen.generate([building, residential_road], bbox)
        second = gen.generate([building, residential_road], bbox)
        assert len(gen.registry) == len(first.snapshot.records)
        assert [r.id for r in first.snapshot.records] == [r.id for r in second.snapshot.records]
        for a, b in zip(first.snapshot.records, second.snapshot.records):
            np.testing.assert_array_equal(a.vertices, b.vertices)
            assert a.position == b.position

    def test_accepts_generator_input(self, bbox, building):
        result = generate((e for e in [building]), bbox)
        assert result.snapshot.counts[Category.BUILDING] == 1

    def test_invalid_bbox_publishes_nothing(self, bbox, building, config):
        gen = ModelGenerator(config)
        gen.generate([building], bbox)
        assert len(gen.registry) > 0
        bad = BoundingBox(north=39.90, south=39.91, east=116.40, west=116.39)
        with pytest.raises(GenerationError):
            gen.generate([building], bad)
        assert len(gen.registry) == 0

    def test_invalid_center_is_fatal(self, bbox, building):
        cfg = ModelConfig(projection=ProjectionConfig(center=(116.4, 95.0)))
        with pytest.raises(GenerationError):
            generate([building], bbox, cfg)

    def test_outside_and_unclassified_dropped(self, bbox, building):
        far = GeoElement.area(50, [(10.0, 10.0), (10.0, 10.1), (10.1, 10.1)],
                              {'building': 'yes'})
        bench = GeoElement.point(51, 39.905, 116.395, {'amenity': 'bench'})
        result = generate([far, bench, building], bbox)
        assert len(result.snapshot.records) == 2
        assert result.warning_count == 0

    def test_element_problems_become_diagnostics(self, bbox):
        stub = GeoElement.line(60, [(39.905, 116.395), (39.905, 116.395)],
                               {'highway': 'service'})
        result = generate([stub], bbox)
        assert result.warning_count == 1
        assert result.diagnostics[0].element_id == 60
        assert result.snapshot.counts[Category.ROAD] == 0

    def test_disabled_category_skipped(self, bbox, pond):
        cfg = ModelConfig.model_validate({'water': {'enabled': False}})
        assert generate([pond], bbox, cfg).snapshot.counts[Category.WATER] == 0

    def test_seed_changes_vegetation_only_by_config(self, bbox, park):
        a = generate([park], bbox, ModelConfig.model_validate({'global': {'seed': 1}}))
        b = generate([park], bbox, ModelConfig.model_validate({'global': {'seed': 1}}))
        va = a.snapshot.by_category(Category.VEGETATION)[0].vertices
        vb = b.snapshot.by_category(Category.VEGETATION)[0].vertices
        np.testing.assert_array_equal(va, vb)
