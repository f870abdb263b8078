"""ModelGenerator: thin orchestrator that runs one generation pass."""

import time
import logging
from typing import Iterable, Optional

from .buildings import build_building
from .classify import classify
from .config import ModelConfig
from .models import (
    Category, GenerationResult, GeometryError, add_diagnostic,
)
from .projection import CoordinateProjector
from .registry import ModelRegistry, TerrainBaseline
from .roads import build_bridge, build_road
from .spatial import SpatialFilter
from .terrain import build_terrain
from .vegetation import build_vegetation
from .water import build_water

logger = logging.getLogger(__name__)

BUILDERS = {
    Category.BUILDING: build_building,
    Category.ROAD: build_road,
    Category.BRIDGE: build_bridge,
    Category.WATER: build_water,
    Category.VEGETATION: build_vegetation,
}

# Builders that scatter features and take the pass seed.
SEEDED = frozenset({Category.WATER, Category.VEGETATION})

_SECTIONS = {
    Category.BUILDING: 'buildings',
    Category.ROAD: 'roads',
    Category.BRIDGE: 'bridges',
    Category.WATER: 'water',
    Category.VEGETATION: 'vegetation',
}


def category_enabled(config: ModelConfig, category: Category) -> bool:
    return getattr(config, _SECTIONS[category]).enabled


class ModelGenerator:
    """Turns map elements inside a bbox into a populated :class:`ModelRegistry`.

    Each generator owns its registry.  A pass clears it, builds into a
    private staging registry and publishes the result in one step, so a
    pass that fails leaves the registry empty instead of half-built.
    """

    def __init__(self, config: Optional[ModelConfig] = None,
                 registry: Optional[ModelRegistry] = None):
        self.config = config or ModelConfig()
        self.registry = registry or ModelRegistry()

    def generate(self, elements: Iterable, bbox, config: Optional[ModelConfig] = None
                 ) -> GenerationResult:
        """Run a full pass over *elements* (any iterable, consumed once)."""
        config = config or self.config
        t0 = time.time()
        self.registry.clear()

        bbox.validate()
        projector = CoordinateProjector.for_bbox(bbox, config.scale,
                                                 config.projection.center)
        staging = ModelRegistry(self.registry.validator)
        baseline = TerrainBaseline()
        diagnostics = []

        terrain = build_terrain(bbox, config, projector, baseline)
        if terrain is not None:
            staging.add(terrain)

        spatial = SpatialFilter(bbox)
        seen = skipped = 0
        for element in elements:
            seen += 1
            if not element.points:
                skipped += 1
                continue
            category = classify(element.tags)
            if category is Category.UNCLASSIFIED or not category_enabled(config, category):
                skipped += 1
                continue
            if not spatial.intersects(element):
                skipped += 1
                continue

            build = BUILDERS[category]
            kwargs = {'bbox': bbox, 'diagnostics': diagnostics}
            if category in SEEDED:
                kwargs['seed'] = config.seed
            try:
                built = build(element, config, projector, baseline.value, **kwargs)
            except GeometryError as e:
                add_diagnostic(diagnostics, element.id, category, str(e))
                continue

            if built is None:
                continue
            for record in (built if isinstance(built, list) else [built]):
                if not staging.add(record):
                    add_diagnostic(diagnostics, element.id, category,
                                   f"record {record.id} rejected by validator")

        self.registry.replace(staging, baseline.value)
        snapshot = self.registry.snapshot()
        counts = ", ".join(f"{c.value}={n}" for c, n in snapshot.counts.items() if n)
        logger.info(f"Generated {len(snapshot.records)} meshes from {seen} elements "
                    f"({skipped} skipped, {len(diagnostics)} warnings) in "
                    f"{time.time() - t0:.2f}s: {counts or 'empty'}")
        return GenerationResult(snapshot, tuple(diagnostics))


def generate(elements, bbox, config: Optional[ModelConfig] = None) -> GenerationResult:
    """One-shot convenience wrapper around :class:`ModelGenerator`."""
    return ModelGenerator(config).generate(elements, bbox)
