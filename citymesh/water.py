"""Flat water surfaces with optional ripple rings."""

import logging

import numpy as np

from .geometry import (
    add_to_group, footprint_polygon, group_arrays, make_ring, new_group,
    triangulate_flat,
)
from .models import Category, GeometryError, GeometryKind, MeshRecord, add_diagnostic, element_rng
from .spatial import filter_points

logger = logging.getLogger(__name__)


def feature_count(point_count: int, density: float, cap: int) -> int:
    """``min(cap, floor(point_count * density))``, never negative."""
    return max(0, min(int(cap), int(point_count * density)))


def build_water(element, config, projector, baseline, bbox=None, diagnostics=None,
                seed=0):
    """Triangulated water plane at *baseline*, or None when skipped."""
    cfg = config.water
    if element.kind is not GeometryKind.AREA:
        add_diagnostic(diagnostics, element.id, Category.WATER,
                       "water needs a closed area")
        return None
    points = filter_points(element.points, bbox) if bbox is not None else list(element.points)
    if len(points) < 3:
        add_diagnostic(diagnostics, element.id, Category.WATER,
                       f"needs 3 points inside the bounds, has {len(points)}")
        return None

    xz = projector.project_many(points)
    origin = xz.mean(axis=0)
    local = xz - origin
    try:
        polygon = footprint_polygon(local)
        verts, faces = triangulate_flat(polygon)
    except (GeometryError, ValueError) as e:
        add_diagnostic(diagnostics, element.id, Category.WATER, f"bad outline: {e}")
        return None

    group = new_group()
    add_to_group(group, verts, faces)

    waves = cfg.waves
    n_ripples = feature_count(len(points), waves.density, waves.cap) if waves.enabled else 0
    if n_ripples:
        rng = element_rng(seed, element.id)
        r_outer = (1.0 + waves.amplitude) * projector.scale / max(waves.frequency, 0.1)
        for _ in range(n_ripples):
            # Halfway between a boundary vertex and the centroid keeps the ring on the water.
            vx, vz = local[rng.randrange(len(local))] * 0.5
            add_to_group(group, *make_ring(float(vx), float(vz), 0.0,
                                           r_outer * 0.8, r_outer, nsides=16))

    verts, faces = group_arrays(group)
    if not np.isfinite(verts).all():
        add_diagnostic(diagnostics, element.id, Category.WATER, "non-finite vertices")
        return None
    logger.debug(f"Water {element.id}: {len(faces)} tris, {n_ripples} ripples")
    return MeshRecord.create(f"water-{element.id}", Category.WATER, verts, faces,
                             position=(origin[0], float(baseline), origin[1]),
                             color=cfg.color)
