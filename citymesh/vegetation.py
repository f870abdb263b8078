"""Vegetation areas: a raised green plane with scattered trees.

Tree placement is driven by a per-element RNG seeded from the pass seed
and the element id, so the same input always yields the same forest.
"""

import math
import logging

import numpy as np

from .buildings import footprint_area_m2
from .geometry import (
    add_to_group, footprint_polygon, group_arrays, make_cone, make_ellipsoid,
    make_tapered_prism, new_group, triangulate_flat,
)
from .models import Category, GeometryError, GeometryKind, MeshRecord, add_diagnostic, element_rng
from .spatial import filter_points
from .water import feature_count

logger = logging.getLogger(__name__)

TRUNK_HEIGHT_M = 2.0
TRUNK_RADIUS_M = 0.2
CROWN_HEIGHT_M = 3.0
CROWN_RADIUS_M = 1.5


def make_tree(tree_type, x, z, y0, scale, jitter=1.0):
    """Trunk plus crown standing at ``(x, y0, z)``.

    oak → round crown, pine → cone, birch → slim ellipsoid; unknown types
    fall back to oak.
    """
    trunk_h = TRUNK_HEIGHT_M * scale * jitter
    crown_h = CROWN_HEIGHT_M * scale * jitter
    crown_r = CROWN_RADIUS_M * scale * jitter
    group = new_group()
    add_to_group(group, *make_tapered_prism(x, z, y0, y0 + trunk_h,
                                            TRUNK_RADIUS_M * scale,
                                            TRUNK_RADIUS_M * scale * 0.7, nsides=6))
    top = y0 + trunk_h
    if tree_type == 'pine':
        add_to_group(group, *make_cone(x, z, top, top + crown_h * 1.3, crown_r * 0.8))
    elif tree_type == 'birch':
        r = crown_r * 0.6
        add_to_group(group, *make_ellipsoid(x, top + crown_h / 2, z, r, crown_h / 2, r))
    else:
        add_to_group(group, *make_ellipsoid(x, top + crown_r * 0.8, z,
                                            crown_r, crown_r, crown_r))
    return group['verts'], group['faces']


def build_vegetation(element, config, projector, baseline, bbox=None,
                     diagnostics=None, seed=0):
    """Green plane at half the configured height above *baseline*, plus trees."""
    cfg = config.vegetation
    if element.kind is not GeometryKind.AREA:
        add_diagnostic(diagnostics, element.id, Category.VEGETATION,
                       "vegetation needs a closed area")
        return None
    points = filter_points(element.points, bbox) if bbox is not None else list(element.points)
    if len(points) < 3:
        add_diagnostic(diagnostics, element.id, Category.VEGETATION,
                       f"needs 3 points inside the bounds, has {len(points)}")
        return None

    area = footprint_area_m2(points, projector)
    if area < cfg.min_area:
        logger.debug(f"Vegetation {element.id}: area {area:.1f} m² below {cfg.min_area}")
        return None

    scale = projector.scale
    plane_y = cfg.height * scale / 2.0
    xz = projector.project_many(points)
    origin = xz.mean(axis=0)
    local = xz - origin
    try:
        polygon = footprint_polygon(local)
        verts, faces = triangulate_flat(polygon, y=plane_y)
    except (GeometryError, ValueError) as e:
        add_diagnostic(diagnostics, element.id, Category.VEGETATION, f"bad outline: {e}")
        return None

    group = new_group()
    add_to_group(group, verts, faces)

    trees = cfg.trees
    n_trees = 0
    if trees.enabled and trees.types:
        n_trees = feature_count(len(points), cfg.density, trees.cap)
        rng = element_rng(seed, element.id)
        for _ in range(n_trees):
            vx, vz = local[rng.randrange(len(local))]
            pull = rng.uniform(0.3, 0.7)
            angle = rng.uniform(0.0, 2.0 * math.pi)
            wobble = trees.randomness * scale
            tx = vx * pull + math.cos(angle) * wobble
            tz = vz * pull + math.sin(angle) * wobble
            jitter = 1.0 + rng.uniform(-0.5, 0.5) * trees.randomness
            add_to_group(group, *make_tree(rng.choice(trees.types), tx, tz,
                                           plane_y, scale, jitter))

    verts, faces = group_arrays(group)
    if not np.isfinite(verts).all():
        add_diagnostic(diagnostics, element.id, Category.VEGETATION, "non-finite vertices")
        return None
    logger.debug(f"Vegetation {element.id}: area={area:.0f} m², {n_trees} trees")
    return MeshRecord.create(f"vegetation-{element.id}", Category.VEGETATION, verts, faces,
                             position=(origin[0], float(baseline), origin[1]),
                             color=cfg.color)
