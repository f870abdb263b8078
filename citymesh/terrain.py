"""Terrain slab generation and baseline establishment.

The terrain is a flat-topped slab covering the selection box.  Its top
face defines the shared baseline every other builder stands on, so it
must be built first in each pass.
"""

import logging

from shapely.geometry import box as shapely_box

from .constants import ROUNDED_TERRAIN_ASPECT_TOL, ROUNDED_TERRAIN_RADIUS_FRAC
from .geometry import extrude_watertight, make_box
from .models import Category, MeshRecord
from .projection import haversine_distance

logger = logging.getLogger(__name__)

TERRAIN_ID = 'terrain'


def terrain_extent(bbox, scale: float) -> tuple[float, float]:
    """Slab ``(width, depth)`` in generation units.

    Width is measured along the south edge, depth along the west edge.
    """
    width = haversine_distance(bbox.south, bbox.west, bbox.south, bbox.east) * scale
    depth = haversine_distance(bbox.south, bbox.west, bbox.north, bbox.west) * scale
    return width, depth


def _is_near_square(width: float, depth: float) -> bool:
    return abs(width / depth - 1.0) <= ROUNDED_TERRAIN_ASPECT_TOL


def build_terrain(bbox, config, projector, baseline):
    """Build the terrain slab and establish *baseline* at its top face.

    The baseline is established even when terrain output is disabled, so
    the remaining builders keep a consistent ground level.  Returns the
    slab record, or None when disabled.
    """
    scale = projector.scale
    thickness = config.terrain.base_height * scale
    baseline.establish(thickness)

    if not config.terrain.enabled:
        logger.info("Terrain disabled; baseline set without a slab")
        return None

    width, depth = terrain_extent(bbox, scale)
    cx, cz = projector.project(*bbox.center)
    hw, hd = width / 2.0, depth / 2.0

    if config.terrain.rounded_corners and _is_near_square(width, depth):
        radius = min(width, depth) * ROUNDED_TERRAIN_RADIUS_FRAC
        outline = shapely_box(-hw + radius, -hd + radius,
                              hw - radius, hd - radius).buffer(radius, quad_segs=4)
        verts, faces = extrude_watertight(outline, thickness)
        shape = 'rounded'
    else:
        verts, faces = make_box(-hw, hw, 0.0, thickness, -hd, hd)
        shape = 'box'

    logger.info(f"Terrain: {shape} slab {width:.1f} x {depth:.1f} x {thickness:.2f} "
                f"units, baseline y={thickness:.2f}")
    return MeshRecord.create(TERRAIN_ID, Category.TERRAIN, verts, faces,
                             position=(cx, 0.0, cz), color=config.terrain.color)
