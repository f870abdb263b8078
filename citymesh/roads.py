"""Road and bridge segments.

Each consecutive pair of points becomes one oriented box, built along +X
in its local frame and rotated about Y into place.  The base of every
road box sits on the baseline; bridge decks are lifted by the clearance
and may stand on tapered pillars.
"""

import math
import logging

from .classify import road_class
from .constants import MIN_SEGMENT_LENGTH
from .geometry import (
    add_to_group, group_arrays, make_segment_box, make_tapered_prism, new_group,
)
from .models import Category, MeshRecord, add_diagnostic
from .spatial import filter_points

logger = logging.getLogger(__name__)


def _segments(element, projector, bbox, category, diagnostics):
    """Yield ``(index, (mx, mz), length, yaw)`` for each usable segment."""
    points = filter_points(element.points, bbox) if bbox is not None else list(element.points)
    if len(points) < 2:
        add_diagnostic(diagnostics, element.id, category,
                       f"needs 2 points inside the bounds, has {len(points)}")
        return
    xz = projector.project_many(points)
    for i in range(len(xz) - 1):
        (x0, z0), (x1, z1) = xz[i], xz[i + 1]
        dx, dz = x1 - x0, z1 - z0
        length = math.hypot(dx, dz)
        if not math.isfinite(length) or length < MIN_SEGMENT_LENGTH:
            add_diagnostic(diagnostics, element.id, category,
                           f"segment {i} too short ({length:.3f} units), skipped")
            continue
        # Rotation about +Y maps local +X onto (dx, dz).
        yaw = math.atan2(-dz, dx)
        yield i, ((x0 + x1) / 2.0, (z0 + z1) / 2.0), length, yaw


def build_road(element, config, projector, baseline, bbox=None, diagnostics=None):
    """One box record per segment, sized from the road-class table."""
    cfg = config.roads
    entry = cfg.for_class(road_class(element.tags))
    scale = projector.scale
    width = max(entry.width, cfg.min_width) * scale
    height = entry.height * scale

    records = []
    for i, (mx, mz), length, yaw in _segments(element, projector, bbox,
                                              Category.ROAD, diagnostics):
        verts, faces = make_segment_box(length, height, width)
        records.append(MeshRecord.create(
            f"road-{element.id}-{i}", Category.ROAD, verts, faces,
            position=(mx, float(baseline), mz), rotation=(0.0, yaw, 0.0),
            color=entry.color))
    logger.debug(f"Road {element.id}: {len(records)} segments, w={width:.2f} h={height:.2f}")
    return records


def pillar_offsets(length: float, spacing: float) -> list[float]:
    """Local X of ``floor(length / spacing)`` pillars, evenly spread along a segment."""
    if spacing <= 0:
        return []
    n = int(length // spacing)
    return [-length / 2.0 + length * (i + 0.5) / n for i in range(n)]


def build_bridge(element, config, projector, baseline, bbox=None, diagnostics=None):
    """Elevated deck segments with pillars merged into each segment record."""
    cfg = config.bridges
    scale = projector.scale
    width = cfg.width * scale
    height = cfg.height * scale
    clearance = cfg.clearance * scale
    pillars = cfg.pillars

    records = []
    for i, (mx, mz), length, yaw in _segments(element, projector, bbox,
                                              Category.BRIDGE, diagnostics):
        group = new_group()
        add_to_group(group, *make_segment_box(length, height, width, y0=clearance))
        if pillars.enabled and clearance > 0:
            r_bot = pillars.radius * scale
            for px in pillar_offsets(length, pillars.spacing * scale):
                add_to_group(group, *make_tapered_prism(
                    px, 0.0, 0.0, clearance, r_bot, r_bot * 0.75, nsides=8))
        verts, faces = group_arrays(group)
        records.append(MeshRecord.create(
            f"bridge-{element.id}-{i}", Category.BRIDGE, verts, faces,
            position=(mx, float(baseline), mz), rotation=(0.0, yaw, 0.0),
            color=cfg.color))
    logger.debug(f"Bridge {element.id}: {len(records)} segments")
    return records
