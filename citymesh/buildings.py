"""Building extrusion with roofs and per-variant facade decorations."""

import re
import logging

import numpy as np

from .classify import building_variant
from .constants import FLOOR_HEIGHT_M, DEFAULT_LEVELS
from .geometry import (
    ROOF_TYPE_SHAPES, add_to_group, extrude_watertight, footprint_polygon,
    generate_balconies, generate_chimney, generate_glazing_panel,
    generate_roof_mesh, generate_spire, generate_window_quads, group_arrays,
    new_group, shoelace_area,
)
from .models import Category, GeometryError, MeshRecord, add_diagnostic
from .spatial import filter_points

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r'^\s*(-?\d+(?:\.\d+)?)')


def parse_number(value):
    """Leading number of a tag value (``"15 m"`` → 15.0), or None."""
    if value is None:
        return None
    m = _NUMBER_RE.match(str(value))
    if not m:
        return None
    return float(m.group(1))


def building_height_m(tags, cfg) -> float:
    """Height in metres from tags, clamped to ``cfg.max_height``.

    An explicit ``height`` tag wins; otherwise the level count (``levels``,
    then ``building:levels``, default 3) times the floor height, never below
    the configured base and minimum heights.
    """
    height = parse_number(tags.get('height'))
    if height is None or height <= 0:
        levels = parse_number(tags.get('levels'))
        if levels is None:
            levels = parse_number(tags.get('building:levels'))
        if levels is None or levels <= 0:
            levels = DEFAULT_LEVELS
        height = max(cfg.base_height, levels * FLOOR_HEIGHT_M, cfg.min_height)
    return min(height, cfg.max_height)


def footprint_area_m2(points, projector) -> float:
    """Shoelace area on raw lat/lon, converted to square metres."""
    deg2 = shoelace_area([(p.lon, p.lat) for p in points])
    return deg2 * projector.meters_per_degree_lat * projector.meters_per_degree_lon


def roof_shape(tags, roof_cfg):
    """Roof shape to generate, or None for a flat top."""
    tagged = tags.get('roof:shape')
    if tagged:
        tagged = str(tagged).lower()
        return None if tagged == 'flat' else tagged
    if not roof_cfg.enabled:
        return None
    return ROOF_TYPE_SHAPES.get(roof_cfg.type)


def _decorate(group, variant, polygon, height, scale, cfg):
    floor_h = FLOOR_HEIGHT_M * scale
    if variant == 'residential':
        v, f = generate_balconies(polygon, height, 0.0, floor_h,
                                  depth=1.0 * scale, slab=0.15 * scale,
                                  width=2.5 * scale)
    elif variant == 'commercial':
        v, f = generate_glazing_panel(polygon, height, 0.0,
                                      margin=0.5 * scale, offset=0.05 * scale)
    elif variant == 'industrial':
        v, f = generate_chimney(polygon, height, height * 0.3, 1.0 * scale)
    elif variant == 'religious':
        v, f = generate_spire(polygon, height, height * 0.5)
    elif variant == 'educational':
        v, f = generate_window_quads(polygon, height, 0.0, floor_h,
                                     win_w=1.2 * scale, win_h=1.4 * scale,
                                     spacing=cfg.window.spacing * scale,
                                     margin=1.0 * scale, offset=0.05 * scale)
    else:
        return
    add_to_group(group, v, f)


def build_building(element, config, projector, baseline, bbox=None, diagnostics=None):
    """Extruded building standing exactly on *baseline*, or None when skipped."""
    cfg = config.buildings
    points = filter_points(element.points, bbox) if bbox is not None else list(element.points)
    if len(points) < 3:
        add_diagnostic(diagnostics, element.id, Category.BUILDING,
                       f"needs 3 points inside the bounds, has {len(points)}")
        return None

    area = footprint_area_m2(points, projector)
    if area < cfg.ignore_smaller:
        logger.debug(f"Building {element.id}: area {area:.1f} m² below "
                     f"{cfg.ignore_smaller}, ignored")
        return None

    scale = projector.scale
    height = building_height_m(element.tags, cfg) * scale
    xz = projector.project_many(points)
    origin = xz.mean(axis=0)

    try:
        polygon = footprint_polygon(xz - origin)
        walls_v, walls_f = extrude_watertight(polygon, height)
    except (GeometryError, ValueError) as e:
        add_diagnostic(diagnostics, element.id, Category.BUILDING, f"bad footprint: {e}")
        return None

    group = new_group()
    add_to_group(group, walls_v, walls_f)

    shape = roof_shape(element.tags, cfg.roof)
    if shape:
        roof_v, roof_f = generate_roof_mesh(polygon, shape,
                                            height * cfg.roof.height_ratio, height)
        add_to_group(group, roof_v, roof_f)

    variant = building_variant(element.tags)
    if cfg.decorations:
        try:
            _decorate(group, variant, polygon, height, scale, cfg)
        except (GeometryError, ValueError) as e:
            logger.debug(f"Building {element.id}: {variant} decoration skipped: {e}")

    educational_windows = cfg.decorations and variant == 'educational'
    if cfg.window.enabled and cfg.detail_level != 'low' and not educational_windows:
        v, f = generate_window_quads(polygon, height, 0.0, FLOOR_HEIGHT_M * scale,
                                     win_w=1.2 * scale, win_h=1.4 * scale,
                                     spacing=cfg.window.spacing * scale,
                                     margin=1.0 * scale, offset=0.05 * scale)
        add_to_group(group, v, f)

    verts, faces = group_arrays(group)
    if not np.isfinite(verts).all():
        add_diagnostic(diagnostics, element.id, Category.BUILDING, "non-finite vertices")
        return None

    logger.debug(f"Building {element.id}: h={height:.2f} area={area:.0f} m² "
                 f"roof={shape or 'flat'} {len(faces)} tris")
    return MeshRecord.create(f"building-{element.id}", Category.BUILDING, verts, faces,
                             position=(origin[0], float(baseline), origin[1]),
                             color=cfg.color)
