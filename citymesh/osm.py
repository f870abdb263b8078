"""Overpass API JSON (``out geom``) → :class:`GeoElement` conversion."""

import json
import logging
from typing import Iterator

from .constants import NON_AREA_VALUES
from .models import GeoElement

logger = logging.getLogger(__name__)

# Relation members are emitted as separate areas with synthetic negative ids.
RELATION_ID_STRIDE = 1000


def _coords(geometry):
    """``(lat, lon)`` pairs from an Overpass geometry list, skipping nulls."""
    return [(g['lat'], g['lon']) for g in geometry or [] if g]


def _is_closed(coords) -> bool:
    return len(coords) >= 4 and coords[0] == coords[-1]


def _way_element(el):
    coords = _coords(el.get('geometry'))
    if not coords:
        return None
    tags = el.get('tags', {})
    area_tag = str(tags.get('area', '')).lower()
    if _is_closed(coords) and area_tag not in NON_AREA_VALUES:
        return GeoElement.area(el['id'], coords, tags)
    return GeoElement.line(el['id'], coords, tags)


def _relation_elements(el):
    tags = el.get('tags', {})
    if tags.get('type') not in ('multipolygon', None):
        return
    k = 0
    for member in el.get('members', []):
        if member.get('type') != 'way' or member.get('role', 'outer') not in ('outer', ''):
            continue
        coords = _coords(member.get('geometry'))
        if not _is_closed(coords):
            continue
        yield GeoElement.area(-(el['id'] * RELATION_ID_STRIDE + k), coords, tags)
        k += 1


def elements_from_overpass(data) -> Iterator[GeoElement]:
    """Yield elements from a decoded Overpass response.

    Closed ways become areas unless tagged ``area=no``, open ways become
    lines, tagged nodes become points.  Relations contribute their closed
    outer rings; relations without member geometry are dropped.
    """
    counts = {'node': 0, 'way': 0, 'relation': 0, 'dropped': 0}
    for el in data.get('elements', []):
        kind = el.get('type')
        if kind == 'node':
            if not el.get('tags') or 'lat' not in el:
                counts['dropped'] += 1
                continue
            counts['node'] += 1
            yield GeoElement.point(el['id'], el['lat'], el['lon'], el['tags'])
        elif kind == 'way':
            element = _way_element(el)
            if element is None:
                counts['dropped'] += 1
                continue
            counts['way'] += 1
            yield element
        elif kind == 'relation':
            parts = list(_relation_elements(el))
            if not parts:
                counts['dropped'] += 1
                continue
            counts['relation'] += 1
            yield from parts
        else:
            counts['dropped'] += 1
    logger.info(f"Overpass: {counts['node']} nodes, {counts['way']} ways, "
                f"{counts['relation']} relations, {counts['dropped']} dropped")


def load_overpass(path) -> list[GeoElement]:
    """Read an Overpass JSON file from disk."""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return list(elements_from_overpass(data))
