"""Selection-region tests for map elements.

All tests run on raw ``(lat, lon)`` and are inclusive on the bbox edges.
The segment test is a bounds-overlap approximation, not a true clip: a
diagonal edge whose bounds touch the box corner region is accepted even
when the line itself misses the box.
"""

import logging

from .models import GeometryKind

logger = logging.getLogger(__name__)


def element_bounds(points):
    """Return ``(south, north, west, east)`` of *points*, or None when empty."""
    if not points:
        return None
    lats = [p.lat for p in points]
    lons = [p.lon for p in points]
    return min(lats), max(lats), min(lons), max(lons)


def bounds_overlap(south, north, west, east, bbox) -> bool:
    return not (north < bbox.south or south > bbox.north or
                east < bbox.west or west > bbox.east)


def segment_overlaps_bbox(p1, p2, bbox) -> bool:
    """Coarse segment/rectangle test on the segment's own bounds."""
    return bounds_overlap(min(p1.lat, p2.lat), max(p1.lat, p2.lat),
                          min(p1.lon, p2.lon), max(p1.lon, p2.lon), bbox)


def point_in_polygon(lat: float, lon: float, ring) -> bool:
    """Ray-casting point-in-polygon on a ring of GeoPoints (unclosed)."""
    inside = False
    n = len(ring)
    j = n - 1
    for i in range(n):
        yi, xi = ring[i].lat, ring[i].lon
        yj, xj = ring[j].lat, ring[j].lon
        if (yi > lat) != (yj > lat):
            x_cross = (xj - xi) * (lat - yi) / (yj - yi) + xi
            if lon < x_cross:
                inside = not inside
        j = i
    return inside


def polygon_contains_bbox(ring, bbox) -> bool:
    return all(point_in_polygon(lat, lon, ring) for lat, lon in bbox.corners())


def _edges(points, closed):
    for i in range(len(points) - 1):
        yield points[i], points[i + 1]
    if closed and len(points) > 2:
        yield points[-1], points[0]


def intersects(element, bbox) -> bool:
    """Decide whether *element* touches the selection region *bbox*."""
    points = element.points
    bounds = element_bounds(points)
    if bounds is None:
        return False

    # Cheap reject on the element's own bounds.
    if not bounds_overlap(*bounds, bbox):
        return False

    if any(bbox.contains(p.lat, p.lon) for p in points):
        return True

    closed = element.kind is GeometryKind.AREA
    if len(points) >= 2:
        for p1, p2 in _edges(points, closed):
            if segment_overlaps_bbox(p1, p2, bbox):
                return True

    if closed and len(points) >= 3 and polygon_contains_bbox(points, bbox):
        return True

    return False


def filter_points(points, bbox) -> list:
    """Points that lie inside *bbox* (inclusive), original order kept."""
    return [p for p in points if bbox.contains(p.lat, p.lon)]


class SpatialFilter:
    """Bind a bbox so the filter can be passed around as one object."""

    def __init__(self, bbox):
        self.bbox = bbox

    def intersects(self, element) -> bool:
        return intersects(element, self.bbox)

    def filter_points(self, points) -> list:
        return filter_points(points, self.bbox)
