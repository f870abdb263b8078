"""Geographic → local planar coordinates.

The projection is a local equirectangular (flat-earth) approximation
around a fixed center point.  It is only valid for small areas, from a
city block to a city district; distortion grows with distance from the
center and is not corrected.
"""

import math
import logging

import numpy as np

from .constants import METERS_PER_DEGREE_LAT, EARTH_RADIUS_M
from .models import GenerationError

logger = logging.getLogger(__name__)


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two WGS84 points."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (math.sin(d_lat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(d_lon / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class CoordinateProjector:
    """Project ``(lat, lon)`` to local ``(x, z)`` around a fixed center.

    x grows east, z grows south (``z = -(lat - center_lat) * ...``) so that
    north points along -Z in the Y-up model frame.  Center and scale are
    read-only after construction: changing them mid-pass would silently
    shift every element built afterwards.
    """

    __slots__ = ('_center_lat', '_center_lon', '_scale', '_m_per_deg_lon')

    def __init__(self, center_lat: float, center_lon: float, scale: float = 1.0):
        if center_lat is None or center_lon is None:
            raise GenerationError("Projector center point is not set")
        if not (math.isfinite(center_lat) and math.isfinite(center_lon)):
            raise GenerationError(
                f"Projector center is not finite: ({center_lat}, {center_lon})")
        if not (-90.0 < center_lat < 90.0):
            raise GenerationError(f"Projector center latitude out of range: {center_lat}")
        if not (math.isfinite(scale) and scale > 0):
            raise GenerationError(f"Projector scale must be positive, got {scale}")
        self._center_lat = float(center_lat)
        self._center_lon = float(center_lon)
        self._scale = float(scale)
        self._m_per_deg_lon = METERS_PER_DEGREE_LAT * math.cos(math.radians(center_lat))

    @classmethod
    def for_bbox(cls, bbox, scale: float = 1.0, center=None) -> 'CoordinateProjector':
        """Projector centred on *center* ``(lon, lat)``, or on the bbox center."""
        if center is not None:
            lon, lat = center
        else:
            lat, lon = bbox.center
        logger.debug(f"Projector center=({lat:.6f}, {lon:.6f}) scale={scale}")
        return cls(lat, lon, scale)

    @property
    def center(self) -> tuple[float, float]:
        return self._center_lat, self._center_lon

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def meters_per_degree_lat(self) -> float:
        return METERS_PER_DEGREE_LAT

    @property
    def meters_per_degree_lon(self) -> float:
        return self._m_per_deg_lon

    def project(self, lat: float, lon: float) -> tuple[float, float]:
        x = (lon - self._center_lon) * self._m_per_deg_lon * self._scale
        z = -(lat - self._center_lat) * METERS_PER_DEGREE_LAT * self._scale
        return x, z

    def project_many(self, points) -> np.ndarray:
        """Project a sequence of GeoPoints (or ``(lat, lon)`` pairs) to ``(N, 2)``."""
        if len(points) == 0:
            return np.zeros((0, 2), dtype=np.float64)
        if hasattr(points[0], 'lat'):
            arr = np.array([(p.lat, p.lon) for p in points], dtype=np.float64)
        else:
            arr = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        out = np.empty_like(arr)
        out[:, 0] = (arr[:, 1] - self._center_lon) * self._m_per_deg_lon * self._scale
        out[:, 1] = -(arr[:, 0] - self._center_lat) * METERS_PER_DEGREE_LAT * self._scale
        return out

    def unproject(self, x: float, z: float) -> tuple[float, float]:
        """Inverse of :meth:`project`, returning ``(lat, lon)``."""
        lat = self._center_lat - z / (METERS_PER_DEGREE_LAT * self._scale)
        lon = self._center_lon + x / (self._m_per_deg_lon * self._scale)
        return lat, lon

    def __repr__(self):
        return (f"CoordinateProjector(center=({self._center_lat:.6f}, "
                f"{self._center_lon:.6f}), scale={self._scale})")
