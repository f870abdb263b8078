"""Data classes shared across the generation pipeline."""

import enum
import logging
import math
import random
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

import numpy as np
import trimesh
from shapely.geometry import Polygon, box

logger = logging.getLogger(__name__)


class GenerationError(RuntimeError):
    """A pass-level precondition failed; no model set is published."""


class GeometryError(ValueError):
    """A single element has unusable geometry.  Never escapes a builder."""


class Category(str, enum.Enum):
    TERRAIN = 'terrain'
    BUILDING = 'building'
    ROAD = 'road'
    BRIDGE = 'bridge'
    WATER = 'water'
    VEGETATION = 'vegetation'
    UNCLASSIFIED = 'unclassified'


class GeometryKind(str, enum.Enum):
    POINT = 'point'
    LINE = 'line'
    AREA = 'area'


@dataclass
class BoundingBox:
    north: float
    south: float
    east: float
    west: float

    def validate(self) -> None:
        """Raise :class:`GenerationError` unless the box is finite and non-empty."""
        values = (self.north, self.south, self.east, self.west)
        if not all(math.isfinite(v) for v in values):
            raise GenerationError(f"Bounding box has non-finite bounds: {self}")
        if not (-90.0 <= self.south < self.north <= 90.0):
            raise GenerationError(
                f"Invalid bounding box: north ({self.north}) must exceed south ({self.south})")
        if not (self.west < self.east):
            raise GenerationError(
                f"Invalid bounding box: east ({self.east}) must exceed west ({self.west})")

    @property
    def center(self) -> tuple[float, float]:
        """Return ``(lat, lon)`` of the box center."""
        return (self.north + self.south) / 2, (self.east + self.west) / 2

    def contains(self, lat: float, lon: float) -> bool:
        """Inclusive point test."""
        return (self.south <= lat <= self.north and
                self.west <= lon <= self.east)

    def corners(self) -> list[tuple[float, float]]:
        """The four corners as ``(lat, lon)``, counter-clockwise from south-west."""
        return [(self.south, self.west), (self.south, self.east),
                (self.north, self.east), (self.north, self.west)]

    def to_polygon(self) -> Polygon:
        """Convert bounding box to shapely polygon (lon/lat order)."""
        return box(self.west, self.south, self.east, self.north)


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float


@dataclass(frozen=True)
class GeoElement:
    """One tagged map element as delivered by the geodata source."""
    id: int
    kind: GeometryKind
    points: tuple[GeoPoint, ...]
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'points', tuple(self.points))
        object.__setattr__(self, 'tags', MappingProxyType(dict(self.tags)))

    @classmethod
    def area(cls, id: int, coords, tags=None) -> 'GeoElement':
        """Closed area from ``(lat, lon)`` pairs; the closing point is optional."""
        pts = [GeoPoint(lat, lon) for lat, lon in coords]
        if len(pts) > 1 and pts[0] == pts[-1]:
            pts = pts[:-1]
        return cls(id, GeometryKind.AREA, tuple(pts), tags or {})

    @classmethod
    def line(cls, id: int, coords, tags=None) -> 'GeoElement':
        pts = tuple(GeoPoint(lat, lon) for lat, lon in coords)
        return cls(id, GeometryKind.LINE, pts, tags or {})

    @classmethod
    def point(cls, id: int, lat: float, lon: float, tags=None) -> 'GeoElement':
        return cls(id, GeometryKind.POINT, (GeoPoint(lat, lon),), tags or {})

    @property
    def is_closed(self) -> bool:
        return self.kind is GeometryKind.AREA


@dataclass(frozen=True)
class MeshRecord:
    """A generated mesh in its local frame plus the transform into the world.

    ``vertices`` is an ``(N, 3)`` float32 array, ``faces`` an optional
    ``(M, 3)`` uint32 array; when ``faces`` is None every three consecutive
    vertices form a triangle.  ``rotation`` is XYZ Euler angles in radians.
    The world frame is Y-up: x east, y up, z south.
    """
    id: str
    category: Category
    vertices: np.ndarray
    faces: Optional[np.ndarray] = None
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: tuple[float, float, float] = (0.0, 0.0, 0.0)
    color: Optional[str] = None

    @classmethod
    def create(cls, id, category, vertices, faces=None, position=(0.0, 0.0, 0.0),
               rotation=(0.0, 0.0, 0.0), color=None) -> 'MeshRecord':
        """Build a record, copying buffers into read-only float32/uint32 arrays."""
        verts = np.array(vertices, dtype=np.float32)
        verts.setflags(write=False)
        tri = None
        if faces is not None:
            tri = np.array(faces, dtype=np.uint32)
            tri.setflags(write=False)
        return cls(id=id, category=Category(category), vertices=verts, faces=tri,
                   position=tuple(float(p) for p in position),
                   rotation=tuple(float(r) for r in rotation),
                   color=color)

    def transform_matrix(self) -> np.ndarray:
        """4×4 local→world matrix (rotation then translation)."""
        matrix = trimesh.transformations.euler_matrix(*self.rotation, axes='sxyz')
        matrix[:3, 3] = self.position
        return matrix

    def world_vertices(self) -> np.ndarray:
        """Vertices in the shared world frame as float64 ``(N, 3)``."""
        verts = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3)
        if not any(self.rotation):
            return verts + np.asarray(self.position, dtype=np.float64)
        return trimesh.transformations.transform_points(verts, self.transform_matrix())

    @property
    def vertex_count(self) -> int:
        return int(np.asarray(self.vertices).size // 3)

    @property
    def triangle_count(self) -> int:
        if self.faces is not None:
            return int(len(self.faces))
        return self.vertex_count // 3


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal issue recorded during generation or export."""
    element_id: object
    category: Optional[Category]
    message: str


@dataclass(frozen=True)
class RegistrySnapshot:
    """Immutable view of a :class:`~citymesh.registry.ModelRegistry`."""
    records: tuple[MeshRecord, ...]
    counts: Mapping[Category, int]
    baseline: Optional[float] = None

    @property
    def total_vertices(self) -> int:
        return sum(r.vertex_count for r in self.records)

    @property
    def total_triangles(self) -> int:
        return sum(r.triangle_count for r in self.records)

    def by_category(self, category: Category) -> list[MeshRecord]:
        return [r for r in self.records if r.category is Category(category)]


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of one generation pass."""
    snapshot: RegistrySnapshot
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def warning_count(self) -> int:
        return len(self.diagnostics)


def add_diagnostic(diagnostics, element_id, category, message: str) -> None:
    """Log a skipped element and append it to *diagnostics* when given."""
    logger.warning(f"{category.value if category else 'element'} {element_id}: {message}")
    if diagnostics is not None:
        diagnostics.append(Diagnostic(element_id, category, message))


def element_rng(seed: int, element_id: int) -> random.Random:
    """Per-element RNG so output does not depend on iteration order."""
    return random.Random(seed * 1_000_003 + int(element_id))
