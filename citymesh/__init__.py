"""citymesh package: terrain-anchored 3D print models from tagged map elements."""

from citymesh.builder import ModelGenerator, generate
from citymesh.config import ModelConfig, load_config
from citymesh.export import MeshExporter, ExportProgress
from citymesh.models import (
    BoundingBox, Category, GenerationError, GenerationResult, GeoElement,
    GeoPoint, GeometryKind, MeshRecord,
)
from citymesh.projection import CoordinateProjector
