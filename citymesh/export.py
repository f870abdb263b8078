"""MeshExporter: turns a registry snapshot into printable 3MF / STL bytes.

Export is a pure read over the records.  Each record is validated again,
moved into the world frame, optionally welded, converted to the Z-up
print frame, and then handed to the format encoder.  Records that end up
with no usable triangles are skipped with a diagnostic.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

import numpy as np

from .constants import MM_PER_UNIT, WELD_TOLERANCE, WELD_VERTEX_THRESHOLD
from .export_3mf import build_model_xml, package_3mf
from .models import Category, Diagnostic, add_diagnostic
from .stl import ascii_stl, binary_stl
from .validation import GeometryValidator, valid_triangles

logger = logging.getLogger(__name__)

PREPARE_SHARE = 0.9


@dataclass(frozen=True)
class ExportProgress:
    """One step of an export.  The final event (``stage == 'done'``) carries the bytes."""
    stage: str
    done: int
    total: int
    message: str = ''
    result: Optional[bytes] = None

    @property
    def fraction(self) -> float:
        """Overall progress in [0, 1]; preparing records covers the first 90%."""
        if self.stage == 'done':
            return 1.0
        if self.stage == 'prepare' and self.total:
            return PREPARE_SHARE * self.done / self.total
        return PREPARE_SHARE


@dataclass
class PreparedObject:
    """Merged, frame-converted buffers for one record, ready to encode."""
    id: str
    category: Category
    vertices: np.ndarray      # (N, 3) float64, print frame, output units
    faces: np.ndarray         # (M, 3) int64
    color: Optional[str] = None
    welded: int = 0

    @property
    def triangle_count(self) -> int:
        return len(self.faces)


def weld_vertices(vertices: np.ndarray, faces: np.ndarray,
                  tolerance: float = WELD_TOLERANCE):
    """Merge vertices that fall in the same *tolerance* grid cell.

    Returns ``(vertices, faces, merged_count)``; triangles collapsed by
    the merge are dropped.
    """
    if len(vertices) == 0:
        return vertices, faces, 0
    keys = np.round(vertices / tolerance).astype(np.int64)
    _, first, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    inverse = inverse.reshape(-1)
    welded = vertices[first]
    new_faces = inverse[faces]
    keep = ((new_faces[:, 0] != new_faces[:, 1]) &
            (new_faces[:, 1] != new_faces[:, 2]) &
            (new_faces[:, 0] != new_faces[:, 2]))
    return welded, new_faces[keep], len(vertices) - len(welded)


def to_print_frame(vertices: np.ndarray, unit_scale: float = 1.0) -> np.ndarray:
    """Y-up model frame → Z-up print frame, ``(x, y, z) → (x, -z, y)``.

    A proper rotation, so triangle winding is preserved.
    """
    out = np.empty_like(vertices, dtype=np.float64)
    out[:, 0] = vertices[:, 0]
    out[:, 1] = -vertices[:, 2]
    out[:, 2] = vertices[:, 1]
    if unit_scale != 1.0:
        out *= unit_scale
    return out


def _sequential_faces(n_vertices: int) -> np.ndarray:
    n = n_vertices - n_vertices % 3
    return np.arange(n, dtype=np.int64).reshape(-1, 3)


def _records_of(source):
    records = getattr(source, 'records', None)
    if records is not None:
        return list(records)
    return list(source)


class MeshExporter:
    """Encode mesh records as 3MF or STL.

    ``diagnostics`` holds the skipped-object notes from the most recent
    export.
    """

    def __init__(self, weld: bool = True, tolerance: float = WELD_TOLERANCE,
                 weld_threshold: int = WELD_VERTEX_THRESHOLD,
                 validator: Optional[GeometryValidator] = None):
        self.weld = weld
        self.tolerance = tolerance
        self.weld_threshold = weld_threshold
        self.validator = validator or GeometryValidator()
        self.diagnostics: list[Diagnostic] = []

    # ── preparation ───────────────────────────────────────────────────

    def prepare(self, record, unit_scale: float = 1.0) -> Optional[PreparedObject]:
        """World-space, welded, print-frame buffers for *record*, or None."""
        if not self.validator.validate(record):
            add_diagnostic(self.diagnostics, record.id, record.category,
                           "invalid geometry, omitted from export")
            return None

        try:
            verts = record.world_vertices()
            if record.faces is not None:
                faces = np.asarray(record.faces, dtype=np.int64).reshape(-1, 3)
            else:
                faces = _sequential_faces(len(verts))
            faces = valid_triangles(verts, faces)

            merged = 0
            if self.weld and len(verts) > self.weld_threshold and len(faces):
                verts, faces, merged = weld_vertices(verts, faces, self.tolerance)
                logger.info(f"Welded {record.id}: merged {merged} vertices "
                            f"(tolerance {self.tolerance})")
        except (ValueError, FloatingPointError) as e:
            add_diagnostic(self.diagnostics, record.id, record.category,
                           f"export failed: {e}")
            return None

        if len(faces) == 0:
            add_diagnostic(self.diagnostics, record.id, record.category,
                           "no valid triangles, omitted from export")
            return None

        return PreparedObject(id=record.id, category=record.category,
                              vertices=to_print_frame(verts, unit_scale),
                              faces=faces, color=record.color, welded=merged)

    def _prepare_all(self, records, unit_scale) -> Iterator:
        """Yield progress events while filling and finally returning the object list."""
        objects = []
        total = len(records)
        for i, record in enumerate(records):
            obj = self.prepare(record, unit_scale)
            if obj is not None:
                objects.append(obj)
            yield ExportProgress('prepare', i + 1, total, record.id)
        return objects

    # ── event streams ─────────────────────────────────────────────────

    def iter_3mf(self, source, name: str = 'citymesh',
                 unit_scale: float = MM_PER_UNIT) -> Iterator[ExportProgress]:
        """Lazily export *source* to 3MF, yielding :class:`ExportProgress` events."""
        t0 = time.perf_counter()
        self.diagnostics = []
        records = _records_of(source)
        objects = yield from self._prepare_all(records, unit_scale)
        yield ExportProgress('encode', 0, 1, f"Building 3MF for {len(objects)} objects")
        data = package_3mf(build_model_xml(objects, name=name))
        logger.info(f"3MF: {len(objects)}/{len(records)} objects, "
                    f"{sum(o.triangle_count for o in objects):,} triangles, "
                    f"{len(data) / 1024:.1f} KB, {time.perf_counter() - t0:.2f}s")
        yield ExportProgress('done', 1, 1, "3MF ready", result=data)

    def iter_stl(self, source, name: str = 'citymesh', binary: bool = False,
                 unit_scale: float = 1.0) -> Iterator[ExportProgress]:
        """Lazily export *source* to STL, yielding :class:`ExportProgress` events."""
        t0 = time.perf_counter()
        self.diagnostics = []
        records = _records_of(source)
        objects = yield from self._prepare_all(records, unit_scale)
        yield ExportProgress('encode', 0, 1, f"Writing STL for {len(objects)} objects")
        data = binary_stl(objects, name) if binary else ascii_stl(objects, name)
        logger.info(f"STL ({'binary' if binary else 'ascii'}): {len(objects)}/{len(records)} "
                    f"objects, {len(data) / 1024:.1f} KB, {time.perf_counter() - t0:.2f}s")
        yield ExportProgress('done', 1, 1, "STL ready", result=data)

    # ── callback convenience ──────────────────────────────────────────

    def to_3mf(self, source, name: str = 'citymesh', unit_scale: float = MM_PER_UNIT,
               progress: Optional[Callable[[ExportProgress], None]] = None) -> bytes:
        return run_export(self.iter_3mf(source, name=name, unit_scale=unit_scale), progress)

    def to_stl(self, source, name: str = 'citymesh', binary: bool = False,
               unit_scale: float = 1.0,
               progress: Optional[Callable[[ExportProgress], None]] = None) -> bytes:
        return run_export(self.iter_stl(source, name=name, binary=binary,
                                        unit_scale=unit_scale), progress)


def run_export(events: Iterator[ExportProgress],
               progress: Optional[Callable[[ExportProgress], None]] = None) -> bytes:
    """Drain an event stream, forwarding each event to *progress*; return the bytes."""
    result = None
    for event in events:
        if progress is not None:
            progress(event)
        if event.result is not None:
            result = event.result
    if result is None:
        raise RuntimeError("Export finished without producing output")
    return result
