"""Geometry checks run before a mesh enters the registry and before export."""

import logging

import numpy as np

logger = logging.getLogger(__name__)


def validate(record) -> bool:
    """Return True when *record* has a usable, finite position buffer.

    Rejected: no position data, a flat length that is not a multiple of
    three, or any NaN/Infinite coordinate.
    """
    verts = getattr(record, 'vertices', None)
    if verts is None:
        return False
    arr = np.asarray(verts)
    if arr.size == 0 or arr.size % 3 != 0:
        return False
    if not np.issubdtype(arr.dtype, np.number):
        return False
    return bool(np.isfinite(arr).all())


def valid_triangles(vertices: np.ndarray, faces: np.ndarray) -> np.ndarray:
    """Keep only triangles with in-range, distinct indices and finite corners.

    *vertices* is ``(N, 3)`` and *faces* ``(M, 3)``; returns the kept faces.
    """
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    if len(faces) == 0:
        return faces
    n = len(vertices)
    keep = ((faces >= 0) & (faces < n)).all(axis=1)
    keep &= (faces[:, 0] != faces[:, 1]) & (faces[:, 1] != faces[:, 2]) & \
            (faces[:, 0] != faces[:, 2])
    if n:
        finite = np.isfinite(vertices).all(axis=1)
        safe = np.where(keep[:, None], faces, 0)
        keep &= finite[safe].all(axis=1)
    dropped = int((~keep).sum())
    if dropped:
        logger.debug(f"Dropped {dropped} invalid triangles")
    return faces[keep]


class GeometryValidator:
    """Callable wrapper so the validator can be swapped or counted in tests."""

    def __init__(self):
        self.rejected = 0

    def validate(self, record) -> bool:
        ok = validate(record)
        if not ok:
            self.rejected += 1
            logger.warning(f"Rejected invalid geometry for {getattr(record, 'id', record)!r}")
        return ok

    __call__ = validate
