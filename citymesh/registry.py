"""Mesh record storage for one generation pass."""

import logging
from collections import Counter
from types import MappingProxyType
from typing import Optional

from .models import Category, GenerationError, RegistrySnapshot
from .validation import GeometryValidator

logger = logging.getLogger(__name__)


class TerrainBaseline:
    """The Y of the terrain top, set once per pass by the terrain builder."""

    def __init__(self):
        self._value: Optional[float] = None

    def establish(self, value: float) -> float:
        if self._value is not None:
            raise GenerationError(
                f"Terrain baseline already established at {self._value}")
        self._value = float(value)
        logger.debug(f"Terrain baseline established at y={self._value}")
        return self._value

    @property
    def is_set(self) -> bool:
        return self._value is not None

    @property
    def value(self) -> float:
        if self._value is None:
            raise GenerationError("Terrain baseline read before the terrain was built")
        return self._value

    def __float__(self):
        return self.value

    def __repr__(self):
        return f"TerrainBaseline({self._value})"


class ModelRegistry:
    """Accumulates mesh records and per-category counters.

    Records are validated on insert and never modified afterwards.  Use
    :meth:`replace` to swap in the output of a new pass in one step.
    """

    def __init__(self, validator: Optional[GeometryValidator] = None):
        self.validator = validator or GeometryValidator()
        self._records = []
        self._ids = set()
        self._counts = Counter()
        self.baseline: Optional[float] = None

    def clear(self) -> None:
        """Dispose every record and reset the counters."""
        n = len(self._records)
        self._records = []
        self._ids = set()
        self._counts = Counter()
        self.baseline = None
        if n:
            logger.info(f"Cleared {n} mesh records")

    def add(self, record) -> bool:
        """Insert *record* if it validates; returns whether it was accepted."""
        if record.id in self._ids:
            logger.warning(f"Duplicate mesh id {record.id!r}, skipping")
            return False
        if not self.validator.validate(record):
            return False
        self._records.append(record)
        self._ids.add(record.id)
        self._counts[record.category] += 1
        return True

    def replace(self, records, baseline: Optional[float] = None) -> None:
        """Clear, then insert *records* (already validated by a staging registry)."""
        self.clear()
        for record in records:
            self._records.append(record)
            self._ids.add(record.id)
            self._counts[record.category] += 1
        self.baseline = baseline

    def __len__(self):
        return len(self._records)

    def __iter__(self):
        return iter(tuple(self._records))

    def count(self, category) -> int:
        return self._counts[Category(category)]

    @property
    def total_vertices(self) -> int:
        return sum(r.vertex_count for r in self._records)

    @property
    def total_triangles(self) -> int:
        return sum(r.triangle_count for r in self._records)

    def snapshot(self) -> RegistrySnapshot:
        counts = {c: self._counts[c] for c in Category if c is not Category.UNCLASSIFIED}
        return RegistrySnapshot(records=tuple(self._records),
                                counts=MappingProxyType(counts),
                                baseline=self.baseline)
