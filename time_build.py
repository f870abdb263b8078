"""Time each phase of a synthetic citymesh build."""

import math
import random
import sys
import time

from citymesh.builder import ModelGenerator
from citymesh.config import configure_logging
from citymesh.export import MeshExporter
from citymesh.models import BoundingBox, GeoElement


def synthetic_elements(bbox: BoundingBox, n_buildings: int, n_roads: int, seed: int = 0):
    """A grid-free scatter of square buildings and straight roads inside *bbox*."""
    rng = random.Random(seed)
    d = 0.0001  # ~11 m
    for i in range(n_buildings):
        lat = rng.uniform(bbox.south + d, bbox.north - d)
        lon = rng.uniform(bbox.west + d, bbox.east - d)
        ring = [(lat, lon), (lat, lon + d), (lat + d, lon + d), (lat + d, lon)]
        yield GeoElement.area(i + 1, ring, {'building': 'yes',
                                            'building:levels': str(rng.randint(1, 12))})
    for j in range(n_roads):
        lat = rng.uniform(bbox.south, bbox.north)
        angle = rng.uniform(0, math.pi)
        pts = [(lat + k * 0.0005 * math.sin(angle), bbox.west + k * 0.0005 * math.cos(angle))
               for k in range(6)]
        yield GeoElement.line(100000 + j, pts, {'highway': 'residential'})


def timed_build(name: str, bbox: BoundingBox, n_buildings: int = 500, n_roads: int = 100):
    timings = {}

    t0 = time.perf_counter()
    result = ModelGenerator().generate(synthetic_elements(bbox, n_buildings, n_roads), bbox)
    timings["1. Generation"] = time.perf_counter() - t0

    exporter = MeshExporter()
    t0 = time.perf_counter()
    data_3mf = exporter.to_3mf(result.snapshot, name=name)
    timings["2. 3MF export"] = time.perf_counter() - t0

    t0 = time.perf_counter()
    data_stl = exporter.to_stl(result.snapshot, name=name, binary=True)
    timings["3. Binary STL export"] = time.perf_counter() - t0

    print("\n" + "=" * 60)
    print(f"BUILD COMPLETE: {name}  ({len(result.snapshot.records)} meshes, "
          f"{len(data_3mf) / 1e6:.1f} MB 3MF, {len(data_stl) / 1e6:.1f} MB STL)")
    print("=" * 60)
    total = 0
    for label, dur in timings.items():
        print(f"  {label}: {dur:.2f}s")
        total += dur
    print(f"  TOTAL: {total:.2f}s")
    print("=" * 60)


if __name__ == "__main__":
    configure_logging()
    n = int(sys.argv[1]) if len(sys.argv) > 1 else 500

    # Central Denver, about 1 km across
    bbox = BoundingBox(
        north=39.745,
        south=39.736,
        east=-104.985,
        west=-104.997,
    )
    timed_build("denver", bbox, n_buildings=n)
