"""Shared fixtures: the Beijing test box, default config, and a projector on it."""

import pytest

from citymesh.config import ModelConfig
from citymesh.models import BoundingBox, GeoElement
from citymesh.projection import CoordinateProjector


@pytest.fixture
def bbox():
    return BoundingBox(north=39.91, south=39.90, east=116.40, west=116.39)


@pytest.fixture
def config():
    return ModelConfig()


@pytest.fixture
def projector(bbox):
    return CoordinateProjector.for_bbox(bbox, scale=1.0)


@pytest.fixture
def building(bbox):
    ring = [(39.9040, 116.3940), (39.9040, 116.3950),
            (39.9050, 116.3950), (39.9050, 116.3940)]
    return GeoElement.area(1, ring, {'building': 'yes', 'levels': '5'})


@pytest.fixture
def residential_road():
    pts = [(39.905, 116.391), (39.905, 116.395), (39.905, 116.399)]
    return GeoElement.line(2, pts, {'highway': 'residential'})


@pytest.fixture
def pond():
    ring = [(39.9020, 116.3920), (39.9020, 116.3930),
            (39.9030, 116.3930), (39.9030, 116.3920)]
    return GeoElement.area(3, ring, {'natural': 'water'})


@pytest.fixture
def park():
    ring = [(39.9060, 116.3960), (39.9060, 116.3970),
            (39.9070, 116.3970), (39.9070, 116.3960)]
    return GeoElement.area(4, ring, {'leisure': 'park'})
