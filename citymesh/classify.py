"""Tag → category classification.

Classification is a pure function of the tag map.  Rules are checked in
the order of ``CLASSIFICATION_RULES``; the first match wins, so an element
tagged both ``building`` and ``highway`` is always a building.
"""

from typing import Callable, Mapping, Optional

from .models import Category

_FALSY = frozenset({'no', 'false', '0'})

WATER_LANDUSE = frozenset({'reservoir', 'basin'})
VEGETATION_LANDUSE = frozenset({'grass', 'forest', 'meadow'})
VEGETATION_NATURAL = frozenset({'wood', 'grassland', 'scrub'})
VEGETATION_LEISURE = frozenset({'park', 'garden'})

# Building sub-variants, checked against the ``building`` value and then
# ``amenity`` so that ``building=yes amenity=school`` still reads as a school.
BUILDING_VARIANTS = {
    'residential': frozenset({'house', 'residential', 'apartments', 'detached',
                              'semidetached_house', 'terrace', 'dormitory',
                              'bungalow'}),
    'commercial': frozenset({'commercial', 'retail', 'office', 'shop', 'store',
                             'mall', 'supermarket', 'hotel'}),
    'industrial': frozenset({'industrial', 'warehouse', 'factory',
                             'manufacturing', 'hangar'}),
    'religious': frozenset({'church', 'cathedral', 'chapel', 'mosque', 'temple',
                            'synagogue', 'shrine', 'religious'}),
    'educational': frozenset({'school', 'university', 'college', 'kindergarten',
                              'library'}),
}

ROAD_CLASSES = ('motorway', 'trunk', 'primary', 'secondary', 'residential', 'footway')


def _truthy(tags: Mapping[str, str], key: str) -> bool:
    value = tags.get(key)
    return value is not None and str(value).strip().lower() not in _FALSY


def _is_building(tags) -> bool:
    return _truthy(tags, 'building')


def _is_road(tags) -> bool:
    return _truthy(tags, 'highway')


def _is_bridge(tags) -> bool:
    return _truthy(tags, 'bridge') or tags.get('man_made') == 'bridge'


def _is_water(tags) -> bool:
    return (_truthy(tags, 'waterway') or tags.get('natural') == 'water' or
            tags.get('landuse') in WATER_LANDUSE)


def _is_vegetation(tags) -> bool:
    return (tags.get('landuse') in VEGETATION_LANDUSE or
            tags.get('natural') in VEGETATION_NATURAL or
            tags.get('leisure') in VEGETATION_LEISURE)


CLASSIFICATION_RULES: tuple[tuple[Category, Callable[[Mapping[str, str]], bool]], ...] = (
    (Category.BUILDING, _is_building),
    (Category.ROAD, _is_road),
    (Category.BRIDGE, _is_bridge),
    (Category.WATER, _is_water),
    (Category.VEGETATION, _is_vegetation),
)


def classify(tags: Optional[Mapping[str, str]]) -> Category:
    """Map a tag set to exactly one category (``UNCLASSIFIED`` by default)."""
    if not tags:
        return Category.UNCLASSIFIED
    for category, rule in CLASSIFICATION_RULES:
        if rule(tags):
            return category
    return Category.UNCLASSIFIED


def building_variant(tags: Mapping[str, str]) -> str:
    """Return the decoration variant for a building, ``'generic'`` if none fits."""
    for key in ('building', 'amenity'):
        value = str(tags.get(key, '')).lower()
        for variant, values in BUILDING_VARIANTS.items():
            if value in values:
                return variant
    return 'generic'


def road_class(tags: Mapping[str, str]) -> Optional[str]:
    """The ``highway`` value, with ``_link`` ramps folded into their parent class."""
    value = tags.get('highway')
    if not value:
        return None
    value = str(value).lower()
    if value.endswith('_link'):
        value = value[:-len('_link')]
    return value
