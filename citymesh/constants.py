"""Physical constants, display colors, and export tolerances."""

# ── Geodesy ────────────────────────────────────────────────────────────
# Equirectangular approximation: one degree of latitude is treated as a
# constant distance everywhere.  Good enough at city-district scale.
METERS_PER_DEGREE_LAT = 111320.0
EARTH_RADIUS_M = 6371000.0

# ── Generation ─────────────────────────────────────────────────────────
FLOOR_HEIGHT_M = 3.0            # metres per building level
DEFAULT_LEVELS = 3
BRIDGE_CLEARANCE_M = 2.0        # deck underside above the terrain top
MIN_SEGMENT_LENGTH = 0.1        # generation units; shorter segments are skipped
ROUNDED_TERRAIN_ASPECT_TOL = 0.1
ROUNDED_TERRAIN_RADIUS_FRAC = 0.05

# Tag values that turn a closed way into a non-area (see osm.py).
NON_AREA_VALUES = frozenset({'no', 'false', '0'})

# ── Export ─────────────────────────────────────────────────────────────
MM_PER_UNIT = 1000.0            # generation units → millimetres (3MF)
WELD_TOLERANCE = 0.001          # ≈1 mm at 1 unit = 1 m
WELD_VERTEX_THRESHOLD = 5000    # only weld records larger than this
XML_VERTEX_BATCH = 1000         # vertices serialised per batch

# 3MF display colors per category (sRGB hex, alpha appended at export).
CATEGORY_COLORS = {
    'terrain':    '#68D391',
    'building':   '#8B4513',
    'road':       '#696969',
    'bridge':     '#718096',
    'water':      '#4169E1',
    'vegetation': '#228B22',
}
DEFAULT_COLOR = '#808080'
