"""Mesh primitives, watertight extrusion, and roof / facade geometry.

Every helper returns ``(verts, faces)`` in the Y-up model frame
``[x east, y up, z south]`` with outward-facing (counter-clockwise seen
from outside) triangle winding.  Plan-view coordinates are ``(x, z)``.
"""

import math
import logging

import numpy as np
import trimesh
from shapely.geometry import Polygon
from shapely.geometry.polygon import orient

from .models import GeometryError

logger = logging.getLogger(__name__)

# ── Supported roof shapes ────────────────────────────────────────────────
ROOF_SHAPES_SUPPORTED = frozenset({
    'pyramidal', 'gabled', 'hipped', 'dome', 'round', 'onion',
})
ROOF_TYPE_SHAPES = {'pitched': 'gabled', 'dome': 'dome', 'flat': None}


# ── Mesh groups ──────────────────────────────────────────────────────────

def new_group():
    """Empty vertex/face accumulator."""
    return {'verts': [], 'faces': [], 'offset': 0}


def add_to_group(group, verts, faces):
    """Append geometry into a mesh *group* dict, re-indexing the faces."""
    if len(verts) == 0:
        return
    off = group['offset']
    group['verts'].extend([list(map(float, v)) for v in verts])
    for f in faces:
        group['faces'].append([int(f[0]) + off, int(f[1]) + off, int(f[2]) + off])
    group['offset'] += len(verts)


def group_arrays(group):
    """Return a group's buffers as ``(float64 (N,3), int64 (M,3))`` arrays."""
    verts = np.array(group['verts'], dtype=np.float64).reshape(-1, 3)
    faces = np.array(group['faces'], dtype=np.int64).reshape(-1, 3)
    return verts, faces


# ── Planar helpers ───────────────────────────────────────────────────────

def shoelace_area(coords) -> float:
    """Unsigned planar area of a ring of ``(a, b)`` pairs (closing point optional)."""
    n = len(coords)
    if n < 3:
        return 0.0
    total = 0.0
    for i in range(n):
        a0, b0 = coords[i]
        a1, b1 = coords[(i + 1) % n]
        total += a0 * b1 - a1 * b0
    return abs(total) / 2.0


def footprint_polygon(xz, min_area: float = 1e-6) -> Polygon:
    """Build a valid, counter-clockwise shapely polygon from plan coordinates.

    Self-intersecting rings are repaired with a zero buffer; when that
    leaves several pieces the largest is kept.  Raises GeometryError when
    nothing usable remains.
    """
    if len(xz) < 3:
        raise GeometryError(f"Polygon needs at least 3 points, got {len(xz)}")
    poly = Polygon([(float(x), float(z)) for x, z in xz])
    if not poly.is_valid:
        poly = poly.buffer(0)
        if poly.geom_type == 'MultiPolygon':
            poly = max(poly.geoms, key=lambda p: p.area)
    if poly.is_empty or poly.geom_type != 'Polygon' or poly.area < min_area:
        raise GeometryError("Polygon is empty or degenerate")
    return orient(poly, sign=1.0)


# ── Watertight extrusion ─────────────────────────────────────────────────

def extrude_watertight(polygon: Polygon, height: float, base_y: float = 0.0):
    """Extrude a plan polygon into a closed solid spanning ``base_y..base_y+height``.

    Uses ``trimesh.creation.extrude_polygon`` for constrained
    triangulation (concave outlines and holes), then swaps the extrusion
    axis into Y and reverses the winding to compensate for the
    handedness flip.
    """
    if height <= 0:
        raise GeometryError(f"Extrusion height must be positive, got {height}")
    mesh = trimesh.creation.extrude_polygon(polygon, height=height)
    v = mesh.vertices
    verts = np.column_stack([v[:, 0], v[:, 2] + base_y, v[:, 1]])
    faces = np.asarray(mesh.faces)[:, ::-1]
    return verts, faces


def triangulate_flat(polygon: Polygon, y: float = 0.0):
    """Triangulate a plan polygon into a single-sided sheet at height *y*, facing +Y."""
    verts_2d, faces = trimesh.creation.triangulate_polygon(polygon)
    verts_2d = np.asarray(verts_2d, dtype=np.float64)
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    verts = np.column_stack([verts_2d[:, 0], np.full(len(verts_2d), y), verts_2d[:, 1]])
    return verts, _face_up(verts, faces)


def _face_up(verts, faces):
    """Flip any horizontal triangle whose normal points down."""
    if len(faces) == 0:
        return faces
    a = verts[faces[:, 0]]
    e1 = verts[faces[:, 1]] - a
    e2 = verts[faces[:, 2]] - a
    ny = e1[:, 2] * e2[:, 0] - e1[:, 0] * e2[:, 2]
    faces = faces.copy()
    down = ny < 0
    faces[down] = faces[down][:, ::-1]
    return faces


# ── Solid primitives ─────────────────────────────────────────────────────

_BOX_FACES = [
    [0, 2, 1], [0, 3, 2],   # -z
    [4, 5, 6], [4, 6, 7],   # +z
    [0, 1, 5], [0, 5, 4],   # -y
    [3, 7, 6], [3, 6, 2],   # +y
    [0, 4, 7], [0, 7, 3],   # -x
    [1, 2, 6], [1, 6, 5],   # +x
]


def make_box(x0, x1, y0, y1, z0, z1):
    """Axis-aligned box from explicit extents (8 verts, 12 tris)."""
    verts = [
        [x0, y0, z0], [x1, y0, z0], [x1, y1, z0], [x0, y1, z0],
        [x0, y0, z1], [x1, y0, z1], [x1, y1, z1], [x0, y1, z1],
    ]
    return verts, [list(f) for f in _BOX_FACES]


def make_segment_box(length, height, width, y0=0.0):
    """Box centred on the origin in plan, running along +X, base at *y0*."""
    hl, hw = length / 2.0, width / 2.0
    return make_box(-hl, hl, y0, y0 + height, -hw, hw)


def make_tapered_prism(cx, cz, y_bot, y_top, r_bot, r_top,
                       nsides=8, rotation=0.0):
    """Create a tapered prism (frustum) with *nsides* sides.

    *rotation* offsets the starting angle in radians (use pi/4 to align
    a square prism's flat faces with the axes).
    """
    verts = []
    faces = []

    # Bottom ring then top ring: 2*nsides vertices
    for ring_y, r in ((y_bot, r_bot), (y_top, r_top)):
        for i in range(nsides):
            angle = 2.0 * math.pi * i / nsides + rotation
            verts.append([cx + r * math.cos(angle), ring_y, cz + r * math.sin(angle)])

    for i in range(nsides):
        j = (i + 1) % nsides
        b0, b1 = i, j
        t0, t1 = nsides + i, nsides + j
        faces.append([b0, t1, b1])
        faces.append([b0, t0, t1])

    cbot = len(verts)
    verts.append([cx, y_bot, cz])
    ctop = len(verts)
    verts.append([cx, y_top, cz])
    for i in range(nsides):
        j = (i + 1) % nsides
        faces.append([cbot, i, j])
        faces.append([ctop, nsides + j, nsides + i])

    return verts, faces


def make_cone(cx, cz, y_bot, y_top, radius, nsides=8):
    """Closed cone: base ring, apex, and a bottom cap."""
    verts = []
    for i in range(nsides):
        angle = 2.0 * math.pi * i / nsides
        verts.append([cx + radius * math.cos(angle), y_bot, cz + radius * math.sin(angle)])
    apex = len(verts)
    verts.append([cx, y_top, cz])
    center = len(verts)
    verts.append([cx, y_bot, cz])
    faces = []
    for i in range(nsides):
        j = (i + 1) % nsides
        faces.append([i, apex, j])
        faces.append([center, i, j])
    return verts, faces


def make_ellipsoid(cx, cy, cz, rx, ry, rz, count=(8, 6)):
    """UV ellipsoid centred on ``(cx, cy, cz)``."""
    sphere = trimesh.creation.uv_sphere(radius=1.0, count=list(count))
    verts = np.asarray(sphere.vertices) * np.array([rx, ry, rz]) + np.array([cx, cy, cz])
    return verts.tolist(), np.asarray(sphere.faces).tolist()


def make_ring(cx, cz, y, r_inner, r_outer, nsides=16):
    """Flat annulus at height *y*, facing +Y."""
    verts = []
    for i in range(nsides):
        angle = 2.0 * math.pi * i / nsides
        c, s = math.cos(angle), math.sin(angle)
        verts.append([cx + r_outer * c, y, cz + r_outer * s])
        verts.append([cx + r_inner * c, y, cz + r_inner * s])
    faces = []
    for k in range(nsides):
        o0, i0 = 2 * k, 2 * k + 1
        o1, i1 = 2 * ((k + 1) % nsides), 2 * ((k + 1) % nsides) + 1
        faces.append([o0, i0, o1])
        faces.append([o1, i0, i1])
    return verts, faces


# ── Facade decorations ───────────────────────────────────────────────────

def _walls(polygon: Polygon, min_length: float):
    """Yield ``(x0, z0, dirx, dirz, nx, nz, length)`` per exterior wall."""
    coords = list(orient(polygon, sign=1.0).exterior.coords[:-1])
    n = len(coords)
    for i in range(n):
        x0, z0 = coords[i]
        x1, z1 = coords[(i + 1) % n]
        dx, dz = x1 - x0, z1 - z0
        seg_len = math.hypot(dx, dz)
        if seg_len < min_length:
            continue
        dirx, dirz = dx / seg_len, dz / seg_len
        yield x0, z0, dirx, dirz, dirz, -dirx, seg_len


def _wall_quad(verts, faces, cx, cz, dirx, dirz, y0, y1, half_w):
    """Append an outward-facing vertical quad centred on ``(cx, cz)``."""
    vi = len(verts)
    verts.append([cx - dirx * half_w, y0, cz - dirz * half_w])
    verts.append([cx + dirx * half_w, y0, cz + dirz * half_w])
    verts.append([cx + dirx * half_w, y1, cz + dirz * half_w])
    verts.append([cx - dirx * half_w, y1, cz - dirz * half_w])
    faces.append([vi, vi + 3, vi + 2])
    faces.append([vi, vi + 2, vi + 1])


def generate_window_quads(polygon: Polygon, wall_height: float, base_y: float,
                          floor_height: float, win_w: float = 1.2,
                          win_h: float = 1.4, spacing: float = 2.0,
                          margin: float = 1.0, offset: float = 0.05,
                          max_floors: int = 40):
    """One row of window quads per floor on every wall long enough to hold one.

    Quads float *offset* in front of the wall surface.
    """
    verts, faces = [], []
    n_floors = min(int(wall_height // floor_height), max_floors)
    if n_floors < 1 or floor_height < win_h:
        return verts, faces

    pitch = win_w + spacing
    for x0, z0, dirx, dirz, nx, nz, seg_len in _walls(polygon, win_w + 2 * margin):
        usable = seg_len - 2 * margin
        n_cols = max(1, int((usable + spacing) // pitch))
        start = (seg_len - (n_cols * pitch - spacing)) / 2.0 + win_w / 2.0
        for col in range(n_cols):
            t = start + col * pitch
            cx = x0 + dirx * t + nx * offset
            cz = z0 + dirz * t + nz * offset
            for floor in range(n_floors):
                cy = base_y + floor * floor_height + floor_height / 2.0
                _wall_quad(verts, faces, cx, cz, dirx, dirz,
                           cy - win_h / 2.0, cy + win_h / 2.0, win_w / 2.0)
    return verts, faces


def generate_glazing_panel(polygon: Polygon, wall_height: float, base_y: float,
                           margin: float = 0.5, offset: float = 0.05):
    """A single glass curtain panel across the longest wall."""
    walls = list(_walls(polygon, 2 * margin + 0.1))
    if not walls or wall_height <= 2 * margin:
        return [], []
    x0, z0, dirx, dirz, nx, nz, seg_len = max(walls, key=lambda w: w[-1])
    verts, faces = [], []
    cx = x0 + dirx * seg_len / 2.0 + nx * offset
    cz = z0 + dirz * seg_len / 2.0 + nz * offset
    _wall_quad(verts, faces, cx, cz, dirx, dirz,
               base_y + margin, base_y + wall_height - margin,
               seg_len / 2.0 - margin)
    return verts, faces


def generate_balconies(polygon: Polygon, wall_height: float, base_y: float,
                       floor_height: float, depth: float = 1.0,
                       slab: float = 0.15, width: float = 2.5):
    """Balcony slabs on the longest wall, one per floor above the ground floor."""
    walls = list(_walls(polygon, width + 1.0))
    n_floors = int(wall_height // floor_height)
    if not walls or n_floors < 2:
        return [], []
    x0, z0, dirx, dirz, nx, nz, seg_len = max(walls, key=lambda w: w[-1])
    mx = x0 + dirx * seg_len / 2.0
    mz = z0 + dirz * seg_len / 2.0
    group = new_group()
    for floor in range(1, n_floors):
        y = base_y + floor * floor_height
        # Slab corners in wall-aligned coordinates (along, out).
        corners = [(-width / 2, 0.0), (width / 2, 0.0),
                   (width / 2, depth), (-width / 2, depth)]
        ring = [(mx + dirx * a + nx * o, mz + dirz * a + nz * o) for a, o in corners]
        v, f = extrude_watertight(footprint_polygon(ring), slab, base_y=y)
        add_to_group(group, v.tolist(), f.tolist())
    return group['verts'], group['faces']


def generate_chimney(polygon: Polygon, roof_y: float, height: float, size: float):
    """Square chimney standing on the roof, offset toward the first vertex."""
    c = polygon.centroid
    vx, vz = polygon.exterior.coords[0]
    px = c.x + (vx - c.x) * 0.5
    pz = c.y + (vz - c.y) * 0.5
    if not polygon.contains(type(c)(px, pz)):
        px, pz = c.x, c.y
    return make_tapered_prism(px, pz, roof_y, roof_y + height,
                              size / math.sqrt(2), size / math.sqrt(2),
                              nsides=4, rotation=math.pi / 4)


def generate_spire(polygon: Polygon, roof_y: float, height: float):
    """Cone spire on the footprint centroid, base sized from the footprint."""
    c = polygon.centroid
    minx, miny, maxx, maxy = polygon.bounds
    radius = max(0.2, min(maxx - minx, maxy - miny) * 0.15)
    return make_cone(c.x, c.y, roof_y, roof_y + height, radius, nsides=8)


# ── Roof mesh generation ────────────────────────────────────────────────

def generate_roof_mesh(polygon: Polygon, roof_shape: str,
                       roof_height: float, eave_y: float):
    """Generate a roof on top of a footprint for non-flat roof shapes.

    Returns ``(verts, faces)``; empty lists for flat or unknown shapes.
    """
    shape = (roof_shape or '').lower().replace('-', '_').replace(' ', '_')
    if shape not in ROOF_SHAPES_SUPPORTED or roof_height <= 0:
        return [], []
    coords = list(polygon.exterior.coords[:-1])
    if len(coords) < 3:
        return [], []

    if shape == 'pyramidal':
        v, f = _roof_pyramidal(coords, roof_height, eave_y)
    elif shape == 'gabled':
        v, f = _roof_ridged(coords, polygon, roof_height, eave_y, hipped=False)
    elif shape == 'hipped':
        v, f = _roof_ridged(coords, polygon, roof_height, eave_y, hipped=True)
    else:
        v, f = _roof_dome(polygon, roof_height, eave_y)

    return v, _orient_roof_faces(np.array(v), f)


def _orient_roof_faces(va, faces):
    """Sloped faces must point upward; vertical gable ends point outward."""
    centroid_3d = va.mean(axis=0)
    fixed = []
    for face in faces:
        v0, v1, v2 = va[face[0]], va[face[1]], va[face[2]]
        normal = np.cross(v1 - v0, v2 - v0)
        nl = np.linalg.norm(normal)
        if nl < 1e-10:
            fixed.append(face)
            continue
        ny = normal[1] / nl
        if ny < -0.01:
            face = [face[0], face[2], face[1]]
        elif abs(ny) <= 0.01:
            fc = (v0 + v1 + v2) / 3
            if np.dot(normal, fc - centroid_3d) < 0:
                face = [face[0], face[2], face[1]]
        fixed.append(face)
    return fixed


def _roof_pyramidal(coords, roof_height, eave_y):
    """Pyramid: all edges slope to a single central apex, closed underneath."""
    n = len(coords)
    verts = [[c[0], eave_y, c[1]] for c in coords]
    cx = sum(c[0] for c in coords) / n
    cz = sum(c[1] for c in coords) / n
    verts.append([cx, eave_y + roof_height, cz])
    apex = n
    faces = [[i, (i + 1) % n, apex] for i in range(n)]
    return verts, faces


def _ridge_info(polygon):
    """Return ``(ridge_dir, ridge_normal, half_width, ridge_half_len)``
    from the minimum rotated rectangle of *polygon*."""
    mrr = polygon.minimum_rotated_rectangle
    mc = list(mrr.exterior.coords[:-1])
    e1 = np.array([mc[1][0] - mc[0][0], mc[1][1] - mc[0][1]])
    e2 = np.array([mc[2][0] - mc[1][0], mc[2][1] - mc[1][1]])
    l1, l2 = float(np.linalg.norm(e1)), float(np.linalg.norm(e2))
    if l1 >= l2:
        ridge_dir = e1 / l1 if l1 > 0 else np.array([1.0, 0.0])
        half_width, ridge_half_len = l2 / 2, l1 / 2
    else:
        ridge_dir = e2 / l2 if l2 > 0 else np.array([0.0, 1.0])
        half_width, ridge_half_len = l1 / 2, l2 / 2
    ridge_normal = np.array([-ridge_dir[1], ridge_dir[0]])
    return ridge_dir, ridge_normal, half_width, ridge_half_len


def _roof_ridged(coords, polygon, roof_height, eave_y, hipped=False):
    """Two sloped planes meeting at a ridge; hipped roofs inset the ridge ends."""
    n = len(coords)
    ridge_dir, ridge_normal, half_width, ridge_half_len = _ridge_info(polygon)
    cx, cz = polygon.centroid.x, polygon.centroid.y

    eff_half = ridge_half_len
    if hipped:
        inset = min(half_width, ridge_half_len * 0.4)
        eff_half = max(0.1, ridge_half_len - inset)
    r0 = [cx - ridge_dir[0] * eff_half, cz - ridge_dir[1] * eff_half]
    r1 = [cx + ridge_dir[0] * eff_half, cz + ridge_dir[1] * eff_half]

    verts = [[c[0], eave_y, c[1]] for c in coords]
    verts.append([r0[0], eave_y + roof_height, r0[1]])
    verts.append([r1[0], eave_y + roof_height, r1[1]])
    ri0, ri1 = n, n + 1

    faces = []
    for i in range(n):
        j = (i + 1) % n
        mid_x = (coords[i][0] + coords[j][0]) / 2
        mid_z = (coords[i][1] + coords[j][1]) / 2
        perp = abs((mid_x - cx) * ridge_normal[0] + (mid_z - cz) * ridge_normal[1])
        if half_width > 0 and perp > half_width * 0.3:
            # Eave edge: quad up to both ridge points
            faces.append([i, j, ri1])
            faces.append([i, ri1, ri0])
        else:
            # Gable / hip end: triangle to the nearest ridge point
            d0 = (mid_x - r0[0]) ** 2 + (mid_z - r0[1]) ** 2
            d1 = (mid_x - r1[0]) ** 2 + (mid_z - r1[1]) ** 2
            faces.append([i, j, ri0 if d0 <= d1 else ri1])
    return verts, faces


def _roof_dome(polygon, roof_height, eave_y, n_lat=6, n_lon=12):
    """Hemisphere fitted to the footprint's bounding box."""
    minx, minz, maxx, maxz = polygon.bounds
    cx, cz = (minx + maxx) / 2, (minz + maxz) / 2
    rx, rz = (maxx - minx) / 2, (maxz - minz) / 2

    verts = []
    faces = []
    for i in range(n_lat):
        phi = (math.pi / 2) * i / n_lat
        for j in range(n_lon):
            theta = 2 * math.pi * j / n_lon
            verts.append([cx + rx * math.cos(phi) * math.cos(theta),
                          eave_y + roof_height * math.sin(phi),
                          cz + rz * math.cos(phi) * math.sin(theta)])
    pole = len(verts)
    verts.append([cx, eave_y + roof_height, cz])

    for i in range(n_lat - 1):
        for j in range(n_lon):
            jn = (j + 1) % n_lon
            v0, v1 = i * n_lon + j, i * n_lon + jn
            v2, v3 = (i + 1) * n_lon + j, (i + 1) * n_lon + jn
            faces.append([v0, v2, v1])
            faces.append([v1, v2, v3])
    last = (n_lat - 1) * n_lon
    for j in range(n_lon):
        faces.append([last + j, pole, last + (j + 1) % n_lon])
    return verts, faces
