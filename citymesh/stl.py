"""STL encoders, both written through trimesh."""

import logging

import numpy as np
import trimesh

logger = logging.getLogger(__name__)


def merged_mesh(objects, name: str = 'citymesh') -> trimesh.Trimesh:
    """All prepared objects as one unprocessed trimesh named *name*."""
    meshes = [trimesh.Trimesh(vertices=o.vertices, faces=o.faces, process=False)
              for o in objects]
    if not meshes:
        mesh = trimesh.Trimesh(vertices=np.zeros((0, 3)), faces=np.zeros((0, 3), dtype=np.int64),
                               process=False)
    elif len(meshes) == 1:
        mesh = meshes[0]
    else:
        mesh = trimesh.util.concatenate(meshes)
    mesh.metadata['name'] = name
    return mesh


def solid_name(name: str) -> str:
    """Single-line name of at most 80 characters, as trimesh accepts it."""
    return ' '.join(str(name).split())[:80]


def ascii_stl(objects, name: str = 'citymesh') -> bytes:
    """All objects as one ASCII ``solid``, one facet per triangle.

    The text is UTF-8 so names taken from output filenames may be non-ASCII.
    """
    solid = solid_name(name)
    mesh = merged_mesh(objects, solid)
    logger.debug(f"ASCII STL {solid}: {len(mesh.faces)} facets")
    text = trimesh.exchange.stl.export_stl_ascii(mesh)
    # trimesh closes with a bare ``endsolid``
    text = text[:text.rindex('endsolid')] + f"endsolid {solid}\n"
    return text.encode('utf-8')


def binary_stl(objects, name: str = 'citymesh') -> bytes:
    """Binary STL of all objects merged into one trimesh."""
    mesh = merged_mesh(objects, name)
    logger.debug(f"Binary STL {name}: {len(mesh.faces)} facets")
    return trimesh.exchange.stl.export_stl(mesh)
