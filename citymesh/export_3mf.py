"""3MF packaging for multi-material printing.

One ``<object>`` per prepared mesh, each pointing into a single
``<basematerials>`` group holding one color per category, so slicers can
assign a filament per category.  Vertex XML is produced in fixed-size
batches so large models are walked in bounded slices.
"""

import io
import logging
import zipfile
import xml.etree.ElementTree as ET

from .constants import CATEGORY_COLORS, DEFAULT_COLOR, XML_VERTEX_BATCH

logger = logging.getLogger(__name__)

# 3MF namespace constants
NS_CORE = "http://schemas.microsoft.com/3dmanufacturing/core/2015/02"

CONTENT_TYPES = """<?xml version="1.0" encoding="UTF-8"?>
<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">
  <Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>
  <Default Extension="model" ContentType="application/vnd.ms-package.3dmanufacturing-3dmodel+xml"/>
</Types>"""

RELS = """<?xml version="1.0" encoding="UTF-8"?>
<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
  <Relationship Target="/3D/3dmodel.model" Id="rel0"
    Type="http://schemas.microsoft.com/3dmanufacturing/2013/01/3dmodel"/>
</Relationships>"""

MODEL_PATH = '3D/3dmodel.model'
MATERIAL_GROUP_ID = 1


def category_color(category) -> str:
    """Display color for *category* as ``#RRGGBBAA``."""
    hex_rgb = CATEGORY_COLORS.get(getattr(category, 'value', category), DEFAULT_COLOR)
    return f"{hex_rgb.upper()}FF"


def material_table(objects) -> dict:
    """Map each distinct category to its ``pindex``, in first-appearance order."""
    table = {}
    for obj in objects:
        if obj.category not in table:
            table[obj.category] = len(table)
    return table


def _batches(array, batch=XML_VERTEX_BATCH):
    for start in range(0, len(array), batch):
        yield array[start:start + batch].tolist()


def _mesh_to_3mf_object(obj, obj_id: int, pindex: int) -> ET.Element:
    """Build a 3MF <object> element for one prepared mesh."""
    obj_el = ET.Element('object', {
        'id': str(obj_id),
        'name': obj.id,
        'type': 'model',
        'pid': str(MATERIAL_GROUP_ID),
        'pindex': str(pindex),
    })
    mesh_el = ET.SubElement(obj_el, 'mesh')

    verts_el = ET.SubElement(mesh_el, 'vertices')
    for chunk in _batches(obj.vertices):
        for x, y, z in chunk:
            ET.SubElement(verts_el, 'vertex', {
                'x': f'{x:.6f}',
                'y': f'{y:.6f}',
                'z': f'{z:.6f}',
            })

    tris_el = ET.SubElement(mesh_el, 'triangles')
    for chunk in _batches(obj.faces):
        for a, b, c in chunk:
            ET.SubElement(tris_el, 'triangle', {'v1': str(a), 'v2': str(b), 'v3': str(c)})

    return obj_el


def build_model_xml(objects, name: str = 'citymesh') -> bytes:
    """Serialize prepared objects into a 3MF model document."""
    materials = material_table(objects)
    model = ET.Element('model', {
        'xmlns': NS_CORE,
        'unit': 'millimeter',
        'xml:lang': 'en-US',
    })
    title = ET.SubElement(model, 'metadata', {'name': 'Title'})
    title.text = name

    resources = ET.SubElement(model, 'resources')
    group = ET.SubElement(resources, 'basematerials', {'id': str(MATERIAL_GROUP_ID)})
    for category in materials:
        ET.SubElement(group, 'base', {
            'name': category.value,
            'displaycolor': category_color(category),
        })

    build = ET.SubElement(model, 'build')
    for i, obj in enumerate(objects):
        obj_id = MATERIAL_GROUP_ID + 1 + i
        resources.append(_mesh_to_3mf_object(obj, obj_id, materials[obj.category]))
        ET.SubElement(build, 'item', {'objectid': str(obj_id)})

    logger.debug(f"3MF model: {len(objects)} objects, {len(materials)} materials")
    return ET.tostring(model, encoding='utf-8', xml_declaration=True)


def package_3mf(model_xml: bytes) -> bytes:
    """Wrap a model document in the OPC zip container."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, 'w', compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr('[Content_Types].xml', CONTENT_TYPES)
        zf.writestr('_rels/.rels', RELS)
        zf.writestr(MODEL_PATH, model_xml)
    return buf.getvalue()
