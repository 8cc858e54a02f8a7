"""
FreeCAD geometry source: loads .FCStd / .step models and exposes their
solids through the face protocol used by the matcher
(parameter_range, value_at, normal_at, reference).

FreeCAD is imported lazily through init_freecad(); nothing here runs at
import time.
"""

import os
import re

from _bootstrap import log, init_freecad
from _host_model import Element, MemoryDocument, View
from _transform import Transform, vec


def _to_vec(v):
    return vec((v.x, v.y, v.z))


class FreeCADFace:
    """Part.Face adapter."""

    __slots__ = ("face", "reference")

    def __init__(self, face, reference):
        self.face = face
        self.reference = reference

    @property
    def parameter_range(self):
        u0, u1, v0, v1 = self.face.ParameterRange
        return (u0, u1, v0, v1)

    def value_at(self, u, v):
        return _to_vec(self.face.valueAt(u, v))

    def normal_at(self, u, v):
        return _to_vec(self.face.normalAt(u, v))


class FreeCADSolid:
    __slots__ = ("faces", "volume")

    def __init__(self, faces, volume):
        self.faces = faces
        self.volume = volume


def transform_from_placement(placement):
    """FreeCAD Placement -> Transform (rotation + translation)."""
    FreeCAD = init_freecad()
    rot = placement.Rotation
    return Transform(_to_vec(rot.multVec(FreeCAD.Vector(1, 0, 0))),
                     _to_vec(rot.multVec(FreeCAD.Vector(0, 1, 0))),
                     _to_vec(rot.multVec(FreeCAD.Vector(0, 0, 1))),
                     _to_vec(placement.Base))


def solids_from_shape(shape, owner_name):
    """Wrap shape.Solids; references follow FreeCAD's 'FaceN' naming."""
    all_faces = list(shape.Faces)
    solids = []
    for solid in shape.Solids:
        faces = []
        for face in solid.Faces:
            idx = next((i for i, f in enumerate(all_faces) if f.isSame(face)),
                       None)
            ref = f"{owner_name}:Face{idx + 1}" if idx is not None else None
            faces.append(FreeCADFace(face, ref))
        solids.append(FreeCADSolid(faces, solid.Volume))
    return solids


def _type_name(label):
    """'Wall001' -> 'Wall' (FreeCAD numbers duplicate labels)."""
    return re.sub(r"\d+$", "", label or "")


def element_from_object(obj):
    family = getattr(obj, "IfcType", "") or obj.TypeId
    type_name = getattr(obj, "Label2", "") or _type_name(obj.Label)
    return Element(obj.Name,
                   name=obj.Label,
                   family=family,
                   type_name=type_name,
                   transform=transform_from_placement(obj.Placement),
                   solids=solids_from_shape(obj.Shape, obj.Name))


def load_elements(filepath):
    """Read elements from a FreeCAD document or a STEP/BREP file."""
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"File not found: {filepath}")

    FreeCAD = init_freecad()
    import Part

    ext = os.path.splitext(filepath)[1].lower()
    elements = []
    if ext == ".fcstd":
        doc = FreeCAD.openDocument(filepath)
        try:
            for obj in doc.Objects:
                shape = getattr(obj, "Shape", None)
                if shape is None or shape.isNull() or not shape.Solids:
                    continue
                elements.append(element_from_object(obj))
        finally:
            FreeCAD.closeDocument(doc.Name)
    elif ext in (".step", ".stp", ".brep", ".brp"):
        shape = Part.read(filepath)
        base = os.path.splitext(os.path.basename(filepath))[0]
        for i, solid in enumerate(shape.Solids):
            name = f"{base}_{i + 1}"
            elements.append(Element(name, family="solid", type_name=base,
                                    transform=transform_from_placement(solid.Placement),
                                    solids=solids_from_shape(solid, name)))
    else:
        raise ValueError(f"Unsupported file format: {ext}")

    log(f"Loaded {len(elements)} element(s) from {os.path.basename(filepath)}")
    return elements


def load_document(filepath, model_cfg=None):
    """MemoryDocument with FreeCAD geometry and views from the request."""
    cfg = model_cfg or {}
    views = [View.from_config(v) for v in cfg.get("views", [])]
    return MemoryDocument(load_elements(filepath), views,
                          active_view_id=cfg.get("active_view"),
                          spot_types=cfg.get("spot_types", ["Spot Elevation"]))
