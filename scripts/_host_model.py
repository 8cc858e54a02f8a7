"""
In-memory building document: elements with box/planar-face solids,
projection views, transactions and spot elevation annotations.

Stands in for the host application's document when the request carries the
model inline (JSON) and in tests. Failure flags on elements/views/faces let
callers exercise the rejection paths the real host can produce.
"""

from contextlib import contextmanager

import numpy as np

from _transform import Transform, vec


SPOT_CATEGORY = "spot_dimensions"
DETAIL_LEVELS = ("coarse", "medium", "fine")
STYLE_PARAMETERS = ("line_weight", "leader_scale", "text_scale")


class PlanarFace:
    """Rectangular planar face: origin + u*x_dir + v*y_dir, u∈[0,w], v∈[0,h].

    Outward normal is x_dir × y_dir.
    """

    __slots__ = ("origin", "x_dir", "y_dir", "width", "height", "reference",
                 "unevaluable")

    def __init__(self, origin, x_dir, y_dir, width, height, reference=None,
                 unevaluable=False):
        self.origin = vec(origin)
        self.x_dir = vec(x_dir)
        self.y_dir = vec(y_dir)
        self.width = float(width)
        self.height = float(height)
        self.reference = reference
        self.unevaluable = unevaluable

    @property
    def parameter_range(self):
        return (0.0, self.width, 0.0, self.height)

    def value_at(self, u, v):
        if self.unevaluable:
            raise RuntimeError("Face surface cannot be evaluated")
        return self.origin + self.x_dir * u + self.y_dir * v

    def normal_at(self, u, v):
        if self.unevaluable:
            raise RuntimeError("Face surface cannot be evaluated")
        return np.cross(self.x_dir, self.y_dir)

    def transformed(self, transform):
        return PlanarFace(transform.apply_point(self.origin),
                          transform.apply_vector(self.x_dir),
                          transform.apply_vector(self.y_dir),
                          self.width, self.height, self.reference,
                          self.unevaluable)

    def __repr__(self):
        return f"PlanarFace({self.reference!r})"


class Solid:
    __slots__ = ("faces", "volume")

    def __init__(self, faces, volume):
        self.faces = list(faces)
        self.volume = float(volume)


def box_faces(size, offset=(0, 0, 0)):
    """Six outward-facing local faces of an axis-aligned box.

    Order: -X, +X, -Y, +Y, -Z, +Z.
    """
    w, d, h = (float(s) for s in size)
    cx, cy, cz = (float(c) for c in offset)
    x0, x1 = cx - w / 2, cx + w / 2
    y0, y1 = cy - d / 2, cy + d / 2
    z0, z1 = cz - h / 2, cz + h / 2
    X, Y, Z = (1, 0, 0), (0, 1, 0), (0, 0, 1)
    return [
        PlanarFace((x0, y0, z0), Z, Y, h, d),   # -X
        PlanarFace((x1, y0, z0), Y, Z, d, h),   # +X
        PlanarFace((x0, y0, z0), X, Z, w, h),   # -Y
        PlanarFace((x0, y1, z0), Z, X, h, w),   # +Y
        PlanarFace((x0, y0, z0), Y, X, d, w),   # -Z
        PlanarFace((x0, y0, z1), X, Y, w, d),   # +Z
    ]


def make_solid(solid_cfg, transform, element_id, face_start=0):
    """Build a world-space Solid from a JSON solid config.

    Solid types:
      box:   {"size": [w, d, h], "offset": [x, y, z]}
      faces: {"volume": v, "faces": [{origin, x_dir, y_dir, width, height}]}
    Per-face flags: "reference": false drops the reference,
    "unevaluable": true makes evaluation raise.
    """
    kind = solid_cfg.get("type", "box")
    if kind == "box":
        size = solid_cfg["size"]
        local = box_faces(size, solid_cfg.get("offset", (0, 0, 0)))
        volume = float(np.prod([float(s) for s in size]))
        face_flags = solid_cfg.get("face_flags", {})
    elif kind == "faces":
        local = [PlanarFace(f["origin"], f["x_dir"], f["y_dir"],
                            f.get("width", 1.0), f.get("height", 1.0))
                 for f in solid_cfg["faces"]]
        volume = float(solid_cfg.get("volume", 1.0))
        face_flags = {str(i): f for i, f in enumerate(solid_cfg["faces"])}
    else:
        raise ValueError(f"Unknown solid type: {kind}")

    faces = []
    for i, face in enumerate(local):
        flags = face_flags.get(str(i), {})
        face.reference = (f"{element_id}:face{face_start + i}"
                          if flags.get("reference", True) else None)
        face.unevaluable = bool(flags.get("unevaluable", False))
        faces.append(face.transformed(transform))
    return Solid(faces, volume)


class Element:
    """A placed model element: identity, family/type, transform, solids."""

    def __init__(self, id, *, family="", type_name="", transform=None,
                 solids=None, name=None, visible_in=None,
                 min_detail_level="coarse", reject_annotations=False):
        self.id = id
        self.name = name or str(id)
        self.family = family
        self.type_name = type_name
        self.transform = transform or Transform.identity()
        self.solids = solids or []
        self.visible_in = set(visible_in) if visible_in is not None else None
        self.min_detail_level = min_detail_level
        self.reject_annotations = reject_annotations

    @property
    def family_key(self):
        return (self.family, self.type_name)

    @classmethod
    def from_config(cls, cfg):
        eid = cfg["id"]
        transform = Transform.from_config(cfg.get("transform"))
        solids = []
        face_start = 0
        for solid_cfg in cfg.get("solids", []):
            solid = make_solid(solid_cfg, transform, eid, face_start)
            face_start += len(solid.faces)
            solids.append(solid)
        return cls(eid,
                   family=cfg.get("family", ""),
                   type_name=cfg.get("type", ""),
                   transform=transform,
                   solids=solids,
                   name=cfg.get("name"),
                   visible_in=cfg.get("visible_in"),
                   min_detail_level=cfg.get("min_detail_level", "coarse"),
                   reject_annotations=cfg.get("reject_annotations", False))

    def __repr__(self):
        return f"Element({self.id!r}, family={self.family!r})"


class View:
    def __init__(self, id, *, name=None, view_type="section",
                 is_template=False, printable=True,
                 view_direction=(0, -1, 0), up_direction=(0, 0, 1),
                 detail_level="coarse", locked=False, hidden_categories=None):
        self.id = id
        self.name = name or str(id)
        self.view_type = view_type
        self.is_template = is_template
        self.printable = printable
        self.view_direction = vec(view_direction)
        self.up_direction = vec(up_direction)
        self.detail_level = detail_level
        self.locked = locked
        self.hidden_categories = set(hidden_categories or [])

    @classmethod
    def from_config(cls, cfg):
        return cls(cfg["id"],
                   name=cfg.get("name"),
                   view_type=cfg.get("view_type", "section"),
                   is_template=cfg.get("is_template", False),
                   printable=cfg.get("printable", True),
                   view_direction=cfg.get("view_direction", (0, -1, 0)),
                   up_direction=cfg.get("up_direction", (0, 0, 1)),
                   detail_level=cfg.get("detail_level", "coarse"),
                   locked=cfg.get("locked", False),
                   hidden_categories=cfg.get("hidden_categories"))

    def __repr__(self):
        return f"View({self.id!r}, {self.view_type})"


class SpotElevation:
    """Created annotation handle."""

    def __init__(self, id, view_id, element_id, reference, origin, bend, end,
                 ref_point, has_leader=True, type_name=None):
        self.id = id
        self.view_id = view_id
        self.element_id = element_id
        self.reference = reference
        self.origin = vec(origin)
        self.bend = vec(bend)
        self.end = vec(end)
        self.ref_point = vec(ref_point)
        self.has_leader = has_leader
        self.type_name = type_name
        self.parameters = {}

    def to_dict(self):
        def r(p):
            return [round(float(x), 6) for x in p]
        return {
            "id": self.id,
            "view_id": self.view_id,
            "element_id": self.element_id,
            "reference": self.reference,
            "origin": r(self.origin),
            "bend": r(self.bend),
            "end": r(self.end),
            "type": self.type_name,
            "parameters": dict(self.parameters),
        }


class MemoryDocument:
    """Document collaborator backed by plain Python objects."""

    def __init__(self, elements=(), views=(), active_view_id=None,
                 spot_types=("Spot Elevation",)):
        self.elements = list(elements)
        self.views = list(views)
        self.active_view_id = active_view_id
        self.spot_types = list(spot_types)
        self.annotations = []
        self.committed = []           # names of committed transactions
        self.rolled_back = []
        self._pending = None
        self._next_id = 1

    @classmethod
    def from_config(cls, cfg):
        elements = [Element.from_config(e) for e in cfg.get("elements", [])]
        views = [View.from_config(v) for v in cfg.get("views", [])]
        return cls(elements, views,
                   active_view_id=cfg.get("active_view"),
                   spot_types=cfg.get("spot_types", ["Spot Elevation"]))

    # -- lookup --

    @property
    def active_view(self):
        if self.active_view_id is None:
            return None
        return self.view(self.active_view_id)

    def element(self, element_id):
        for e in self.elements:
            if e.id == element_id:
                return e
        raise KeyError(f"Element not found: {element_id}")

    def view(self, view_id):
        for v in self.views:
            if v.id == view_id:
                return v
        raise KeyError(f"View not found: {view_id}")

    def resolve_reference(self, reference):
        """(element, face) owning `reference`, or None."""
        for e in self.elements:
            for solid in e.solids:
                for face in solid.faces:
                    if face.reference == reference:
                        return e, face
        return None

    # -- geometry --

    def get_geometry(self, element, view, options=None):
        """Solids of `element` computable in `view`, or None."""
        options = options or {}
        if element.visible_in is not None and view.id not in element.visible_in:
            return None
        level = options.get("detail_level", view.detail_level)
        if _detail_rank(level) < _detail_rank(element.min_detail_level):
            return None
        if not element.solids:
            return None
        return element.solids

    # -- mutation --

    def prepare_view(self, view, detail_level="fine"):
        if view.locked:
            raise PermissionError(f"View '{view.name}' is locked")
        view.detail_level = detail_level
        view.hidden_categories.discard(SPOT_CATEGORY)

    @contextmanager
    def transaction(self, name):
        if self._pending is not None:
            raise RuntimeError("Transaction already open")
        self._pending = []
        try:
            yield self
        except BaseException:
            self.rolled_back.append(name)
            raise
        else:
            self.annotations.extend(self._pending)
            self.committed.append(name)
        finally:
            self._pending = None

    def spot_elevation_type(self):
        return self.spot_types[0] if self.spot_types else None

    def create_spot_elevation(self, view, reference, origin, bend, end,
                              ref_point, has_leader=True):
        if self._pending is None:
            raise RuntimeError("Document modification outside a transaction")
        resolved = self.resolve_reference(reference)
        if resolved is None:
            raise ValueError(f"Reference does not resolve: {reference}")
        element, _face = resolved
        if self.get_geometry(element, view, {"detail_level": view.detail_level}) is None:
            raise ValueError(f"Reference {reference} is not visible in view "
                             f"'{view.name}'")
        if element.reject_annotations:
            raise ValueError(f"Reference {reference} cannot host a spot "
                             f"elevation")
        spot = SpotElevation(self._next_id, view.id, element.id, reference,
                             origin, bend, end, ref_point, has_leader,
                             type_name=self.spot_elevation_type())
        self._next_id += 1
        self._pending.append(spot)
        return spot

    def set_annotation_parameter(self, annotation, name, value):
        if name not in STYLE_PARAMETERS:
            raise KeyError(f"Parameter '{name}' not found on spot elevation")
        if value is None or float(value) <= 0:
            raise ValueError(f"Parameter '{name}' must be positive, got {value}")
        annotation.parameters[name] = float(value)


def _detail_rank(level):
    try:
        return DETAIL_LEVELS.index(str(level).lower())
    except ValueError:
        raise ValueError(f"Unknown detail level '{level}'")
