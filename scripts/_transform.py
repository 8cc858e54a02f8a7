"""
Direction vectors and local<->world transforms for element instances.

Vectors are plain numpy float arrays of length 3. A Transform holds a 3x3
basis (columns = local X/Y/Z axes in world space) and an origin.
"""

import math

import numpy as np


_ZERO_TOL = 1e-9

# Canonical local directions a user can pick
DIRECTION_TOKENS = {
    "Left Face":  (-1.0, 0.0, 0.0),
    "Right Face": (1.0, 0.0, 0.0),
    "Front Face": (0.0, -1.0, 0.0),
    "Back Face":  (0.0, 1.0, 0.0),
}

# Short axis aliases
_AXIS_ALIASES = {
    "-x": "Left Face",
    "+x": "Right Face",
    "-y": "Front Face",
    "+y": "Back Face",
}

SIDE_LEFT = -1.0
SIDE_RIGHT = 1.0


def vec(values):
    """Coerce a 3-sequence (list, tuple, ndarray) to a float vector."""
    arr = np.asarray(values, dtype=float).reshape(-1)
    if arr.shape[0] == 2:
        arr = np.append(arr, 0.0)
    if arr.shape[0] != 3:
        raise ValueError(f"Expected a 3D vector, got {values!r}")
    return arr


def length(v):
    return float(np.linalg.norm(v))


def normalize(v):
    """Return unit vector, or None when v is degenerate (zero length)."""
    v = vec(v)
    n = np.linalg.norm(v)
    if n < _ZERO_TOL or not np.isfinite(n):
        return None
    return v / n


def cross(a, b):
    return np.cross(vec(a), vec(b))


def resolve_direction(token):
    """Map a direction token (or axis alias) to its local unit vector."""
    if token is None:
        raise ValueError("No face direction chosen")
    key = str(token).strip()
    key = _AXIS_ALIASES.get(key.lower(), key)
    for name, direction in DIRECTION_TOKENS.items():
        if name.lower() == key.lower():
            return vec(direction)
    raise ValueError(f"Unknown face direction '{token}' "
                     f"(expected one of: {', '.join(DIRECTION_TOKENS)})")


def resolve_side(side):
    """Map a side choice to its sign: left = -1, right = +1.

    Accepts "left"/"right", a bool (True = left, as answered by the
    "leader to the LEFT?" prompt), or a signed number.
    """
    if isinstance(side, bool):
        return SIDE_LEFT if side else SIDE_RIGHT
    if isinstance(side, (int, float)):
        if side == 0:
            raise ValueError("Side selector must be non-zero")
        return SIDE_LEFT if side < 0 else SIDE_RIGHT
    key = str(side).strip().lower()
    if key in ("left", "l"):
        return SIDE_LEFT
    if key in ("right", "r"):
        return SIDE_RIGHT
    raise ValueError(f"Unknown leader side '{side}' (expected left or right)")


class Transform:
    """Affine local-to-world map: rotation basis plus translation."""

    __slots__ = ("matrix", "origin")

    def __init__(self, basis_x=(1, 0, 0), basis_y=(0, 1, 0), basis_z=None,
                 origin=(0, 0, 0)):
        bx = vec(basis_x)
        by = vec(basis_y)
        bz = vec(basis_z) if basis_z is not None else np.cross(bx, by)
        self.matrix = np.column_stack([bx, by, bz])
        self.origin = vec(origin)

    @classmethod
    def identity(cls):
        return cls()

    @classmethod
    def from_matrix(cls, matrix, origin=(0, 0, 0)):
        m = np.asarray(matrix, dtype=float)
        if m.shape != (3, 3):
            raise ValueError(f"Rotation matrix must be 3x3, got {m.shape}")
        return cls(m[:, 0], m[:, 1], m[:, 2], origin)

    @classmethod
    def from_rotation_z(cls, degrees, origin=(0, 0, 0)):
        """Rotation about world Z (typical for placed building elements)."""
        a = math.radians(degrees)
        c, s = math.cos(a), math.sin(a)
        return cls((c, s, 0), (-s, c, 0), (0, 0, 1), origin)

    @classmethod
    def from_config(cls, cfg):
        """Build from a JSON transform block.

        Accepts {"origin", "basis_x", "basis_y", "basis_z"} or
        {"origin", "rotation_deg"}; missing keys fall back to identity.
        """
        if not cfg:
            return cls.identity()
        origin = cfg.get("origin", (0, 0, 0))
        if "rotation_deg" in cfg:
            return cls.from_rotation_z(float(cfg["rotation_deg"]), origin)
        return cls(cfg.get("basis_x", (1, 0, 0)),
                   cfg.get("basis_y", (0, 1, 0)),
                   cfg.get("basis_z"),
                   origin)

    @property
    def basis_x(self):
        return self.matrix[:, 0]

    @property
    def basis_y(self):
        return self.matrix[:, 1]

    @property
    def basis_z(self):
        return self.matrix[:, 2]

    def apply_point(self, p):
        return self.matrix @ vec(p) + self.origin

    def apply_vector(self, v):
        return self.matrix @ vec(v)

    def is_orthonormal(self, tol=1e-6):
        m = self.matrix
        return bool(np.allclose(m.T @ m, np.eye(3), atol=tol))

    def inverse(self):
        """World-to-local transform."""
        if self.is_orthonormal():
            inv = self.matrix.T
        else:
            if abs(np.linalg.det(self.matrix)) < _ZERO_TOL:
                raise ValueError("Transform is not invertible (singular basis)")
            inv = np.linalg.inv(self.matrix)
        return Transform.from_matrix(inv, -(inv @ self.origin))

    def compose(self, other):
        """self ∘ other: apply `other` first, then `self`."""
        return Transform.from_matrix(self.matrix @ other.matrix,
                                     self.apply_point(other.origin))

    def to_dict(self):
        return {
            "origin": [round(float(x), 6) for x in self.origin],
            "basis_x": [round(float(x), 6) for x in self.basis_x],
            "basis_y": [round(float(x), 6) for x in self.basis_y],
            "basis_z": [round(float(x), 6) for x in self.basis_z],
        }

    def __repr__(self):
        o = ", ".join(f"{x:.3f}" for x in self.origin)
        return f"Transform(origin=({o}))"
