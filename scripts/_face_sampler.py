"""
Representative point/normal sampling for faces.

A face only needs: parameter_range -> (u_min, u_max, v_min, v_max),
value_at(u, v) and normal_at(u, v). Both in-memory faces and the FreeCAD
wrapper satisfy this.
"""

from _transform import vec, normalize


def face_midpoint_uv(face):
    """Midpoint of the face's parametric bounding box."""
    u0, u1, v0, v1 = face.parameter_range
    return (u0 + u1) * 0.5, (v0 + v1) * 0.5


def sample_face(face):
    """Return (point, unit_normal) at the UV-box midpoint, or None.

    None means the face cannot be evaluated or its normal is degenerate;
    callers drop such faces from candidacy.
    """
    try:
        u, v = face_midpoint_uv(face)
        point = vec(face.value_at(u, v))
        normal = normalize(face.normal_at(u, v))
    except Exception:
        return None
    if normal is None:
        return None
    return point, normal


def sample_point(face):
    """Representative point only (None when the face cannot be evaluated).

    Unlike sample_face, a degenerate normal does not disqualify the point.
    """
    try:
        u, v = face_midpoint_uv(face)
        return vec(face.value_at(u, v))
    except Exception:
        return None
