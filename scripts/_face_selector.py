"""
Face selector for directional spot elevations.
Finds the face of an element whose outward normal, expressed in the
element's own local frame, best matches a local direction token.

  "Left Face"  -> local -X      "Right Face" -> local +X
  "Front Face" -> local -Y      "Back Face"  -> local +Y

Every visited candidate leaves an EvaluationRecord; every call leaves one
MatchOutcome in the caller's match log.
"""

from collections import namedtuple

import numpy as np

from _face_sampler import sample_face, sample_point
from _transform import normalize


NOTE_MATCHED = "matched"
NOTE_NO_GEOMETRY = "no geometry"
NOTE_NO_CANDIDATE = "no candidate"
NOTE_ANTI_ALIGNED = "best candidate is anti-aligned"
NOTE_ANTI_ALIGNED_REJECTED = "best candidate is anti-aligned (rejected)"


class EvaluationRecord(namedtuple("EvaluationRecord", "face_index alignment")):
    __slots__ = ()

    def to_dict(self):
        return {"face_index": self.face_index,
                "alignment": round(self.alignment, 6)}


class MatchOutcome(namedtuple("MatchOutcome", [
        "element_id", "view_id", "best_score", "face_found", "note",
        "evaluations"])):
    """Result of one matcher call for one (element, view) pair."""
    __slots__ = ()

    def to_dict(self):
        return {
            "element_id": self.element_id,
            "view_id": self.view_id,
            "best_score": (round(self.best_score, 6)
                           if self.best_score is not None else None),
            "face_found": self.face_found,
            "note": self.note,
            "evaluations": [e.to_dict() for e in self.evaluations],
        }


class FaceMatch:
    """A resolved candidate face with its sampled point and normal."""

    __slots__ = ("face", "index", "point", "normal", "local_normal",
                 "alignment")

    def __init__(self, face, index, point, normal, local_normal=None,
                 alignment=None):
        self.face = face
        self.index = index
        self.point = point            # world-space UV-midpoint
        self.normal = normal          # world-space unit normal
        self.local_normal = local_normal
        self.alignment = alignment

    @property
    def reference(self):
        return self.face.reference


def _has_volume(solid):
    try:
        return abs(float(solid.volume)) > 0.0
    except Exception:
        return False


def iter_candidates(solids):
    """Yield (index, face) for referenceable faces of solids with volume.

    index counts every face of a volumetric solid in visit order, so it
    stays stable whether or not neighbours carry a reference.
    """
    index = 0
    for solid in solids or []:
        if not _has_volume(solid):
            continue
        for face in solid.faces:
            if face.reference is not None:
                yield index, face
            index += 1


def match_face(solids, transform, direction, *, element_id=None,
               view_id=None, match_log=None, allow_anti_aligned=True):
    """Find the face best aligned with a local-space direction.

    Args:
        solids: geometry of the element in the view context, or None when
            the element has no computable geometry there
        transform: element local-to-world Transform
        direction: local-space target direction (normalized here)
        match_log: list the MatchOutcome is appended to
        allow_anti_aligned: accept a winner whose best alignment is < 0

    Returns:
        (FaceMatch | None, MatchOutcome)

    Ties keep the first-visited face (strict > comparison). A negative
    maximum still wins unless allow_anti_aligned is False.
    """
    if solids is None:
        outcome = MatchOutcome(element_id, view_id, None, False,
                               NOTE_NO_GEOMETRY, ())
        if match_log is not None:
            match_log.append(outcome)
        return None, outcome

    target = normalize(direction)
    if target is None:
        raise ValueError("Target direction has zero length")

    to_local = transform.inverse()

    best = None
    best_score = None
    evaluations = []

    for index, face in iter_candidates(solids):
        sampled = sample_face(face)
        if sampled is None:
            continue
        point, normal = sampled
        local_normal = normalize(to_local.apply_vector(normal))
        if local_normal is None:
            continue
        alignment = float(np.clip(np.dot(local_normal, target), -1.0, 1.0))
        evaluations.append(EvaluationRecord(index, alignment))

        if best_score is None or alignment > best_score:
            best_score = alignment
            best = FaceMatch(face, index, point, normal, local_normal,
                             alignment)

    if best is None:
        note = NOTE_NO_CANDIDATE
    elif best_score < 0:
        if allow_anti_aligned:
            note = NOTE_ANTI_ALIGNED
        else:
            note = NOTE_ANTI_ALIGNED_REJECTED
            best = None
    else:
        note = NOTE_MATCHED

    outcome = MatchOutcome(element_id, view_id, best_score, best is not None,
                           note, tuple(evaluations))
    if match_log is not None:
        match_log.append(outcome)
    return best, outcome


def first_referenceable_face(solids):
    """First face exposing a reference, regardless of orientation.

    Faces that cannot be evaluated to a point are passed over.
    """
    for index, face in iter_candidates(solids):
        point = sample_point(face)
        if point is None:
            continue
        sampled = sample_face(face)
        normal = sampled[1] if sampled else None
        return FaceMatch(face, index, point, normal)
    return None


def find_face_by_reference(solids, reference):
    """Locate the face carrying `reference` among referenceable faces."""
    for index, face in iter_candidates(solids):
        if face.reference == reference:
            return index, face
    return None
