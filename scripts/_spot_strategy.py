"""
Approach chain for acquiring an annotatable face per (element, view).

Approaches run in order and the chain stops at the first one whose face
is accepted by annotation creation:

  1. exact_reference  (template element) reuse the picked face
                        reference and point
  2. transform_match  (same family/type) match the chosen local
                        direction through the instance's own transform
  3. any_face         first face exposing a reference, any orientation

Each approach returns an ApproachResult instead of raising; errors raised
inside an approach or by annotation creation become `failed` results.
"""

from _face_selector import (match_face, first_referenceable_face,
                            find_face_by_reference, FaceMatch)


STATUS_SUCCESS = "success"
STATUS_NOT_APPLICABLE = "not_applicable"
STATUS_FAILED = "failed"

APPROACH_EXACT = "exact_reference"
APPROACH_TRANSFORM = "transform_match"
APPROACH_ANY_FACE = "any_face"

REASON_NOT_ATTEMPTED = "no approach attempted (no template or same-family match)"
REASON_REJECTED = "approach attempted but annotation creation rejected the reference"
REASON_NO_FACE = "approach attempted but no usable face was found"


class ApproachResult:
    """Tagged result: success (with face) | not_applicable | failed."""

    __slots__ = ("status", "approach", "face", "reason", "annotation",
                 "creation_error")

    def __init__(self, status, approach, face=None, reason=""):
        self.status = status
        self.approach = approach
        self.face = face              # FaceMatch on success
        self.reason = reason
        self.annotation = None
        self.creation_error = False

    @classmethod
    def success(cls, approach, face):
        return cls(STATUS_SUCCESS, approach, face=face)

    @classmethod
    def not_applicable(cls, approach, reason=""):
        return cls(STATUS_NOT_APPLICABLE, approach, reason=reason)

    @classmethod
    def failed(cls, approach, reason):
        return cls(STATUS_FAILED, approach, reason=reason)

    @property
    def ok(self):
        return self.status == STATUS_SUCCESS

    def to_dict(self):
        return {"approach": self.approach, "status": self.status,
                "reason": self.reason}


class TemplatePick:
    """The face the user picked on the template element."""

    __slots__ = ("element", "reference", "point")

    def __init__(self, element, reference, point):
        self.element = element
        self.reference = reference
        self.point = point            # pick's global point or UV-midpoint


class PlacementContext:
    """Inputs the approaches see for one (element, view) pair."""

    __slots__ = ("doc", "view", "element", "template", "direction",
                 "options", "allow_anti_aligned", "match_log")

    def __init__(self, doc, view, element, *, template=None, direction=None,
                 options=None, allow_anti_aligned=True, match_log=None):
        self.doc = doc
        self.view = view
        self.element = element
        self.template = template
        self.direction = direction
        self.options = options or {}
        self.allow_anti_aligned = allow_anti_aligned
        self.match_log = match_log

    def geometry(self):
        return self.doc.get_geometry(self.element, self.view, self.options)


class PlacementAttempt:
    """Outcome for one (element, view) pair. Never retried."""

    __slots__ = ("element_id", "view_id", "approach", "annotation",
                 "reason", "results")

    def __init__(self, element_id, view_id, approach=None, annotation=None,
                 reason="", results=None):
        self.element_id = element_id
        self.view_id = view_id
        self.approach = approach      # name of the approach that succeeded
        self.annotation = annotation
        self.reason = reason
        self.results = results or []

    @property
    def succeeded(self):
        return self.annotation is not None

    def to_dict(self):
        return {
            "element_id": self.element_id,
            "view_id": self.view_id,
            "success": self.succeeded,
            "approach": self.approach,
            "reason": self.reason,
            "approaches": [r.to_dict() for r in self.results],
        }


# -- Approaches ---------------------------------------------------------------

def exact_reference_approach(ctx):
    template = ctx.template
    if template is None or template.element.id != ctx.element.id:
        return ApproachResult.not_applicable(APPROACH_EXACT,
                                             "not the template element")
    # Re-resolved per view: the element may have no geometry in this one
    found = find_face_by_reference(ctx.geometry(), template.reference)
    if found is None:
        return ApproachResult.failed(
            APPROACH_EXACT, "picked reference not found in view geometry")
    index, face = found
    return ApproachResult.success(
        APPROACH_EXACT, FaceMatch(face, index, template.point, None))


def transform_match_approach(ctx):
    template = ctx.template
    if template is None or ctx.direction is None:
        return ApproachResult.not_applicable(APPROACH_TRANSFORM,
                                             "no template direction")
    if ctx.element.family_key != template.element.family_key:
        return ApproachResult.not_applicable(
            APPROACH_TRANSFORM,
            f"family {ctx.element.family_key} differs from template "
            f"{template.element.family_key}")

    match, outcome = match_face(
        ctx.geometry(), ctx.element.transform, ctx.direction,
        element_id=ctx.element.id, view_id=ctx.view.id,
        match_log=ctx.match_log,
        allow_anti_aligned=ctx.allow_anti_aligned)
    if match is None:
        return ApproachResult.failed(APPROACH_TRANSFORM,
                                     f"face match: {outcome.note}")
    return ApproachResult.success(APPROACH_TRANSFORM, match)


def any_face_approach(ctx):
    solids = ctx.geometry()
    if solids is None:
        return ApproachResult.failed(APPROACH_ANY_FACE, "no geometry")
    match = first_referenceable_face(solids)
    if match is None:
        return ApproachResult.failed(APPROACH_ANY_FACE,
                                     "no referenceable face")
    return ApproachResult.success(APPROACH_ANY_FACE, match)


APPROACHES = {
    APPROACH_EXACT: exact_reference_approach,
    APPROACH_TRANSFORM: transform_match_approach,
    APPROACH_ANY_FACE: any_face_approach,
}


def build_chain(names):
    """[(name, fn)] for the given approach names, order preserved."""
    chain = []
    for name in names:
        if name not in APPROACHES:
            raise ValueError(f"Unknown approach '{name}'")
        chain.append((name, APPROACHES[name]))
    return chain


# -- Chain runner -------------------------------------------------------------

def run_approach_chain(chain, ctx, place):
    """Fold over the chain until an approach yields an accepted annotation.

    Args:
        chain: [(name, approach_fn)]
        ctx: PlacementContext
        place: fn(FaceMatch) -> annotation handle; may raise or return None
            when the host rejects the reference

    Returns: PlacementAttempt
    """
    results = []
    for name, approach in chain:
        try:
            result = approach(ctx)
        except Exception as e:
            result = ApproachResult.failed(name, f"{type(e).__name__}: {e}")

        if result.ok:
            try:
                annotation = place(result.face)
            except Exception as e:
                annotation = None
                result.reason = f"creation failed: {type(e).__name__}: {e}"
            else:
                if annotation is None:
                    result.reason = "creation returned no annotation"
            if annotation is not None:
                result.annotation = annotation
                results.append(result)
                return PlacementAttempt(ctx.element.id, ctx.view.id,
                                        approach=name, annotation=annotation,
                                        results=results)
            result.status = STATUS_FAILED
            result.creation_error = True

        results.append(result)

    return PlacementAttempt(ctx.element.id, ctx.view.id,
                            reason=_failure_reason(results), results=results)


def _failure_reason(results):
    attempted = [r for r in results if r.status != STATUS_NOT_APPLICABLE]
    if not attempted:
        return REASON_NOT_ATTEMPTED
    details = "; ".join(f"{r.approach}: {r.reason}" for r in attempted)
    if any(r.creation_error for r in attempted):
        return f"{REASON_REJECTED} ({details})"
    return f"{REASON_NO_FACE} ({details})"
