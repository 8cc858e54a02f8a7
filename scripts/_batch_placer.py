"""
Batch spot elevation placement across section views.

Per run:  views x selected elements, one transaction per view.
Per pair: approach chain -> leader geometry -> create annotation -> record.

A failure on one (element, view) pair never stops the others; only missing
inputs (no views, no selection, no pick, bad direction) abort the run, and
they do so before the document is touched.
"""

from _bootstrap import log
from _face_sampler import sample_point
from _leader import leader_for_view
from _placement_report import BatchReport
from _spot_strategy import (PlacementContext, PlacementAttempt, TemplatePick,
                            build_chain, run_approach_chain,
                            APPROACH_EXACT, APPROACH_TRANSFORM,
                            APPROACH_ANY_FACE)
from _transform import resolve_direction, resolve_side

MODE_DIRECTIONAL = "directional"
MODE_SINGLE = "single"
MODE_ANY_FACE = "any_face"
MODES = (MODE_DIRECTIONAL, MODE_SINGLE, MODE_ANY_FACE)


class PlacementAborted(ValueError):
    """Missing or cancelled input; nothing was created."""


# -- Input resolution -----------------------------------------------------------

def collect_section_views(doc, views_cfg=None):
    """Views of the configured type(s), optionally non-template/printable."""
    cfg = views_cfg or {}
    view_types = cfg.get("view_types", ["section"])
    if isinstance(view_types, str):
        view_types = [view_types]
    view_types = {t.lower() for t in view_types}
    include_templates = cfg.get("include_templates", False)
    require_printable = cfg.get("require_printable", True)

    views = []
    for view in doc.views:
        if str(view.view_type).lower() not in view_types:
            continue
        if view.is_template and not include_templates:
            continue
        if require_printable and not view.printable:
            continue
        views.append(view)
    return views


def resolve_selection(doc, element_ids):
    """Selected elements in selection order, each id once."""
    if not element_ids:
        raise PlacementAborted("No elements selected.")
    elements = []
    for eid in dict.fromkeys(element_ids):
        try:
            elements.append(doc.element(eid))
        except KeyError as e:
            raise PlacementAborted(f"Selected element not found: {eid}") from e
    return elements


def resolve_pick(doc, pick):
    """Turn a face pick into a TemplatePick.

    pick: {"element": id, "reference": ref | "face_index": n,
           "point": [x, y, z] (optional), "cancelled": bool}
    Without a point, the face's UV-midpoint is used.
    """
    if not pick:
        raise PlacementAborted("No face was selected.")
    if pick.get("cancelled"):
        raise PlacementAborted("Face selection was cancelled.")

    reference = pick.get("reference")
    if reference is None and "face_index" in pick:
        element = doc.element(pick["element"])
        faces = [f for s in element.solids for f in s.faces]
        idx = int(pick["face_index"])
        if not 0 <= idx < len(faces):
            raise PlacementAborted(f"Face index {idx} out of range for "
                                   f"element {element.id}")
        reference = faces[idx].reference
    if reference is None:
        raise PlacementAborted("No face was selected.")

    resolved = doc.resolve_reference(reference)
    if resolved is None:
        raise PlacementAborted(f"Picked face does not resolve: {reference}")
    element, face = resolved
    if pick.get("element") is not None and pick["element"] != element.id:
        raise PlacementAborted(f"Picked face {reference} does not belong to "
                               f"element {pick['element']}")

    point = pick.get("point")
    if point is None:
        point = sample_point(face)
        if point is None:
            raise PlacementAborted("Could not determine a point on the "
                                   "selected face.")
    return TemplatePick(element, reference, point)


def geometry_options(settings):
    return {
        "detail_level": settings["matching"].get("detail_level", "fine"),
        "compute_references": True,
        "include_non_visible": False,
    }


def approaches_for_mode(mode, settings):
    if mode == MODE_ANY_FACE:
        return [APPROACH_ANY_FACE]
    if mode == MODE_SINGLE:
        return [APPROACH_EXACT]
    names = [APPROACH_EXACT, APPROACH_TRANSFORM]
    if settings["matching"].get("fallback_any_face", True):
        names.append(APPROACH_ANY_FACE)
    return names


def _check_spot_type(doc, report):
    if doc.spot_elevation_type() is None:
        msg = "No spot elevation type found. Using default."
        log(f"  WARNING: {msg}")
        report.diagnostic(msg)


# -- Placement -------------------------------------------------------------------

def _placer(doc, view, side, leader_cfg):
    """fn(FaceMatch) -> annotation for one view."""
    def place(face_match):
        anchor = face_match.point
        bend, end = leader_for_view(view, side, anchor, leader_cfg)
        return doc.create_spot_elevation(view, face_match.reference, anchor,
                                         bend, end, anchor, True)
    return place


def _apply_style(doc, annotation, style, report):
    """Cosmetic parameter overrides; failures are diagnostics only."""
    for name, value in (style or {}).items():
        try:
            doc.set_annotation_parameter(annotation, name, value)
        except Exception as e:
            msg = (f"Style '{name}' on spot {getattr(annotation, 'id', '?')}: "
                   f"{type(e).__name__}: {e}")
            log(f"    {msg}")
            report.diagnostic(msg)


def _place_view(doc, view, elements, chain, make_ctx, side, settings, report):
    """All elements in one view inside one transaction.

    Attempts are merged into the report only after commit; if the view's
    transaction rolls back, its successes are re-recorded as failures.
    """
    detail_level = settings["matching"].get("detail_level", "fine")
    attempts = []
    diagnostics = []

    try:
        with doc.transaction(f"Spot elevations: {view.name}"):
            try:
                doc.prepare_view(view, detail_level)
            except Exception as e:
                msg = (f"View '{view.name}' preparation failed: "
                       f"{type(e).__name__}: {e}")
                log(f"  {msg}")
                diagnostics.append(msg)

            place = _placer(doc, view, side, settings["leader"])
            for element in elements:
                try:
                    attempt = run_approach_chain(chain, make_ctx(view, element),
                                                 place)
                except Exception as e:
                    attempt = PlacementAttempt(
                        element.id, view.id,
                        reason=f"{type(e).__name__}: {e}")
                if attempt.succeeded:
                    log(f"    {element.name}: OK via {attempt.approach}")
                else:
                    log(f"    {element.name}: FAILED ({attempt.reason})")
                attempts.append((element, attempt))
    except Exception as e:
        msg = f"View '{view.name}' rolled back: {type(e).__name__}: {e}"
        log(f"  {msg}")
        diagnostics.append(msg)
        for i, (element, attempt) in enumerate(attempts):
            if attempt.succeeded:
                attempts[i] = (element, PlacementAttempt(
                    element.id, view.id, reason=msg, results=attempt.results))

    for msg in diagnostics:
        report.diagnostic(msg)
    for element, attempt in attempts:
        report.record(attempt, element.name, view.name)
        if attempt.succeeded:
            _apply_style(doc, attempt.annotation, settings.get("style"), report)


def place_batch(doc, element_ids, *, settings, pick=None, direction=None,
                side="left", mode=MODE_DIRECTIONAL, match_log=None):
    """Place spot elevations for every selected element in every section view.

    Args:
        doc: document collaborator
        element_ids: selected element ids, in selection order
        settings: merged settings dict (see _settings.load_settings)
        pick: face pick on the template element (directional mode)
        direction: local direction token, e.g. "Left Face"
        side: "left" / "right" / bool / signed number
        mode: "directional" or "any_face"
        match_log: list receiving MatchOutcomes (created if None)

    Returns: BatchReport (match outcomes in report.match_outcomes)
    """
    if mode not in (MODE_DIRECTIONAL, MODE_ANY_FACE):
        raise PlacementAborted(f"Unsupported batch mode '{mode}'")

    # All input checks happen before the first transaction
    views = collect_section_views(doc, settings["views"])
    if not views:
        raise PlacementAborted("No section views found in the document.")
    elements = resolve_selection(doc, element_ids)
    try:
        side_sign = resolve_side(side)
        template = None
        target = None
        if mode == MODE_DIRECTIONAL:
            template = resolve_pick(doc, pick)
            target = resolve_direction(direction)
    except PlacementAborted:
        raise
    except (ValueError, KeyError) as e:
        raise PlacementAborted(str(e)) from e

    if match_log is None:
        match_log = []
    report = BatchReport(mode)
    report.match_outcomes = match_log
    _check_spot_type(doc, report)

    chain = build_chain(approaches_for_mode(mode, settings))
    options = geometry_options(settings)
    allow_anti = settings["matching"].get("allow_anti_aligned", True)

    def make_ctx(view, element):
        return PlacementContext(doc, view, element, template=template,
                                direction=target, options=options,
                                allow_anti_aligned=allow_anti,
                                match_log=match_log)

    log(f"Placing spot elevations: {len(elements)} element(s) x "
        f"{len(views)} view(s), mode={mode}")
    for view in views:
        report.add_view(view)
        log(f"  View '{view.name}'")
        _place_view(doc, view, elements, chain, make_ctx, side_sign,
                    settings, report)

    log(f"Done: {report.total_success}/{report.attempted} placed")
    return report


def place_single(doc, *, settings, pick, side="left", match_log=None):
    """One spot elevation on the picked face in the active view."""
    view = doc.active_view
    if view is None:
        raise PlacementAborted("No active view found.")
    try:
        side_sign = resolve_side(side)
        template = resolve_pick(doc, pick)
    except PlacementAborted:
        raise
    except (ValueError, KeyError) as e:
        raise PlacementAborted(str(e)) from e

    if match_log is None:
        match_log = []
    report = BatchReport(MODE_SINGLE)
    report.match_outcomes = match_log
    _check_spot_type(doc, report)

    chain = build_chain(approaches_for_mode(MODE_SINGLE, settings))

    def make_ctx(v, element):
        return PlacementContext(doc, v, element, template=template,
                                options=geometry_options(settings),
                                match_log=match_log)

    report.add_view(view)
    log(f"Single spot elevation on {template.reference} in '{view.name}'")
    _place_view(doc, view, [template.element], chain, make_ctx, side_sign,
                settings, report)
    return report
