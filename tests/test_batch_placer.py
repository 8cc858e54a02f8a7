#!/usr/bin/env python3
"""Batch placement scenarios.

Tests:
  1. 3 elements x 2 section views, "Left Face", left side -> 6 attempts
  2. Section view filtering (type / template / printable)
  3. Input-absence aborts before any mutation
  4. Element without geometry in one view
  5. Failure isolation: rejected references, locked views, style errors
  6. Transaction rollback re-records successes as failures
  7. any_face and single modes
  8. Summary truncation
"""

import copy
import os
import sys
import unittest
from contextlib import contextmanager

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'scripts'))
from _batch_placer import (place_batch, place_single, collect_section_views,
                           PlacementAborted)
from _host_model import MemoryDocument, SPOT_CATEGORY
from _settings import DEFAULTS, deep_merge
from _spot_strategy import (APPROACH_EXACT, APPROACH_TRANSFORM,
                            APPROACH_ANY_FACE, REASON_REJECTED)


def _settings(**overrides):
    return deep_merge(copy.deepcopy(DEFAULTS), overrides)


def _wall(eid, rotation=0.0, origin=(0, 0, 0), **extra):
    cfg = {
        "id": eid, "family": "Basic Wall", "type": "Generic 300",
        "transform": {"origin": list(origin), "rotation_deg": rotation},
        "solids": [{"type": "box", "size": [4, 0.3, 3]}],
    }
    cfg.update(extra)
    return cfg


def _base_model(extra_elements=None, extra_views=None):
    """Three walls (0°, 90°, 180°) and two printable section views."""
    elements = [
        _wall("W1"),
        _wall("W2", rotation=90, origin=(10, 0, 0)),
        _wall("W3", rotation=180, origin=(20, 0, 0)),
    ]
    views = [
        {"id": "S1", "name": "Section 1", "view_direction": [0, -1, 0],
         "up_direction": [0, 0, 1], "hidden_categories": [SPOT_CATEGORY]},
        {"id": "S2", "name": "Section 2", "view_direction": [1, 0, 0],
         "up_direction": [0, 0, 1]},
    ]
    if extra_elements:
        elements.extend(extra_elements)
    if extra_views:
        views.extend(extra_views)
    return {"elements": elements, "views": views, "active_view": "S1"}


PICK = {"element": "W1", "reference": "W1:face0"}


def _run(model=None, selection=("W1", "W2", "W3"), settings=None, **kw):
    doc = MemoryDocument.from_config(model or _base_model())
    kw.setdefault("pick", PICK)
    kw.setdefault("direction", "Left Face")
    kw.setdefault("side", "left")
    report = place_batch(doc, list(selection), settings=settings or _settings(),
                         **kw)
    return doc, report


class TestBatchScenario(unittest.TestCase):

    def test_three_elements_two_views(self):
        doc, report = _run()
        self.assertEqual(report.attempted, 6)
        self.assertEqual(report.total_success, 6)
        self.assertEqual(sum(report.per_view.values()), report.total_success)
        self.assertEqual(report.per_view, {"S1": 3, "S2": 3})
        self.assertEqual(len(doc.annotations), 6)
        self.assertEqual(doc.committed, ["Spot elevations: Section 1",
                                         "Spot elevations: Section 2"])

    def test_approach_per_element(self):
        _, report = _run()
        approaches = {(a.element_id, a.view_id): a.approach
                      for a in report.attempts}
        self.assertEqual(approaches[("W1", "S1")], APPROACH_EXACT)
        self.assertEqual(approaches[("W2", "S1")], APPROACH_TRANSFORM)
        self.assertEqual(approaches[("W3", "S2")], APPROACH_TRANSFORM)
        # Template element is never matched, so 2 outcomes per view
        self.assertEqual(len(report.match_outcomes), 4)

    def test_selection_and_view_order(self):
        _, report = _run(selection=("W3", "W1"))
        order = [(a.view_id, a.element_id) for a in report.attempts]
        self.assertEqual(order, [("S1", "W3"), ("S1", "W1"),
                                 ("S2", "W3"), ("S2", "W1")])

    def test_repeated_selection_attempted_once_per_view(self):
        doc, report = _run(selection=("W1", "W1", "W2"))
        self.assertEqual(report.attempted, 4)
        order = [(a.view_id, a.element_id) for a in report.attempts]
        self.assertEqual(order, [("S1", "W1"), ("S1", "W2"),
                                 ("S2", "W1"), ("S2", "W2")])
        self.assertEqual(len(doc.annotations), 4)

    def test_template_reference_resolved_per_view(self):
        model = _base_model()
        model["elements"][0]["visible_in"] = ["S1"]
        settings = _settings(matching={"fallback_any_face": False})
        _, report = _run(model, selection=("W1",), settings=settings)
        self.assertEqual(report.per_view, {"S1": 1, "S2": 0})
        failed = next(a for a in report.attempts if a.view_id == "S2")
        self.assertIn("exact_reference: picked reference not found in view "
                      "geometry", failed.reason)

    def test_anchor_and_leader(self):
        doc, _ = _run(selection=("W2",))
        spot = doc.annotations[0]
        # W2 rotated 90° at x=10: its local -X face sits at world y=-2
        np.testing.assert_allclose(spot.origin, [10, -2, 0], atol=1e-9)
        # Section 1 right = +X, left side -> bend 3 to the left, 1 up
        np.testing.assert_allclose(spot.bend, [7, -2, 1], atol=1e-9)
        np.testing.assert_allclose(spot.end, [3, -2, 1], atol=1e-9)
        self.assertEqual(spot.reference, "W2:face0")

    def test_view_prepared(self):
        doc, _ = _run()
        s1 = doc.view("S1")
        self.assertEqual(s1.detail_level, "fine")
        self.assertNotIn(SPOT_CATEGORY, s1.hidden_categories)

    def test_style_applied(self):
        settings = _settings(style={"line_weight": 2, "text_scale": 0.8})
        doc, report = _run(settings=settings)
        self.assertEqual(doc.annotations[0].parameters,
                         {"line_weight": 2.0, "text_scale": 0.8})
        self.assertEqual(report.messages, [])


class TestViewFiltering(unittest.TestCase):

    def test_only_printable_non_template_sections(self):
        model = _base_model(extra_views=[
            {"id": "P1", "view_type": "plan"},
            {"id": "T1", "is_template": True},
            {"id": "N1", "printable": False},
        ])
        doc = MemoryDocument.from_config(model)
        ids = [v.id for v in collect_section_views(doc, DEFAULTS["views"])]
        self.assertEqual(ids, ["S1", "S2"])

    def test_configured_view_types(self):
        model = _base_model(extra_views=[{"id": "E1", "view_type": "elevation"}])
        doc = MemoryDocument.from_config(model)
        ids = [v.id for v in collect_section_views(
            doc, {"view_types": ["section", "elevation"]})]
        self.assertEqual(ids, ["S1", "S2", "E1"])

    def test_bare_string_view_type(self):
        doc = MemoryDocument.from_config(_base_model())
        ids = [v.id for v in collect_section_views(doc, {"view_types": "section"})]
        self.assertEqual(ids, ["S1", "S2"])


class TestInputAbsence(unittest.TestCase):

    def assert_aborts(self, model=None, **kw):
        doc = MemoryDocument.from_config(model or _base_model())
        kw.setdefault("pick", PICK)
        kw.setdefault("direction", "Left Face")
        with self.assertRaises(PlacementAborted) as cm:
            place_batch(doc, kw.pop("selection", ["W1", "W2"]),
                        settings=_settings(), **kw)
        self.assertEqual(doc.annotations, [])
        self.assertEqual(doc.committed, [])
        return cm.exception

    def test_no_section_views(self):
        model = _base_model()
        model["views"] = [{"id": "P1", "view_type": "plan"}]
        err = self.assert_aborts(model)
        self.assertIn("No section views", str(err))

    def test_no_views_no_match_outcomes(self):
        model = _base_model()
        model["views"] = []
        doc = MemoryDocument.from_config(model)
        log = []
        with self.assertRaises(PlacementAborted):
            place_batch(doc, ["W1"], settings=_settings(), pick=PICK,
                        direction="Left Face", match_log=log)
        self.assertEqual(log, [])

    def test_empty_selection(self):
        self.assert_aborts(selection=[])

    def test_unknown_selected_element(self):
        self.assert_aborts(selection=["W9"])

    def test_no_pick(self):
        self.assert_aborts(pick=None)

    def test_cancelled_pick(self):
        err = self.assert_aborts(pick={"cancelled": True})
        self.assertIn("cancelled", str(err))

    def test_bad_direction(self):
        self.assert_aborts(direction="Top Face")

    def test_bad_side(self):
        self.assert_aborts(side="sideways")


class TestFailureIsolation(unittest.TestCase):

    def test_no_geometry_in_one_view(self):
        model = _base_model()
        model["elements"][1]["visible_in"] = ["S1"]
        settings = _settings(matching={"fallback_any_face": False})
        _, report = _run(model, settings=settings)
        self.assertEqual(report.attempted, 6)
        self.assertEqual(report.total_success, 5)
        outcome = next(o for o in report.match_outcomes
                       if o.element_id == "W2" and o.view_id == "S2")
        self.assertFalse(outcome.face_found)
        self.assertEqual(outcome.note, "no geometry")
        self.assertEqual(outcome.evaluations, ())
        self.assertEqual(len(report.messages), 1)
        self.assertIn("W2 @ Section 2", report.messages[0])

    def test_rejected_reference_does_not_stop_others(self):
        model = _base_model()
        model["elements"][1]["reject_annotations"] = True
        _, report = _run(model)
        self.assertEqual(report.attempted, 6)
        self.assertEqual(report.total_success, 4)
        failed = [a for a in report.attempts if not a.succeeded]
        self.assertEqual({a.element_id for a in failed}, {"W2"})
        for a in failed:
            self.assertTrue(a.reason.startswith(REASON_REJECTED))
            # transform_match and any_face were both tried
            self.assertEqual([r.approach for r in a.results],
                             [APPROACH_EXACT, APPROACH_TRANSFORM,
                              APPROACH_ANY_FACE])

    def test_other_family_uses_any_face_fallback(self):
        door = {"id": "D1", "family": "Door", "type": "Single",
                "transform": {"origin": [5, 0, 0]},
                "solids": [{"type": "box", "size": [1, 0.1, 2]}]}
        _, report = _run(_base_model(extra_elements=[door]),
                         selection=("W1", "D1"))
        door_attempts = [a for a in report.attempts if a.element_id == "D1"]
        self.assertTrue(all(a.approach == APPROACH_ANY_FACE
                            for a in door_attempts))

    def test_other_family_without_fallback_not_attempted(self):
        door = {"id": "D1", "family": "Door",
                "solids": [{"type": "box", "size": [1, 0.1, 2]}]}
        settings = _settings(matching={"fallback_any_face": False})
        _, report = _run(_base_model(extra_elements=[door]),
                         selection=("D1",), settings=settings)
        self.assertEqual(report.total_success, 0)
        self.assertTrue(all("no approach attempted" in a.reason
                            for a in report.attempts))

    def test_locked_view_is_diagnostic_only(self):
        model = _base_model()
        model["views"][0]["locked"] = True
        _, report = _run(model)
        self.assertEqual(report.total_success, 6)
        self.assertTrue(any("preparation failed" in m for m in report.messages))

    def test_style_errors_are_diagnostics(self):
        settings = _settings(style={"glow": 3, "line_weight": 1})
        doc, report = _run(settings=settings, selection=("W1",))
        self.assertEqual(report.total_success, 2)
        self.assertEqual(len([m for m in report.messages if "glow" in m]), 2)
        self.assertEqual(doc.annotations[0].parameters, {"line_weight": 1.0})

    def test_missing_spot_type_warns(self):
        model = _base_model()
        model["spot_types"] = []
        _, report = _run(model)
        self.assertEqual(report.total_success, 6)
        self.assertIn("No spot elevation type found. Using default.",
                      report.messages)

    def test_anti_aligned_policy_configurable(self):
        # Only W3's local +X face keeps a reference: "Left Face" scores -1
        model = _base_model()
        model["elements"][2]["solids"][0]["face_flags"] = {
            "0": {"reference": False}, "2": {"reference": False},
            "3": {"reference": False}, "4": {"reference": False},
            "5": {"reference": False}}
        settings = _settings(matching={"allow_anti_aligned": False,
                                       "fallback_any_face": False})
        _, report = _run(model, selection=("W3",), settings=settings)
        self.assertEqual(report.total_success, 0)
        notes = {o.note for o in report.match_outcomes}
        self.assertEqual(notes, {"best candidate is anti-aligned (rejected)"})

        settings = _settings(matching={"fallback_any_face": False})
        _, report = _run(model, selection=("W3",), settings=settings)
        self.assertEqual(report.total_success, 2)
        self.assertTrue(all(o.face_found for o in report.match_outcomes))


class _CommitFailsDocument(MemoryDocument):
    @contextmanager
    def transaction(self, name):
        with super().transaction(name):
            yield self
            raise RuntimeError("commit failed")


class TestTransactionRollback(unittest.TestCase):

    def test_rolled_back_view_reports_failures(self):
        doc = _CommitFailsDocument.from_config(_base_model())
        report = place_batch(doc, ["W1", "W2"], settings=_settings(),
                             pick=PICK, direction="Left Face")
        self.assertEqual(report.attempted, 4)
        self.assertEqual(report.total_success, 0)
        self.assertEqual(doc.annotations, [])
        self.assertEqual(len(doc.rolled_back), 2)
        self.assertTrue(all("rolled back" in a.reason for a in report.attempts))


class TestModes(unittest.TestCase):

    def test_any_face_mode_needs_no_pick(self):
        doc = MemoryDocument.from_config(_base_model())
        report = place_batch(doc, ["W1", "W2", "W3"], settings=_settings(),
                             mode="any_face", side="right")
        self.assertEqual(report.total_success, 6)
        self.assertEqual(report.match_outcomes, [])
        self.assertTrue(all(a.approach == APPROACH_ANY_FACE
                            for a in report.attempts))

    def test_single_uses_active_view(self):
        doc = MemoryDocument.from_config(_base_model())
        report = place_single(doc, settings=_settings(),
                              pick={"element": "W1", "reference": "W1:face1",
                                    "point": [2, 0, 0.5]},
                              side="right")
        self.assertEqual(report.total_success, 1)
        spot = doc.annotations[0]
        self.assertEqual(spot.view_id, "S1")
        np.testing.assert_allclose(spot.origin, [2, 0, 0.5])
        np.testing.assert_allclose(spot.bend, [5, 0, 1.5])
        np.testing.assert_allclose(spot.end, [9, 0, 1.5])

    def test_single_without_point_uses_face_midpoint(self):
        doc = MemoryDocument.from_config(_base_model())
        place_single(doc, settings=_settings(),
                     pick={"element": "W1", "face_index": 1})
        np.testing.assert_allclose(doc.annotations[0].origin, [2, 0, 0],
                                   atol=1e-12)

    def test_single_without_active_view(self):
        model = _base_model()
        model["active_view"] = None
        doc = MemoryDocument.from_config(model)
        with self.assertRaises(PlacementAborted):
            place_single(doc, settings=_settings(), pick=PICK)

    def test_single_unevaluable_face_without_point(self):
        model = _base_model()
        model["elements"][0]["solids"][0]["face_flags"] = {
            "0": {"unevaluable": True}}
        doc = MemoryDocument.from_config(model)
        with self.assertRaises(PlacementAborted) as cm:
            place_single(doc, settings=_settings(), pick=PICK)
        self.assertIn("Could not determine a point", str(cm.exception))


class TestSummary(unittest.TestCase):

    def test_truncated_failure_list(self):
        model = _base_model()
        for e in model["elements"]:
            e["reject_annotations"] = True
        _, report = _run(model)
        self.assertEqual(report.total_success, 0)
        self.assertEqual(len(report.messages), 6)
        text = report.summary(max_failures=4)
        self.assertIn("Created 0 spot elevation(s) in 2 view(s) (6 attempted).",
                      text)
        self.assertIn("... and 2 more", text)
        self.assertEqual(text.count("\n  - "), 4)

    def test_report_dict(self):
        _, report = _run()
        d = report.to_dict()
        self.assertEqual(d["total_success"], 6)
        self.assertEqual([v["success"] for v in d["per_view"]], [3, 3])
        self.assertEqual(len(d["annotations"]), 6)
        self.assertEqual(d["match_count"], 4)


if __name__ == "__main__":
    unittest.main(verbosity=2)
