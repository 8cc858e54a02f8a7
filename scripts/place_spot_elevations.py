#!/usr/bin/env python3
"""
Place spot elevations on model elements across section views.
Pipeline: stdin JSON -> document -> batch placement -> match log (+PDF) -> stdout JSON

Input via stdin:
{
  "mode": "directional" | "any_face" | "single",
  "model": {"elements": [...], "views": [...], "active_view": "..."},
  "file": "model.FCStd",            # optional: FreeCAD/STEP geometry
  "selection": ["W1", "W2"],
  "pick": {"element": "W1", "reference": "W1:face0", "point": [x, y, z]},
  "direction": "Left Face",
  "side": "left",
  "settings": {...},                # overrides for configs/spot_elevation.toml
  "settings_file": "path.toml"
}
"""

import os
import sys
import traceback

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from _bootstrap import log, read_input, respond, respond_error
from _batch_placer import (place_batch, place_single, PlacementAborted,
                           MODE_DIRECTIONAL, MODE_SINGLE, MODES)
from _host_model import MemoryDocument
from _match_log import write_match_log
from _settings import load_settings, resolve_output_path


def load_document(request):
    model_cfg = request.get("model", {})
    if request.get("file"):
        from _freecad_host import load_document as load_freecad_document
        return load_freecad_document(request["file"], model_cfg)
    return MemoryDocument.from_config(model_cfg)


def run(request):
    """Run one placement request and return the response payload.

    Raises PlacementAborted for missing/cancelled input.
    """
    settings = load_settings(request.get("settings_file"),
                             request.get("settings"))
    mode = request.get("mode", MODE_DIRECTIONAL)
    if mode not in MODES:
        raise PlacementAborted(f"Unknown mode '{mode}' "
                               f"(expected one of: {', '.join(MODES)})")

    doc = load_document(request)
    match_log = []

    if mode == MODE_SINGLE:
        report = place_single(doc, settings=settings, pick=request.get("pick"),
                              side=request.get("side", "left"),
                              match_log=match_log)
    else:
        report = place_batch(doc, request.get("selection"),
                             settings=settings,
                             pick=request.get("pick"),
                             direction=request.get("direction"),
                             side=request.get("side", "left"),
                             mode=mode,
                             match_log=match_log)

    report_cfg = settings["report"]
    max_failures = report_cfg["max_failures"]
    payload = report.to_dict(max_failures)

    response = {"success": True}
    response.update(payload)

    log_path = resolve_output_path(report_cfg["match_log"])
    response["match_log"] = write_match_log(match_log, log_path)
    log(f"  Match log: {response['match_log']} ({len(match_log)} record(s))")

    if report_cfg.get("pdf"):
        from _report_renderer import render_report
        pdf_path = str(resolve_output_path(report_cfg["pdf"]))
        try:
            render_report(payload, [m.to_dict() for m in match_log], pdf_path,
                          report_cfg.get("style"))
            response["report_pdf"] = pdf_path
            log(f"  Report PDF: {pdf_path}")
        except Exception as e:
            log(f"  Report PDF failed: {e}")
            response["report_pdf_error"] = str(e)

    return response


def main():
    try:
        request = read_input()
        respond(run(request))
    except PlacementAborted as e:
        log(f"Aborted: {e}")
        respond_error(str(e))
    except Exception as e:
        respond_error(str(e), traceback.format_exc())


if __name__ == "__main__":
    main()
