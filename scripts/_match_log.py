"""Match log: face-matcher outcomes of one batch run, written as JSON."""

import json
import os
from datetime import datetime

from _face_selector import MatchOutcome

NOTE_NO_MATCHING = "no matching performed"


def placeholder_outcome():
    return MatchOutcome(None, None, None, False, NOTE_NO_MATCHING, ())


def match_log_payload(outcomes):
    records = [o.to_dict() for o in outcomes]
    if not records:
        records = [placeholder_outcome().to_dict()]
    return {
        "timestamp": datetime.now().isoformat(timespec="seconds"),
        "count": len(outcomes),
        "records": records,
    }


def write_match_log(outcomes, path):
    """Write outcomes to `path` (directories created). Returns the path."""
    path = str(path)
    dirpath = os.path.dirname(path)
    if dirpath:
        os.makedirs(dirpath, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(match_log_payload(outcomes), f, indent=2, ensure_ascii=False)
    return path
