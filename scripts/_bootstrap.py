"""
Bootstrap module for spot elevation placement scripts.
Handles the stdin JSON request -> stdout JSON response protocol.
All progress output goes to stderr to keep stdout clean for JSON.
"""

import os
import sys
import json

import numpy as np


def log(msg):
    """Print a progress/diagnostic line to stderr."""
    print(f"[spotelev] {msg}", file=sys.stderr, flush=True)


def read_input():
    """Read the JSON request object from stdin."""
    raw_bytes = sys.stdin.buffer.read()
    if not raw_bytes.strip():
        raise ValueError("No input received on stdin")
    # Always decode stdin as UTF-8 to avoid locale-dependent surrogate escapes.
    request = json.loads(raw_bytes.decode("utf-8"))
    if not isinstance(request, dict):
        raise ValueError(f"Request must be a JSON object, got {type(request).__name__}")
    return request


def _json_default(obj):
    """numpy scalars/vectors leak into payloads from the geometry code."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def dumps(data):
    return json.dumps(data, ensure_ascii=False, default=_json_default)


def respond(data):
    """Write JSON response to stdout and exit 0."""
    print(dumps(data), flush=True)
    sys.exit(0)


def respond_error(msg, details=None):
    """Write error JSON to stdout and exit with code 1."""
    result = {"success": False, "error": str(msg)}
    if details:
        result["details"] = details
    print(dumps(result), flush=True)
    sys.exit(1)


def init_freecad():
    """Import FreeCAD, adding $FREECAD_LIB to sys.path when set.

    Only the file-based geometry source needs this; inline models never
    touch FreeCAD.
    """
    lib = os.environ.get("FREECAD_LIB")
    if lib and lib not in sys.path:
        sys.path.append(lib)
    try:
        import FreeCAD
    except ImportError as e:
        raise ImportError("FreeCAD is required to load model files "
                          "(set FREECAD_LIB to its lib directory)") from e
    log(f"FreeCAD {FreeCAD.Version()[0]}.{FreeCAD.Version()[1]} initialized")
    return FreeCAD
