"""
JSON helpers shared by the analytics modules and the API.
"""
from __future__ import annotations

import datetime as dt
import math

import numpy as np
import pandas as pd


def iso_utc(value: dt.datetime | None) -> str | None:
    """ISO-8601 with a trailing Z, or None."""
    if value is None:
        return None
    return value.astimezone(dt.timezone.utc).isoformat().replace("+00:00", "Z")


def sanitize_for_json(obj):
    """Recursively convert numpy/pandas/datetime values to native JSON types."""
    if isinstance(obj, dict):
        return {str(k): sanitize_for_json(v) for k, v in obj.items() if k is not None}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [sanitize_for_json(v) for v in obj]
    if obj is pd.NaT:
        return None
    if isinstance(obj, dt.datetime):
        return iso_utc(obj) if obj.tzinfo else obj.isoformat()
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        v = float(obj)
        return None if (math.isnan(v) or math.isinf(v)) else v
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.ndarray):
        return sanitize_for_json(obj.tolist())
    if isinstance(obj, float):
        return None if (math.isnan(obj) or math.isinf(obj)) else obj
    if pd.api.types.is_scalar(obj) and pd.isna(obj):
        return None
    return obj
