"""
Utility functions for Synapse Memory System
Copyright 2025 Jurden Bruce
"""

import json
import math
import time
import traceback
from datetime import datetime, timedelta
from typing import Any, Dict, List, Sequence, Union

MAX_ERROR_LOG = 100


def now_ms() -> int:
    """Current wall-clock time as integer epoch milliseconds"""
    return int(time.time() * 1000)


def normalize_entity(name: str) -> str:
    """Node id for an entity label (case-insensitive key)"""
    return name.strip().lower()


def normalize_relation(relation: str) -> str:
    """Canonical upper-case predicate"""
    return relation.strip().upper()


def to_milliseconds(duration: Union[int, float, timedelta]) -> int:
    """Convert a duration (seconds or timedelta) to milliseconds"""
    if isinstance(duration, timedelta):
        return int(duration.total_seconds() * 1000)
    return int(float(duration) * 1000)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 when either vector has zero magnitude or the lengths differ,
    so ranking never raises on degenerate input. Each vector is scaled by its
    largest component first so very large or very small values neither
    overflow nor underflow.
    """
    if len(a) != len(b) or not a:
        return 0.0

    scale_a = max(abs(x) for x in a)
    scale_b = max(abs(y) for y in b)
    if scale_a == 0 or scale_b == 0:
        return 0.0
    a = [x / scale_a for x in a]
    b = [y / scale_b for y in b]

    dot = 0.0
    sum_a = 0.0
    sum_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        sum_a += x * x
        sum_b += y * y

    mag_a = math.sqrt(sum_a)
    mag_b = math.sqrt(sum_b)
    if mag_a == 0 or mag_b == 0:
        return 0.0
    return dot / (mag_a * mag_b)


def log_error(error_log: List[Dict[str, Any]], operation: str, error: Exception):
    """Append detailed error information to a shared, bounded error log"""
    error_entry = {
        "timestamp": datetime.now().isoformat(),
        "operation": operation,
        "error_type": type(error).__name__,
        "error_msg": str(error),
        "traceback": traceback.format_exc(),
    }
    error_log.append(error_entry)
    if len(error_log) > MAX_ERROR_LOG:
        del error_log[:-MAX_ERROR_LOG]


class DateTimeEncoder(json.JSONEncoder):
    """JSON encoder that handles datetime objects"""
    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)
