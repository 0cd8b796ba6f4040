"""
Trend detection over time-ordered rows
"""
import logging
from typing import Any, Dict, List

import numpy as np
import pandas as pd

from ..enrichment.column_metadata import parse_number

logger = logging.getLogger(__name__)

STABLE_SLOPE = 0.01
STRONG_SLOPE = 0.1


def classify_slope(slope: float) -> str:
    if abs(slope) < STABLE_SLOPE:
        return "stable"
    if slope > 0:
        return "strong increase" if slope > STRONG_SLOPE else "slight increase"
    return "strong decrease" if slope < -STRONG_SLOPE else "slight decrease"


def percent_change(first: float, last: float) -> float:
    """Change from first to last in percent; 100 when rising from zero"""
    if first != 0:
        return (last - first) / first * 100
    if last != 0:
        return 100.0
    return 0.0


def detect_trend(rows: List[Dict[str, Any]], value_column: str, time_column: str) -> Dict[str, Any]:
    """
    Direction of a value over time.

    Rows are ordered by ``time_column`` and the least-squares slope of the
    value against position decides the label.

    Args:
        rows: Result rows
        value_column: Numeric column
        time_column: Date/time column

    Returns:
        Dict with trend, slope, firstValue, lastValue and changePercent
    """
    if len(rows) < 3:
        return {"trend": "insufficient data"}

    frame = pd.DataFrame({
        "time": pd.to_datetime([row.get(time_column) for row in rows], errors="coerce"),
        "value": [parse_number(row.get(value_column)) for row in rows],
    })
    frame = frame.sort_values("time", kind="stable", na_position="last")
    values = frame["value"].dropna().to_numpy(dtype=float)

    if len(values) < 3:
        return {"trend": "insufficient valid data"}

    positions = np.arange(len(values), dtype=float)
    slope = float(np.polyfit(positions, values, 1)[0])

    return {
        "trend": classify_slope(slope),
        "slope": slope,
        "firstValue": float(values[0]),
        "lastValue": float(values[-1]),
        "changePercent": percent_change(float(values[0]), float(values[-1])),
    }
