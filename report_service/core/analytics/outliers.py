"""
Outlier detection for numeric result columns
"""
import logging
from typing import Any, Dict, List

import numpy as np

from ..enrichment.column_metadata import parse_number

logger = logging.getLogger(__name__)

Z_SCORE_THRESHOLD = 2.5
MAD_THRESHOLD = 3.5
IQR_MIN_POINTS = 4
ROBUST_Z_FACTOR = 0.6745


def _no_outliers(rows: List[Dict[str, Any]], **stats) -> Dict[str, Any]:
    return {"outliers": [], "normalData": list(rows), "stats": stats}


def _split(rows: List[Dict[str, Any]], column: str, flagged: set) -> Dict[str, List[Dict[str, Any]]]:
    outliers, normal = [], []
    for index, row in enumerate(rows):
        (outliers if index in flagged else normal).append(row)
    return {"outliers": outliers, "normalData": normal}


def _indexed_numbers(rows: List[Dict[str, Any]], column: str):
    indices, values = [], []
    for index, row in enumerate(rows):
        number = parse_number(row.get(column))
        if number is not None:
            indices.append(index)
            values.append(number)
    return indices, np.asarray(values, dtype=float)


def detect_anomalies_zscore(
    rows: List[Dict[str, Any]],
    column: str,
    threshold: float = Z_SCORE_THRESHOLD
) -> Dict[str, Any]:
    """
    Flag values far from the rest of the column using a robust z-score.

    The score is ``0.6745 * |x - median| / MAD``, so a single extreme value
    cannot inflate the spread it is measured against. No outliers are
    reported with fewer than three values or when the MAD is zero.

    Args:
        rows: Result rows
        column: Numeric column
        threshold: Absolute z-score above which a value is an outlier

    Returns:
        Dict with outlier rows, normal rows and the statistics used
    """
    indices, values = _indexed_numbers(rows, column)
    n = len(values)
    if n < 3:
        return _no_outliers(rows, count=n, threshold=threshold)

    median = float(np.median(values))
    mad = float(np.median(np.abs(values - median)))
    if mad == 0:
        return _no_outliers(rows, count=n, median=median, mad=mad, threshold=threshold)

    scores = ROBUST_Z_FACTOR * np.abs(values - median) / mad
    flagged = {indices[i] for i in range(n) if scores[i] > threshold}
    result = _split(rows, column, flagged)
    result["stats"] = {"count": n, "median": median, "mad": mad, "threshold": threshold}
    return result


def detect_anomalies_mad(
    rows: List[Dict[str, Any]],
    column: str,
    threshold: float = MAD_THRESHOLD
) -> Dict[str, Any]:
    """
    Flag values whose distance from the median exceeds ``threshold`` MADs.

    MAD is the median absolute deviation from the median. No outliers are
    reported with fewer than two values or a MAD of zero.
    """
    indices, values = _indexed_numbers(rows, column)
    n = len(values)
    if n < 2:
        return _no_outliers(rows, count=n, threshold=threshold)

    median = float(np.median(values))
    mad = float(np.median(np.abs(values - median)))
    if mad == 0:
        return _no_outliers(rows, count=n, median=median, mad=mad, threshold=threshold)

    scores = np.abs(values - median) / mad
    flagged = {indices[i] for i in range(n) if scores[i] > threshold}
    result = _split(rows, column, flagged)
    result["stats"] = {"count": n, "median": median, "mad": mad, "threshold": threshold}
    return result


def detect_outliers(rows: List[Dict[str, Any]], column: str) -> Dict[str, Any]:
    """
    Tukey fences: values beyond 1.5 IQR outside the quartiles.

    Fewer than four values give no outliers and all rows as normal data.
    """
    if len(rows) < IQR_MIN_POINTS:
        return _no_outliers(rows)

    indices, values = _indexed_numbers(rows, column)
    if len(values) < IQR_MIN_POINTS:
        return _no_outliers(rows)

    ordered = np.sort(values)
    q1 = float(ordered[int(len(ordered) * 0.25)])
    q3 = float(ordered[int(len(ordered) * 0.75)])
    iqr = q3 - q1
    lower = q1 - 1.5 * iqr
    upper = q3 + 1.5 * iqr

    flagged = {indices[i] for i, value in enumerate(values) if value < lower or value > upper}
    result = _split(rows, column, flagged)
    result["stats"] = {"q1": q1, "q3": q3, "lower": lower, "upper": upper}
    return result


def detect_anomalies_multiple_fields(
    rows: List[Dict[str, Any]],
    columns: List[str],
    method: str = "zscore"
) -> Dict[str, Dict[str, Any]]:
    detectors = {"zscore": detect_anomalies_zscore, "mad": detect_anomalies_mad}
    detector = detectors.get(method, detect_outliers)
    return {column: detector(rows, column) for column in columns}
