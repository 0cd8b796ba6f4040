"""
Descriptive statistics and correlation over result rows
"""
import logging
from itertools import combinations
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from ..enrichment.column_metadata import parse_number
from ..enrichment.foreign_keys import is_id_column

logger = logging.getLogger(__name__)

NUMERIC_SAMPLE_SIZE = 100
MIN_CORRELATION_PAIRS = 3


def numeric_values(rows: List[Dict[str, Any]], column: str) -> List[float]:
    """Numeric cells of a column, skipping anything that does not parse"""
    values = []
    for row in rows:
        number = parse_number(row.get(column))
        if number is not None:
            values.append(number)
    return values


def numeric_columns(rows: List[Dict[str, Any]], include_ids: bool = False) -> List[str]:
    """
    Columns whose sampled non-null values are mostly numbers.

    Numeric strings count as numbers, booleans do not.
    """
    if not rows:
        return []
    sample = rows[:NUMERIC_SAMPLE_SIZE]
    columns = []
    for column in sample[0].keys():
        if not include_ids and is_id_column(column):
            continue
        present = [row.get(column) for row in sample if row.get(column) is not None]
        if not present:
            continue
        numeric = sum(1 for value in present if parse_number(value) is not None)
        if numeric * 2 > len(present):
            columns.append(column)
    return columns


def describe_values(values: List[float]) -> Dict[str, Any]:
    """
    Summary statistics for a list of numbers.

    stdDev is the population standard deviation and is 0 below two values.
    Quartiles, IQR and mode are added from three values up.
    """
    if not values:
        return {"count": 0}

    series = pd.Series(values, dtype="float64")
    stats = {
        "count": int(series.count()),
        "sum": float(series.sum()),
        "mean": float(series.mean()),
        "median": float(series.median()),
        "min": float(series.min()),
        "max": float(series.max()),
        "stdDev": float(series.std(ddof=0)) if len(series) >= 2 else 0.0,
    }
    if len(series) >= 3:
        q1 = float(series.quantile(0.25))
        q3 = float(series.quantile(0.75))
        stats.update({
            "q1": q1,
            "q3": q3,
            "iqr": q3 - q1,
            "mode": float(series.mode().iloc[0]),
        })
    return stats


def correlation_strength(coefficient: float) -> str:
    """Label for the magnitude of a correlation coefficient"""
    magnitude = abs(coefficient)
    if magnitude >= 0.9:
        return "very strong"
    if magnitude >= 0.7:
        return "strong"
    if magnitude >= 0.5:
        return "moderate"
    if magnitude >= 0.3:
        return "weak"
    return "very weak"


def _paired_values(rows: List[Dict[str, Any]], first: str, second: str):
    xs, ys = [], []
    for row in rows:
        x = parse_number(row.get(first))
        y = parse_number(row.get(second))
        if x is not None and y is not None:
            xs.append(x)
            ys.append(y)
    return xs, ys


def pearson_correlation(xs: List[float], ys: List[float]) -> Optional[float]:
    """Pearson coefficient, or None with fewer than three pairs or no variance"""
    if len(xs) < MIN_CORRELATION_PAIRS or len(xs) != len(ys):
        return None
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    if x.std() == 0 or y.std() == 0:
        return None
    return float(np.clip(np.corrcoef(x, y)[0, 1], -1.0, 1.0))


def pairwise_correlations(rows: List[Dict[str, Any]], columns: List[str]) -> Dict[str, Dict[str, Any]]:
    """
    Correlation for every pair of numeric columns.

    Keys are ``<a>_vs_<b>``; pairs without enough data are left out.
    """
    results = {}
    for first, second in combinations(columns, 2):
        xs, ys = _paired_values(rows, first, second)
        coefficient = pearson_correlation(xs, ys)
        if coefficient is None:
            continue
        results[f"{first}_vs_{second}"] = {
            "coefficient": coefficient,
            "strength": correlation_strength(coefficient),
            "pairs": len(xs),
        }
    return results


def correlation_matrix(rows: List[Dict[str, Any]], columns: List[str]) -> Dict[str, Dict[str, Optional[float]]]:
    """
    Symmetric correlation matrix with 1.0 on the diagonal.

    Entries without enough paired data are None.
    """
    matrix: Dict[str, Dict[str, Optional[float]]] = {column: {} for column in columns}
    for column in columns:
        matrix[column][column] = 1.0
    for first, second in combinations(columns, 2):
        coefficient = pearson_correlation(*_paired_values(rows, first, second))
        matrix[first][second] = coefficient
        matrix[second][first] = coefficient
    return matrix
