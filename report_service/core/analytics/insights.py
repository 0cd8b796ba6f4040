"""
Rule-based insight extraction from result rows
"""
import logging
from collections import Counter
from typing import Any, Dict, List, Optional

import pandas as pd

from ...models import (
    CategoricalDistributionInsight,
    CategoryShare,
    CorrelationPair,
    CorrelationsInsight,
    DataCompletenessInsight,
    DominantCategoryInsight,
    Insight,
    NumericSummaryInsight,
    OutliersInsight,
    PromptAnalysis,
    TimeRangeInsight,
)
from ..enrichment.column_metadata import classify_value
from ..enrichment.foreign_keys import is_id_column
from .outliers import detect_anomalies_zscore
from .statistics import correlation_strength, numeric_columns, numeric_values, pairwise_correlations

logger = logging.getLogger(__name__)

MAX_CATEGORIES = 20
TOP_CATEGORIES = 5
NOTABLE_CORRELATION = 0.5
DOMINANT_SHARE = 0.5
MAX_OUTLIER_VALUES = 10


def categorical_columns(rows: List[Dict[str, Any]], exclude: List[str]) -> List[str]:
    """Non-numeric, non-id columns with between 2 and 20 distinct values"""
    columns = []
    for column in rows[0].keys():
        if column in exclude or is_id_column(column):
            continue
        distinct = {str(row.get(column)) for row in rows if row.get(column) is not None}
        if 1 < len(distinct) <= MAX_CATEGORIES:
            columns.append(column)
    return columns


def date_columns(rows: List[Dict[str, Any]]) -> List[str]:
    """Columns whose first non-null value reads as a date"""
    columns = []
    for column in rows[0].keys():
        value = next((row.get(column) for row in rows if row.get(column) is not None), None)
        if value is not None and classify_value(column, value) == "date":
            columns.append(column)
    return columns


def numeric_summary(rows: List[Dict[str, Any]], column: str) -> Optional[NumericSummaryInsight]:
    values = numeric_values(rows, column)
    if not values:
        return None
    total = sum(values)
    return NumericSummaryInsight(
        field=column,
        min=min(values),
        max=max(values),
        avg=total / len(values),
        sum=total
    )


def categorical_distribution(rows: List[Dict[str, Any]], column: str) -> Optional[CategoricalDistributionInsight]:
    counts = Counter(str(row.get(column)) for row in rows if row.get(column) is not None)
    total = sum(counts.values())
    if total == 0:
        return None
    top = [
        CategoryShare(value=value, count=count, percentage=f"{count / total * 100:.1f}%")
        for value, count in counts.most_common(TOP_CATEGORIES)
    ]
    return CategoricalDistributionInsight(field=column, uniqueValues=len(counts), topValues=top)


def dominant_category(rows: List[Dict[str, Any]], column: str) -> Optional[DominantCategoryInsight]:
    counts = Counter(str(row.get(column)) for row in rows if row.get(column) is not None)
    total = sum(counts.values())
    if total == 0:
        return None
    value, count = counts.most_common(1)[0]
    share = count / total
    if share <= DOMINANT_SHARE:
        return None
    return DominantCategoryInsight(field=column, value=value, share=round(share, 4))


def notable_correlations(rows: List[Dict[str, Any]], columns: List[str]) -> Optional[CorrelationsInsight]:
    pairs = []
    for key, result in pairwise_correlations(rows, columns).items():
        if abs(result["coefficient"]) < NOTABLE_CORRELATION:
            continue
        first, second = key.split("_vs_", 1)
        pairs.append(CorrelationPair(
            fields=[first, second],
            coefficient=round(result["coefficient"], 4),
            strength=correlation_strength(result["coefficient"])
        ))
    if not pairs:
        return None
    pairs.sort(key=lambda pair: abs(pair.coefficient), reverse=True)
    return CorrelationsInsight(pairs=pairs)


def column_outliers(rows: List[Dict[str, Any]], column: str) -> Optional[OutliersInsight]:
    detected = detect_anomalies_zscore(rows, column)
    if not detected["outliers"]:
        return None
    values = numeric_values(detected["outliers"], column)
    return OutliersInsight(
        field=column,
        method="zscore",
        count=len(detected["outliers"]),
        values=values[:MAX_OUTLIER_VALUES]
    )


def time_range(rows: List[Dict[str, Any]], column: str) -> Optional[TimeRangeInsight]:
    parsed = pd.to_datetime(pd.Series([row.get(column) for row in rows], dtype="object"),
                            errors="coerce", utc=True).dropna()
    if parsed.empty:
        return None
    start, end = parsed.min(), parsed.max()
    return TimeRangeInsight(
        field=column,
        start=start.isoformat(),
        end=end.isoformat(),
        spanDays=int((end - start).days)
    )


def data_completeness(rows: List[Dict[str, Any]]) -> DataCompletenessInsight:
    columns = list(rows[0].keys())
    missing = {
        column: sum(1 for row in rows if row.get(column) is None or row.get(column) == "")
        for column in columns
    }
    cells = len(rows) * len(columns)
    filled = cells - sum(missing.values())
    return DataCompletenessInsight(
        completeness=round(filled / cells, 4) if cells else 1.0,
        missingByField={column: count for column, count in missing.items() if count}
    )


def analyze_data_for_insights(
    rows: List[Dict[str, Any]],
    analysis: Optional[PromptAnalysis] = None
) -> List[Insight]:
    """
    Derive typed insights from the rows without calling the model.

    Args:
        rows: Result rows
        analysis: Prompt analysis, used to put requested metrics first

    Returns:
        List of insight models, empty for empty input
    """
    if not rows:
        return []

    logger.info(f"Analyzing {len(rows)} rows for insights")
    numeric = numeric_columns(rows)
    if analysis is not None and analysis.intentClassification.metrics:
        requested = {str(metric).lower() for metric in analysis.intentClassification.metrics}
        numeric.sort(key=lambda column: column.lower() not in requested)
    categorical = categorical_columns(rows, exclude=numeric)
    dates = date_columns(rows)

    insights: List[Insight] = []
    for column in numeric:
        summary = numeric_summary(rows, column)
        if summary:
            insights.append(summary)
    for column in categorical:
        if column in dates:
            continue
        distribution = categorical_distribution(rows, column)
        if distribution:
            insights.append(distribution)
        dominant = dominant_category(rows, column)
        if dominant:
            insights.append(dominant)

    correlations = notable_correlations(rows, numeric)
    if correlations:
        insights.append(correlations)

    for column in numeric:
        outliers = column_outliers(rows, column)
        if outliers:
            insights.append(outliers)

    for column in dates:
        span = time_range(rows, column)
        if span:
            insights.append(span)

    insights.append(data_completeness(rows))
    return insights
