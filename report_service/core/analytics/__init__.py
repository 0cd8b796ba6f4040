"""
Analytics: statistics, outliers, trends and insights over result rows
"""
from .insights import analyze_data_for_insights
from .outliers import detect_anomalies_mad, detect_anomalies_zscore, detect_outliers
from .service import AnalyticsService
from .statistics import correlation_matrix, correlation_strength, describe_values, numeric_columns
from .trends import detect_trend

__all__ = [
    "AnalyticsService",
    "analyze_data_for_insights",
    "correlation_matrix",
    "correlation_strength",
    "describe_values",
    "detect_anomalies_mad",
    "detect_anomalies_zscore",
    "detect_outliers",
    "detect_trend",
    "numeric_columns",
]
