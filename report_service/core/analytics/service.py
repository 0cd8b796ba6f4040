"""
Analytics Service - statistics, calculations and decision processing
"""
import logging
from typing import Any, Dict, List, Optional

import pandas as pd

from ...models import AnalysisDecisions, AnalysisStrategy, PromptAnalysis
from ..enrichment.column_metadata import classify_value
from .outliers import detect_anomalies_zscore
from .statistics import describe_values, numeric_columns, numeric_values, pairwise_correlations
from .trends import detect_trend

logger = logging.getLogger(__name__)

AGGREGATE_TRIGGERS = ("statistic", "basic", "summary", "aggregate")
CORRELATION_TRIGGERS = ("correlation",)
TIME_SERIES_TRIGGERS = ("trend", "time", "growth")
LOW_SUFFICIENCY = 0.5
TREND_INTENTS = ("trend", "temporal", "time")
ANOMALY_INTENTS = ("anomal", "outlier", "diagnostic")


def _requested(calculations: List[str], triggers) -> bool:
    lowered = [str(calculation).lower() for calculation in calculations]
    return any(trigger in calculation for calculation in lowered for trigger in triggers)


def _first_date_column(rows: List[Dict[str, Any]]) -> Optional[str]:
    for column in rows[0].keys():
        value = next((row.get(column) for row in rows if row.get(column) is not None), None)
        if value is not None and classify_value(column, value) == "date":
            return column
    return None


class AnalyticsService:
    """Computes statistics and derived fields over result rows"""

    def compute_statistics(
        self,
        rows: List[Dict[str, Any]],
        requested_calculations: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """
        Run the calculations named in ``requested_calculations``.

        Args:
            rows: Result rows
            requested_calculations: Free-text names such as "basic statistics",
                "correlation analysis" or "growth trend"

        Returns:
            Dict with aggregates, correlations and timeSeries; sections that
            were not requested are empty
        """
        results: Dict[str, Any] = {"aggregates": {}, "correlations": {}, "timeSeries": {}}
        if not rows:
            return results

        calculations = requested_calculations or []
        columns = numeric_columns(rows)
        logger.info(f"Computing {calculations} over {len(rows)} rows, numeric columns: {columns}")

        if _requested(calculations, AGGREGATE_TRIGGERS):
            for column in columns:
                results["aggregates"][column] = describe_values(numeric_values(rows, column))

        if _requested(calculations, CORRELATION_TRIGGERS) and len(columns) > 1:
            results["correlations"] = pairwise_correlations(rows, columns)

        if _requested(calculations, TIME_SERIES_TRIGGERS):
            time_column = _first_date_column(rows)
            if time_column:
                for column in columns:
                    results["timeSeries"][column] = detect_trend(rows, column, time_column)
            else:
                logger.info("Time series requested but no date column found")

        return results

    def enrich_data_with_calculations(
        self,
        rows: List[Dict[str, Any]],
        calculations: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """
        Add ``<column>_vs_mean`` and ``<column>_z_score`` from computed aggregates.

        Only numeric cells get derived values; the z-score is skipped for
        columns without spread.
        """
        aggregates = (calculations or {}).get("aggregates") or {}
        enriched = [dict(row) for row in rows]
        if not aggregates:
            return enriched

        for row in enriched:
            for column, stats in aggregates.items():
                value = row.get(column)
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    continue
                mean = stats.get("mean")
                if mean is None:
                    continue
                row[f"{column}_vs_mean"] = value - mean
                std = stats.get("stdDev") or 0
                if std > 0:
                    row[f"{column}_z_score"] = (value - mean) / std
        return enriched

    def process_decisions(
        self,
        decisions: Optional[AnalysisDecisions],
        rows: List[Dict[str, Any]]
    ) -> Dict[str, List[Dict[str, Any]]]:
        """Turn analysis decisions into insights, recommendations and follow-ups"""
        decisions = decisions or AnalysisDecisions()
        results: Dict[str, List[Dict[str, Any]]] = {
            "insights": [],
            "recommendations": [],
            "additionalAnalyses": [],
        }

        results["insights"].append({
            "type": "summary",
            "content": f"Analysis of {len(rows)} records shows key patterns in the data."
        })

        assessment = decisions.dataAssessment
        if assessment.qualityIssues:
            results["recommendations"].append({
                "type": "dataQuality",
                "content": "Data quality issues were detected that may affect analysis results."
            })
        if assessment.sufficiencyScore < LOW_SUFFICIENCY:
            results["recommendations"].append({
                "type": "dataSufficiency",
                "content": "The available data may not be sufficient to fully answer the question."
            })

        techniques = [str(t).lower() for t in decisions.analysisStrategy.recommendedTechniques]
        if rows and any("outlier" in t or "anomal" in t for t in techniques):
            for column in numeric_columns(rows):
                detected = detect_anomalies_zscore(rows, column)
                if detected["outliers"]:
                    results["additionalAnalyses"].append({
                        "type": "outliers",
                        "field": column,
                        "count": len(detected["outliers"]),
                    })
        if rows and any("trend" in t for t in techniques):
            time_column = _first_date_column(rows)
            if time_column:
                for column in numeric_columns(rows):
                    results["additionalAnalyses"].append({
                        "type": "trend",
                        "field": column,
                        **detect_trend(rows, column, time_column),
                    })

        return results

    def techniques_from_prompt_analysis(self, analysis: Optional[PromptAnalysis]) -> List[str]:
        """Analysis techniques implied by the reading of the question"""
        if analysis is None:
            return []
        intent = analysis.intentClassification.type.lower()
        techniques = []
        if any(word in intent for word in TREND_INTENTS) or analysis.entitiesAndRelationships.timePeriods:
            techniques.append("trend analysis")
        if analysis.complexityAssessment.requiresAdvancedAnalysis or any(word in intent for word in ANOMALY_INTENTS):
            techniques.append("outlier detection")
        return techniques

    def process_prompt_analysis(
        self,
        analysis: Optional[PromptAnalysis],
        rows: List[Dict[str, Any]]
    ) -> Dict[str, List[Dict[str, Any]]]:
        """``process_decisions`` driven by the prompt analysis instead of the planner"""
        techniques = self.techniques_from_prompt_analysis(analysis)
        decisions = AnalysisDecisions(analysisStrategy=AnalysisStrategy(recommendedTechniques=techniques))
        return self.process_decisions(decisions, rows)

    def statistical_summary(self, rows: List[Dict[str, Any]]) -> Dict[str, Dict[str, float]]:
        """pandas ``describe`` over the numeric columns, keyed by column"""
        columns = numeric_columns(rows)
        if not columns:
            return {}
        frame = pd.DataFrame({column: pd.to_numeric(pd.Series([row.get(column) for row in rows]),
                                                    errors="coerce") for column in columns})
        described = frame.describe()
        return {
            column: {stat: float(value) for stat, value in described[column].items() if pd.notna(value)}
            for column in described.columns
        }
