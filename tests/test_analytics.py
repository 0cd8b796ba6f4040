"""
Unit tests for analytics: statistics, outliers, trends and insights
"""

import math

import pytest

from report_service.models import (
    AnalysisDecisions,
    AnalysisStrategy,
    ComplexityAssessment,
    DataAssessment,
    EntitiesAndRelationships,
    IntentClassification,
    PromptAnalysis,
)
from report_service.core.analytics import (
    AnalyticsService,
    analyze_data_for_insights,
    correlation_matrix,
    correlation_strength,
    describe_values,
    detect_anomalies_mad,
    detect_anomalies_zscore,
    detect_outliers,
    detect_trend,
    numeric_columns,
)
from report_service.core.analytics.insights import column_outliers, data_completeness
from report_service.core.analytics.outliers import detect_anomalies_multiple_fields
from report_service.core.analytics.trends import classify_slope, percent_change


def _amounts(*values):
    return [{"amount": value} for value in values]


def _sales_rows():
    return [
        {"id": 1, "region": "North", "revenue": 100, "cost": 60, "order_date": "2024-01-01"},
        {"id": 2, "region": "North", "revenue": 200, "cost": 120, "order_date": "2024-01-15"},
        {"id": 3, "region": "North", "revenue": 300, "cost": 180, "order_date": "2024-02-01"},
        {"id": 4, "region": "South", "revenue": 400, "cost": 240, "order_date": "2024-03-01"},
    ]


class TestStatistics:
    """Test cases for descriptive statistics and correlation"""

    def test_describe_values(self):
        stats = describe_values([1, 2, 3, 4])

        assert stats["count"] == 4
        assert stats["sum"] == 10
        assert stats["mean"] == 2.5
        assert stats["median"] == 2.5
        assert stats["stdDev"] == pytest.approx(math.sqrt(1.25))
        assert stats["q1"] == pytest.approx(1.75)
        assert stats["iqr"] == pytest.approx(1.5)

    def test_describe_small_inputs(self):
        assert describe_values([]) == {"count": 0}
        single = describe_values([5])
        assert single["stdDev"] == 0
        assert "q1" not in single

    def test_numeric_columns(self):
        rows = [{"id": 1, "price": "9.5", "flag": True, "name": "A"}]

        assert numeric_columns(rows) == ["price"]
        assert numeric_columns(rows, include_ids=True) == ["id", "price"]

    def test_correlation_matrix_symmetric(self):
        rows = [{"x": 1, "y": 2, "z": 3}, {"x": 2, "y": 4, "z": 2}, {"x": 3, "y": 6, "z": 1}]

        matrix = correlation_matrix(rows, ["x", "y", "z"])

        assert matrix["x"]["x"] == 1.0
        assert matrix["x"]["y"] == pytest.approx(1.0)
        assert matrix["x"]["z"] == pytest.approx(-1.0)
        assert matrix["y"]["x"] == matrix["x"]["y"]

    def test_correlation_needs_three_pairs(self):
        matrix = correlation_matrix([{"x": 1, "y": 2}, {"x": 2, "y": 5}], ["x", "y"])

        assert matrix["x"]["y"] is None

    @pytest.mark.parametrize("coefficient,label", [
        (0.95, "very strong"), (-0.75, "strong"), (0.5, "moderate"), (0.3, "weak"), (0.1, "very weak"),
    ])
    def test_correlation_strength(self, coefficient, label):
        assert correlation_strength(coefficient) == label


class TestOutliers:
    """Test cases for outlier detection"""

    def test_zscore_flags_extreme_value(self):
        rows = _amounts(10, 20, 30, 1000)

        result = detect_anomalies_zscore(rows, "amount")

        assert result["outliers"] == [{"amount": 1000}]
        assert len(result["normalData"]) == 3
        assert result["stats"]["threshold"] == 2.5

    def test_zscore_linear_values_not_flagged(self):
        assert detect_anomalies_zscore(_amounts(60, 120, 180, 240), "amount")["outliers"] == []

    def test_zscore_across_columns(self):
        rows = [
            {"revenue": revenue, "cost": cost}
            for revenue, cost in zip([10, 20, 30, 1000], [5, 10, 15, 20])
        ]

        results = detect_anomalies_multiple_fields(rows, ["revenue", "cost"])

        assert [row["revenue"] for row in results["revenue"]["outliers"]] == [1000]
        assert results["cost"]["outliers"] == []

    def test_zscore_small_or_flat_columns(self):
        assert detect_anomalies_zscore(_amounts(1, 500), "amount")["outliers"] == []
        assert detect_anomalies_zscore(_amounts(7, 7, 7, 7), "amount")["outliers"] == []

    def test_zscore_tight_samples_not_flagged(self):
        assert detect_anomalies_zscore(_amounts(10, 11, 12, 14), "amount")["outliers"] == []
        assert detect_anomalies_zscore(_amounts(10, 11, 13), "amount")["outliers"] == []

    def test_zscore_zero_mad(self):
        """A column whose values mostly repeat has no spread to score against"""
        result = detect_anomalies_zscore(_amounts(5, 5, 5, 5, 9), "amount")

        assert result["outliers"] == []
        assert result["stats"]["mad"] == 0

    def test_iqr_needs_four_points(self):
        rows = _amounts(1, 2, 100)

        result = detect_outliers(rows, "amount")

        assert result["outliers"] == []
        assert result["normalData"] == rows

    def test_iqr_fences(self):
        result = detect_outliers(_amounts(1, 2, 3, 4, 100), "amount")

        assert result["outliers"] == [{"amount": 100}]
        assert result["stats"]["upper"] == 7

    def test_mad(self):
        result = detect_anomalies_mad(_amounts(1, 2, 3, 4, 100), "amount")

        assert result["outliers"] == [{"amount": 100}]
        assert result["stats"]["mad"] == 1

    def test_mad_zero(self):
        assert detect_anomalies_mad(_amounts(5, 5, 5, 9), "amount")["outliers"] == []


class TestTrends:
    """Test cases for trend detection"""

    def test_increasing_trend_sorted_by_time(self):
        rows = [
            {"day": "2024-01-03", "sales": 30},
            {"day": "2024-01-01", "sales": 10},
            {"day": "2024-01-02", "sales": 20},
        ]

        trend = detect_trend(rows, "sales", "day")

        assert trend["trend"] == "strong increase"
        assert trend["slope"] == pytest.approx(10)
        assert trend["firstValue"] == 10
        assert trend["lastValue"] == 30
        assert trend["changePercent"] == pytest.approx(200)

    def test_stable(self):
        rows = [{"day": f"2024-01-0{i}", "sales": 5} for i in range(1, 4)]

        assert detect_trend(rows, "sales", "day")["trend"] == "stable"

    def test_insufficient_data(self):
        rows = [{"day": "2024-01-01", "sales": 1}, {"day": "2024-01-02", "sales": 2}]
        assert detect_trend(rows, "sales", "day") == {"trend": "insufficient data"}

        rows.append({"day": "2024-01-03", "sales": "n/a"})
        assert detect_trend(rows, "sales", "day") == {"trend": "insufficient valid data"}

    def test_slope_labels(self):
        assert classify_slope(0.005) == "stable"
        assert classify_slope(0.05) == "slight increase"
        assert classify_slope(-0.05) == "slight decrease"
        assert classify_slope(-1) == "strong decrease"

    def test_percent_change(self):
        assert percent_change(0, 5) == 100
        assert percent_change(0, 0) == 0
        assert percent_change(50, 25) == -50


class TestAnalyticsService:
    """Test cases for AnalyticsService"""

    def setup_method(self):
        """Set up test fixtures"""
        self.service = AnalyticsService()
        self.rows = _sales_rows()

    def test_basic_statistics(self):
        results = self.service.compute_statistics(self.rows, ["basic statistics"])

        assert set(results["aggregates"]) == {"revenue", "cost"}
        assert results["aggregates"]["revenue"]["mean"] == 250
        assert results["correlations"] == {}
        assert results["timeSeries"] == {}

    def test_correlation_requested(self):
        results = self.service.compute_statistics(self.rows, ["Correlation analysis"])

        assert results["correlations"]["revenue_vs_cost"]["coefficient"] == pytest.approx(1.0)
        assert results["aggregates"] == {}

    def test_correlation_needs_two_numeric_columns(self):
        rows = [{"revenue": value} for value in (1, 2, 3)]

        assert self.service.compute_statistics(rows, ["correlation"])["correlations"] == {}

    def test_growth_trend(self):
        results = self.service.compute_statistics(self.rows, ["growth trend"])

        assert results["timeSeries"]["revenue"]["trend"] == "strong increase"

    def test_empty_rows(self):
        assert self.service.compute_statistics([], ["basic statistics"]) == {
            "aggregates": {}, "correlations": {}, "timeSeries": {}
        }

    def test_enrich_data_with_calculations(self):
        calculations = self.service.compute_statistics(self.rows, ["summary"])

        enriched = self.service.enrich_data_with_calculations(self.rows, calculations)

        std = calculations["aggregates"]["revenue"]["stdDev"]
        assert enriched[0]["revenue_vs_mean"] == -150
        assert enriched[0]["revenue_z_score"] == pytest.approx(-150 / std)
        assert "region_vs_mean" not in enriched[0]
        assert "revenue_vs_mean" not in self.rows[0]

    def test_enrich_without_spread(self):
        calculations = {"aggregates": {"amount": {"mean": 5, "stdDev": 0}}}

        enriched = self.service.enrich_data_with_calculations(_amounts(5, "x"), calculations)

        assert enriched == [{"amount": 5, "amount_vs_mean": 0}, {"amount": "x"}]

    def test_process_decisions_defaults(self):
        results = self.service.process_decisions(None, self.rows)

        assert results["insights"] == [{
            "type": "summary",
            "content": "Analysis of 4 records shows key patterns in the data."
        }]
        assert results["recommendations"] == []
        assert results["additionalAnalyses"] == []

    def test_process_decisions_recommendations(self):
        decisions = AnalysisDecisions(
            dataAssessment=DataAssessment(qualityIssues=["missing values"], sufficiencyScore=0.2)
        )

        results = self.service.process_decisions(decisions, self.rows)

        assert [r["type"] for r in results["recommendations"]] == ["dataQuality", "dataSufficiency"]

    def test_process_decisions_techniques(self):
        decisions = AnalysisDecisions(analysisStrategy=AnalysisStrategy(recommendedTechniques=["Outlier detection"]))

        results = self.service.process_decisions(decisions, _amounts(10, 20, 30, 1000))

        assert results["additionalAnalyses"] == [{"type": "outliers", "field": "amount", "count": 1}]

    def test_process_decisions_trend(self):
        decisions = AnalysisDecisions(analysisStrategy=AnalysisStrategy(recommendedTechniques=["trend analysis"]))

        results = self.service.process_decisions(decisions, self.rows)

        fields = [a["field"] for a in results["additionalAnalyses"] if a["type"] == "trend"]
        assert fields == ["revenue", "cost"]

    def test_techniques_from_prompt_analysis(self):
        trend = PromptAnalysis(intentClassification=IntentClassification(type="trend"))
        advanced = PromptAnalysis(complexityAssessment=ComplexityAssessment(requiresAdvancedAnalysis=True))
        dated = PromptAnalysis(entitiesAndRelationships=EntitiesAndRelationships(timePeriods=["last quarter"]))

        assert self.service.techniques_from_prompt_analysis(trend) == ["trend analysis"]
        assert self.service.techniques_from_prompt_analysis(advanced) == ["outlier detection"]
        assert self.service.techniques_from_prompt_analysis(dated) == ["trend analysis"]
        assert self.service.techniques_from_prompt_analysis(PromptAnalysis()) == []
        assert self.service.techniques_from_prompt_analysis(None) == []

    def test_process_prompt_analysis(self):
        analysis = PromptAnalysis(complexityAssessment=ComplexityAssessment(requiresAdvancedAnalysis=True))

        results = self.service.process_prompt_analysis(analysis, _amounts(10, 20, 30, 1000))

        assert results["insights"][0]["type"] == "summary"
        assert results["additionalAnalyses"] == [{"type": "outliers", "field": "amount", "count": 1}]

    def test_statistical_summary(self):
        summary = self.service.statistical_summary(self.rows)

        assert summary["revenue"]["count"] == 4
        assert summary["revenue"]["mean"] == 250
        assert self.service.statistical_summary([{"name": "A"}]) == {}


class TestInsights:
    """Test cases for analyze_data_for_insights"""

    def setup_method(self):
        """Set up test fixtures"""
        self.rows = _sales_rows()

    def test_insight_types(self):
        insights = analyze_data_for_insights(self.rows)

        assert [insight.type for insight in insights] == [
            "numeric_summary", "numeric_summary", "categorical_distribution",
            "dominant_category", "correlations", "time_range", "data_completeness",
        ]

    def test_insight_contents(self):
        insights = {insight.type: insight for insight in analyze_data_for_insights(self.rows)}

        distribution = insights["categorical_distribution"]
        assert distribution.field == "region"
        assert [(v.value, v.percentage) for v in distribution.topValues] == [("North", "75.0%"), ("South", "25.0%")]
        assert insights["dominant_category"].share == 0.75
        assert insights["correlations"].pairs[0].fields == ["revenue", "cost"]
        assert insights["correlations"].pairs[0].strength == "very strong"
        assert insights["time_range"].spanDays == 60
        assert insights["data_completeness"].completeness == 1.0

    def test_requested_metrics_first(self):
        analysis = PromptAnalysis(intentClassification=IntentClassification(type="analytical", metrics=["cost"]))

        insights = analyze_data_for_insights(self.rows, analysis)

        assert insights[0].field == "cost"

    def test_empty_rows(self):
        assert analyze_data_for_insights([]) == []

    def test_column_outliers(self):
        insight = column_outliers(_amounts(10, 20, 30, 1000), "amount")

        assert insight.count == 1
        assert insight.values == [1000.0]

    def test_data_completeness(self):
        insight = data_completeness([{"a": 1, "b": None}, {"a": "", "b": 2}])

        assert insight.completeness == 0.5
        assert insight.missingByField == {"a": 1, "b": 1}


if __name__ == "__main__":
    pytest.main([__file__])
