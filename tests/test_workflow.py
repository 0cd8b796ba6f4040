"""
Unit tests for workflow state, routing and node helpers
"""

import pytest

from report_service.exceptions import RateLimitExceededError
from report_service.workflow.context import error_state
from report_service.workflow.nodes.analysis_planner import merge_calculations, merge_enhanced_results
from report_service.workflow.report_workflow import NODE_ORDER, check_for_errors
from report_service.workflow.state import create_initial_state


class TestWorkflowState:
    """Test cases for state creation and error routing"""

    def test_initial_state(self):
        state = create_initial_state("req-1", "show revenue")

        assert state["request_id"] == "req-1"
        assert state["conversation_history"] == []
        assert state["error"] is None
        assert state["final_result"] is None

    def test_check_for_errors(self):
        assert check_for_errors({"error": None}) == "continue"
        assert check_for_errors({"error": "boom"}) == "error"

    def test_node_order(self):
        assert NODE_ORDER == [
            "load_schema", "analyze_prompt", "resolve_tables", "generate_sql",
            "execute_sql", "process_data", "plan_analysis", "write_report",
        ]

    def test_error_state_rate_limit(self):
        assert error_state(RateLimitExceededError(), "PROMPT_ANALYSIS_FAILED") == {
            "error": "API rate limit exceeded. Please try again later.",
            "error_code": "RATE_LIMIT_EXCEEDED",
        }

    def test_error_state_without_message(self):
        assert error_state(KeyError(), "DATA_PROCESSING_FAILED") == {
            "error": "KeyError",
            "error_code": "DATA_PROCESSING_FAILED",
        }


class TestMergeCalculations:
    """Test cases for merge_calculations"""

    def test_decided_sections_win(self):
        decided = {"aggregates": {"price": {"mean": 2}}, "correlations": {}, "timeSeries": {}}
        preliminary = {"aggregates": {"price": {"mean": 1}}, "correlations": {"a_vs_b": {}}, "timeSeries": {}}

        merged = merge_calculations(decided, preliminary)

        assert merged["aggregates"] == {"price": {"mean": 2}}
        assert merged["correlations"] == {"a_vs_b": {}}
        assert merged["timeSeries"] == {}

    def test_no_preliminary(self):
        decided = {"aggregates": {}, "correlations": {}, "timeSeries": {}}

        assert merge_calculations(decided, {}) == decided


class TestMergeEnhancedResults:
    """Test cases for merge_enhanced_results"""

    def test_preliminary_entries_kept(self):
        summary = {"type": "summary", "content": "Analysis of 4 records shows key patterns in the data."}
        decided = {"insights": [summary], "recommendations": [], "additionalAnalyses": []}
        preliminary = {
            "insights": [dict(summary)],
            "recommendations": [],
            "additionalAnalyses": [{"type": "outliers", "field": "price", "count": 1}],
        }

        merged = merge_enhanced_results(decided, preliminary)

        assert merged["insights"] == [summary]
        assert merged["additionalAnalyses"] == [{"type": "outliers", "field": "price", "count": 1}]

    def test_decided_entries_first(self):
        decided = {"additionalAnalyses": [{"type": "trend", "field": "revenue", "trend": "stable"}]}
        preliminary = {"additionalAnalyses": [{"type": "outliers", "field": "revenue", "count": 2}]}

        merged = merge_enhanced_results(decided, preliminary)

        assert [a["type"] for a in merged["additionalAnalyses"]] == ["trend", "outliers"]


if __name__ == "__main__":
    pytest.main([__file__])
