"""
Unit tests for prompt analysis, analysis planning and report composition
"""

import json

import pytest

from report_service.exceptions import LLMServiceError, RateLimitExceededError
from report_service.core.analysis_planner import AnalysisPlanner
from report_service.core.prompt_analyzer import PromptAnalyzer
from report_service.core.report_compositor import ReportCompositor
from report_service.services.llm_gateway import LLMGateway

from conftest import ScriptedTransport


def gateway(transport):
    return LLMGateway(transport, base_delay=0, jitter=0)


class TestPromptAnalyzer:
    """Test cases for PromptAnalyzer"""

    @pytest.mark.asyncio
    async def test_parses_fenced_json(self):
        reply = "```json\n" + json.dumps({
            "coreQuestion": "Revenue by region",
            "intentClassification": {"type": "analytical", "metrics": ["revenue"]},
            "dataRequirements": {"relevantTables": [{"name": "orders"}], "aggregations": "sum"},
        }) + "\n```"
        transport = ScriptedTransport(default=reply)

        analysis = await PromptAnalyzer(gateway(transport)).analyze("revenue by region", ["orders"])

        assert analysis.intentClassification.type == "analytical"
        assert analysis.dataRequirements.relevantTables == ["orders"]
        assert analysis.dataRequirements.aggregations == ["sum"]
        assert "orders" in transport.prompts()[0]

    @pytest.mark.asyncio
    async def test_unparseable_output_gives_default(self):
        transport = ScriptedTransport(default="I think they want revenue.")

        analysis = await PromptAnalyzer(gateway(transport)).analyze("revenue by region", ["orders"])

        assert analysis.coreQuestion == "revenue by region"
        assert analysis.intentClassification.type == "descriptive"
        assert analysis.dataRequirements.relevantTables == []

    @pytest.mark.asyncio
    async def test_provider_error_gives_default(self):
        transport = ScriptedTransport(default=LLMServiceError("Bad request", status_code=400))

        analysis = await PromptAnalyzer(gateway(transport)).analyze("revenue", [])

        assert analysis.coreQuestion == "revenue"

    @pytest.mark.asyncio
    async def test_rate_limit_raises(self):
        transport = ScriptedTransport(default=LLMServiceError("Too Many Requests", status_code=429))

        with pytest.raises(RateLimitExceededError):
            await PromptAnalyzer(gateway(transport)).analyze("revenue", [])

    @pytest.mark.asyncio
    async def test_history_included(self):
        transport = ScriptedTransport(default="{}")

        await PromptAnalyzer(gateway(transport)).analyze(
            "and last year?", ["orders"], [{"role": "user", "content": "revenue this year"}]
        )

        assert "USER: revenue this year" in transport.prompts()[0]


class TestAnalysisPlanner:
    """Test cases for AnalysisPlanner"""

    def setup_method(self):
        """Set up test fixtures"""
        self.rows = [{"id": i, "revenue": i * 10} for i in range(10)]

    @pytest.mark.asyncio
    async def test_decisions_parsed(self):
        transport = ScriptedTransport(default=json.dumps({
            "calculationsNeeded": ["correlation analysis"],
            "analysisStrategy": {"recommendedTechniques": ["outlier detection"]},
            "dataRequirements": {"needsAdditionalQuery": True, "additionalQueryDescription": "costs"},
        }))

        decisions = await AnalysisPlanner(gateway(transport)).decide("revenue", self.rows)

        assert decisions.calculationsNeeded == ["correlation analysis"]
        assert decisions.dataRequirements.needsAdditionalQuery
        assert decisions.analysisSteps == ["Basic data analysis"]

    @pytest.mark.asyncio
    async def test_only_sample_rows_sent(self):
        transport = ScriptedTransport(default="{}")

        await AnalysisPlanner(gateway(transport)).decide("revenue", self.rows)

        prompt = transport.prompts()[0]
        assert '"id": 2' in prompt
        assert '"id": 3' not in prompt

    @pytest.mark.asyncio
    async def test_defaults_on_bad_output(self):
        transport = ScriptedTransport(default="no idea")

        decisions = await AnalysisPlanner(gateway(transport)).decide("revenue", self.rows)

        assert decisions.calculationsNeeded == ["basic statistics"]
        assert not decisions.dataRequirements.needsAdditionalQuery

    @pytest.mark.asyncio
    async def test_rate_limit_raises(self):
        transport = ScriptedTransport(default=LLMServiceError("rate limit", status_code=429))

        with pytest.raises(RateLimitExceededError):
            await AnalysisPlanner(gateway(transport)).decide("revenue", self.rows)


class TestReportCompositor:
    """Test cases for ReportCompositor"""

    @pytest.mark.asyncio
    async def test_report_prompt_contents(self):
        transport = ScriptedTransport(default="## Summary\nAll good.")
        rows = [{"id": i, "name": f"item-{i}"} for i in range(8)]
        enhanced = {"recommendations": [{"type": "dataQuality", "content": "Check nulls"}]}

        report = await ReportCompositor(gateway(transport), sample_rows=5).compose_report("items", rows, enhanced)

        assert report == "## Summary\nAll good."
        prompt = transport.prompts()[0]
        assert "ROW COUNT: 8" in prompt
        assert "item-4" in prompt
        assert "item-5" not in prompt
        assert "RECOMMENDATIONS" in prompt
        assert "STATISTICAL INSIGHTS" not in prompt

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self):
        transport = ScriptedTransport(default=LLMServiceError("Bad request", status_code=400))

        with pytest.raises(LLMServiceError):
            await ReportCompositor(gateway(transport)).compose_report("items", [])


if __name__ == "__main__":
    pytest.main([__file__])
