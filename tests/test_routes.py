"""
Unit tests for the report API endpoints
"""

import json

import pytest
from unittest.mock import Mock, patch
from fastapi.testclient import TestClient

from report_service.exceptions import ReportGenerationError
from report_service.main import app
from report_service.pipeline import get_pipeline


class FakePipeline:
    """Pipeline stand-in that answers immediately"""

    def __init__(self, result=None, error=None):
        self.result = result or {"status": "complete", "report": "Done", "rawData": [{"id": 1}]}
        self.error = error
        self.prompts = []

    async def generate_report_stream(self, prompt, history, publisher):
        self.prompts.append(prompt)
        await publisher.publish_progress("Starting report generation...")
        if self.error:
            await publisher.publish_error(str(self.error))
            return {"status": "error"}
        await publisher.publish_complete(self.result)
        return self.result

    async def generate_report(self, prompt, history=None):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.result


def parse_sse(text: str):
    return [json.loads(frame[len("data: "):]) for frame in text.split("\n\n") if frame.startswith("data: ")]


class TestReportRoutes:
    """Test cases for /api/ai endpoints"""

    def setup_method(self):
        """Set up test fixtures"""
        self.pipeline = FakePipeline()
        app.dependency_overrides[get_pipeline] = lambda: self.pipeline
        self.client = TestClient(app)

    def teardown_method(self):
        app.dependency_overrides.clear()

    @pytest.mark.parametrize("body", [{}, {"prompt": ""}, {"prompt": "   "}])
    def test_missing_prompt(self, body):
        for path in ("/api/ai/generate-report-stream", "/api/ai/generate-report"):
            response = self.client.post(path, json=body)

            assert response.status_code == 400
            assert response.json() == {"error": "Prompt is required"}
        assert self.pipeline.prompts == []

    def test_stream_events(self):
        response = self.client.post(
            "/api/ai/generate-report-stream",
            json={"prompt": "show all data", "conversationHistory": [{"role": "user", "content": "hi"}]}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        events = parse_sse(response.text)
        assert events[0] == {"status": "processing", "message": "Starting report generation..."}
        assert events[-1]["status"] == "complete"
        assert events[-1]["rawData"] == [{"id": 1}]

    def test_stream_error_event(self):
        self.pipeline.error = ReportGenerationError("API rate limit exceeded. Please try again later.")

        response = self.client.post("/api/ai/generate-report-stream", json={"prompt": "x"})

        events = parse_sse(response.text)
        assert events[-1]["status"] == "error"
        assert "rate limit" in events[-1]["message"].lower()

    def test_generate_report(self):
        response = self.client.post("/api/ai/generate-report", json={"prompt": "show all data"})

        assert response.status_code == 200
        assert response.json()["report"] == "Done"
        assert self.pipeline.prompts == ["show all data"]

    def test_generate_report_failure(self):
        self.pipeline.error = ReportGenerationError("No tables available in the database", "NO_TABLES_AVAILABLE")

        response = self.client.post("/api/ai/generate-report", json={"prompt": "x"})

        assert response.status_code == 500
        assert response.json() == {
            "error": "Failed to generate report",
            "message": "No tables available in the database",
        }


class TestServiceEndpoints:
    """Test cases for health and root endpoints"""

    def setup_method(self):
        """Set up test fixtures"""
        self.client = TestClient(app)

    @patch("report_service.main.get_database_client")
    def test_health_healthy(self, mock_get_client):
        mock_get_client.return_value = Mock(test_connection=Mock(return_value=True))

        response = self.client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["dependencies"]["database"] == "healthy"
        assert "llm" in data["dependencies"]

    @patch("report_service.main.get_database_client")
    def test_health_degraded(self, mock_get_client):
        mock_get_client.return_value = Mock(test_connection=Mock(side_effect=RuntimeError("down")))

        data = self.client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["dependencies"]["database"] == "unhealthy"

    def test_root(self):
        data = self.client.get("/").json()

        assert data["status"] == "running"
        assert data["endpoints"]["generate_report_stream"] == "/api/ai/generate-report-stream"


if __name__ == "__main__":
    pytest.main([__file__])
