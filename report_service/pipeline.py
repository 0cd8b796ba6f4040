"""Report pipeline: runs the workflow for one request"""
import logging
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from .exceptions import ReportGenerationError
from .services.database_client import get_database_client
from .services.llm_client import create_transport
from .services.llm_gateway import LLMGateway
from .services.schema_service import SchemaService
from .services.stream_publisher import ProgressPublisher
from .workflow.context import PipelineContext
from .workflow.report_workflow import get_workflow
from .workflow.state import ReportState, create_initial_state

logger = logging.getLogger(__name__)


def _history_dicts(history: Optional[Sequence]) -> List[Dict[str, Any]]:
    turns = []
    for item in history or []:
        if hasattr(item, "model_dump"):
            turns.append(item.model_dump())
        elif isinstance(item, dict):
            turns.append(item)
    return turns


def partial_result(state: Dict[str, Any]) -> Dict[str, Any]:
    """Best-effort result for a run that stopped early"""
    execution = state.get("execution")
    rows = state.get("final_rows") or state.get("enriched_rows") or (execution.rows if execution else [])
    return {
        "status": "error",
        "error": state.get("error") or "Report generation failed",
        "errorCode": state.get("error_code") or "WORKFLOW_ERROR",
        "report": None,
        "rawData": rows,
        "generatedSQL": state.get("generated_sql") or "",
        "rowCount": len(rows),
        "tablesUsed": state.get("tables") or [],
        "processing": False,
    }


class ReportPipeline:
    """
    Runs the report workflow with a shared set of services.

    The context (and so the schema cache and knowledge store) is reused
    across requests.
    """

    def __init__(self, context: PipelineContext, workflow=None):
        self.context = context
        self.workflow = workflow or get_workflow()

    async def run(
        self,
        prompt: str,
        history: Optional[Sequence],
        publisher: ProgressPublisher,
        request_id: Optional[str] = None
    ) -> ReportState:
        request_id = request_id or str(uuid4())
        initial_state = create_initial_state(request_id, prompt, _history_dicts(history))
        logger.info(f"[{request_id}] Running report workflow")
        return await self.workflow.ainvoke(
            initial_state,
            config={"configurable": {"context": self.context, "publisher": publisher}}
        )

    async def generate_report_stream(
        self,
        prompt: str,
        history: Optional[Sequence],
        publisher: ProgressPublisher
    ) -> Dict[str, Any]:
        """
        Generate a report, publishing progress and the result as events.

        Never raises: failures are published as the terminal error event and
        a partial result is returned.

        Args:
            prompt: User's question
            history: Earlier conversation turns
            publisher: Destination for progress events

        Returns:
            Final result, or a partial result with status "error"
        """
        request_id = publisher.request_id
        try:
            await publisher.publish_progress("Starting report generation...")
            final_state = await self.run(prompt, history, publisher, request_id)

            if final_state.get("error"):
                logger.error(f"[{request_id}] Workflow failed: {final_state['error']}")
                await publisher.publish_error(final_state["error"])
                return partial_result(final_state)

            final_result = final_state.get("final_result")
            if not final_result:
                error = "Workflow completed but no result generated"
                await publisher.publish_error(error)
                return partial_result({**final_state, "error": error, "error_code": "NO_RESULT"})

            await publisher.publish_complete(final_result)
            logger.info(f"[{request_id}] Report generation successful")
            return final_result

        except Exception as e:
            logger.exception(f"[{request_id}] Report generation failed with exception")
            await publisher.publish_error(str(e))
            return partial_result({"error": str(e), "error_code": "PROCESSING_ERROR"})

    async def generate_report(self, prompt: str, history: Optional[Sequence] = None) -> Dict[str, Any]:
        """
        Generate a report without streaming.

        Raises:
            ReportGenerationError: The workflow stopped before producing a report
        """
        final_state = await self.run(prompt, history, ProgressPublisher())
        if final_state.get("error"):
            raise ReportGenerationError(final_state["error"], final_state.get("error_code") or "WORKFLOW_ERROR")
        final_result = final_state.get("final_result")
        if not final_result:
            raise ReportGenerationError("Workflow completed but no result generated", "NO_RESULT")
        return final_result


def create_pipeline_context() -> PipelineContext:
    """Build the services from settings"""
    db = get_database_client()
    return PipelineContext(
        gateway=LLMGateway(create_transport()),
        db=db,
        schema_service=SchemaService(db)
    )


# Global pipeline instance
_pipeline: Optional[ReportPipeline] = None


def get_pipeline() -> ReportPipeline:
    """Get global pipeline instance"""
    global _pipeline
    if _pipeline is None:
        _pipeline = ReportPipeline(create_pipeline_context())
    return _pipeline
