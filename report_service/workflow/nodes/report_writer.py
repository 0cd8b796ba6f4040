"""Report writing node"""
import logging
from typing import Dict, Any

from langchain_core.runnables import RunnableConfig

from ..context import error_state, get_context, get_publisher
from ..state import ReportState

logger = logging.getLogger(__name__)


async def write_report(state: ReportState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Generate the narrative and assemble the final result.

    Args:
        state: Current workflow state
        config: Runnable config carrying the pipeline context and publisher

    Returns:
        Updated state with final_result
    """
    request_id = state["request_id"]
    context = get_context(config)
    publisher = get_publisher(config)
    rows = state.get("final_rows") or []
    enhanced_results = state.get("enhanced_results") or {}

    logger.info(f"[{request_id}] ===== REPORT WRITER START =====")

    try:
        await publisher.publish_progress("Generating final report...")

        report = await context.compositor.compose_report(
            state["prompt"],
            rows,
            enhanced_results,
            state.get("conversation_history")
        )

        decisions = state.get("decisions")
        table_structure = state.get("table_structure")
        column_metadata = state.get("column_metadata") or {}

        final_result = {
            "status": "complete",
            "report": report,
            "rawData": rows,
            "generatedSQL": state.get("generated_sql") or "",
            "additionalQueries": state.get("additional_queries") or [],
            "calculations": state.get("calculations") or {},
            "rowCount": len(rows),
            "tablesUsed": state.get("tables") or [],
            "analysisSteps": decisions.analysisSteps if decisions else [],
            "enhancedResults": enhanced_results,
            "relatedData": state.get("related_data") or {},
            "tableStructure": table_structure.model_dump() if table_structure else {},
            "columnMetadata": {column: meta.model_dump() for column, meta in column_metadata.items()},
            "aiInsights": state.get("ai_insights") or [],
            "processing": False,
        }

        logger.info(f"[{request_id}] Report generated ({len(report)} chars) over {len(rows)} rows")
        logger.info(f"[{request_id}] ===== REPORT WRITER END (SUCCESS) =====")

        return {"final_result": final_result}

    except Exception as e:
        logger.error(f"[{request_id}] ===== REPORT WRITER END (ERROR) =====")
        logger.exception(f"[{request_id}] Report generation failed: {e}")
        return error_state(e, "REPORT_GENERATION_FAILED")
