"""SQL generation node"""
import logging
from typing import Dict, Any

from langchain_core.runnables import RunnableConfig

from ..context import error_state, get_context, get_publisher
from ..state import ReportState

logger = logging.getLogger(__name__)


async def generate_sql(state: ReportState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Generate SQL for the request over the minimal schema.

    Args:
        state: Current workflow state
        config: Runnable config carrying the pipeline context and publisher

    Returns:
        Updated state with generated_sql
    """
    request_id = state["request_id"]
    context = get_context(config)
    publisher = get_publisher(config)

    logger.info(f"[{request_id}] ===== SQL GENERATOR START =====")

    try:
        await publisher.publish_progress("Generating SQL query...")

        sql = await context.synthesizer.synthesize(
            state["prompt"],
            state["minimal_schema"],
            state.get("prompt_analysis"),
            state.get("conversation_history")
        )

        await publisher.publish_progress("SQL query generated", sql=sql)

        logger.info(f"[{request_id}] Generated SQL ({len(sql)} chars): {sql[:500]}")
        logger.info(f"[{request_id}] ===== SQL GENERATOR END (SUCCESS) =====")

        return {"generated_sql": sql}

    except Exception as e:
        logger.error(f"[{request_id}] ===== SQL GENERATOR END (ERROR) =====")
        logger.exception(f"[{request_id}] SQL generation failed: {e}")
        return error_state(e, "SQL_GENERATION_FAILED")
