"""SQL execution node"""
import logging
from typing import Dict, Any

from langchain_core.runnables import RunnableConfig

from ..context import error_state, get_context, get_publisher
from ..state import ReportState

logger = logging.getLogger(__name__)


async def execute_sql(state: ReportState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Execute the generated SQL, falling back to simpler reads on failure.

    Queries that return rows without a fallback are remembered for reuse.

    Args:
        state: Current workflow state
        config: Runnable config carrying the pipeline context and publisher

    Returns:
        Updated state with execution and generated_sql set to the SQL used
    """
    request_id = state["request_id"]
    context = get_context(config)
    publisher = get_publisher(config)
    sql = state["generated_sql"]

    logger.info(f"[{request_id}] ===== SQL EXECUTOR START =====")
    logger.info(f"[{request_id}] SQL to execute ({len(sql)} chars): {sql[:500]}")

    try:
        await publisher.publish_progress("Executing SQL query...")

        execution = await context.executor.execute(sql, state["schema"], publisher)
        rows = execution.rows

        if execution.fallback_used:
            logger.warning(f"[{request_id}] Fallback used: {execution.message} (error: {execution.error})")
            await publisher.publish_progress(
                execution.message or "Using simplified query due to errors with original query"
            )

        if not rows:
            logger.warning(f"[{request_id}] Query returned no results")
            await publisher.publish_progress(
                "No data found. The query may be incorrect or the table might be empty."
            )
        elif not execution.fallback_used:
            await context.synthesizer.learn_from_successful_query(sql, state["prompt"], len(rows))

        logger.info(f"[{request_id}] Query returned {len(rows)} rows")
        if rows:
            logger.info(f"[{request_id}] Result columns: {list(rows[0].keys())}")
        logger.info(f"[{request_id}] ===== SQL EXECUTOR END (SUCCESS) =====")

        return {
            "execution": execution,
            "generated_sql": execution.sql_used or sql
        }

    except Exception as e:
        logger.error(f"[{request_id}] ===== SQL EXECUTOR END (ERROR) =====")
        logger.exception(f"[{request_id}] SQL execution failed: {e}")
        return error_state(e, "SQL_EXECUTION_ERROR")
