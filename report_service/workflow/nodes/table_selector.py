"""Relevant table selection node"""
import logging
from typing import Dict, Any

from langchain_core.runnables import RunnableConfig

from ...exceptions import NoTablesAvailableError
from ..context import error_state, get_context, get_publisher
from ..state import ReportState

logger = logging.getLogger(__name__)


async def resolve_tables(state: ReportState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Pick the tables needed for the request and build the minimal schema.

    Args:
        state: Current workflow state
        config: Runnable config carrying the pipeline context and publisher

    Returns:
        Updated state with tables and minimal_schema
    """
    request_id = state["request_id"]
    context = get_context(config)
    publisher = get_publisher(config)
    schema = state["schema"]

    logger.info(f"[{request_id}] ===== TABLE SELECTOR START =====")

    try:
        await publisher.publish_progress("Identifying relevant data tables...")

        tables = await context.resolver.resolve_tables(
            state["prompt"],
            schema,
            state.get("prompt_analysis")
        )
        minimal_schema = schema.minimal(tables)

        await publisher.publish_progress("Identified relevant tables", tables=tables)

        logger.info(f"[{request_id}] Selected tables: {tables}")
        logger.info(f"[{request_id}] ===== TABLE SELECTOR END (SUCCESS) =====")

        return {
            "tables": tables,
            "minimal_schema": minimal_schema
        }

    except NoTablesAvailableError as e:
        logger.error(f"[{request_id}] ===== TABLE SELECTOR END (ERROR) =====")
        logger.error(f"[{request_id}] {e}")
        return error_state(e, "NO_TABLES_AVAILABLE")

    except Exception as e:
        logger.error(f"[{request_id}] ===== TABLE SELECTOR END (ERROR) =====")
        logger.exception(f"[{request_id}] Table selection failed: {e}")
        return error_state(e, "TABLE_SELECTION_FAILED")
