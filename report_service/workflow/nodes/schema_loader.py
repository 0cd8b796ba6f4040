"""Schema loading node"""
import logging
from typing import Dict, Any

from langchain_core.runnables import RunnableConfig

from ..context import error_state, get_context, get_publisher
from ..state import ReportState

logger = logging.getLogger(__name__)


async def load_schema(state: ReportState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Load the database schema, reusing the cached snapshot while it is fresh.

    Args:
        state: Current workflow state
        config: Runnable config carrying the pipeline context and publisher

    Returns:
        Updated state with schema
    """
    request_id = state["request_id"]
    context = get_context(config)
    publisher = get_publisher(config)

    logger.info(f"[{request_id}] ===== SCHEMA LOADER START =====")

    try:
        await publisher.publish_progress("Retrieving database schema...")

        schema = await context.schema_cache.get_or_refresh(context.schema_service.load_snapshot)

        logger.info(f"[{request_id}] Schema has {len(schema.tables)} tables and "
                    f"{len(schema.relationships)} relationships")
        logger.info(f"[{request_id}] ===== SCHEMA LOADER END (SUCCESS) =====")

        return {"schema": schema}

    except Exception as e:
        logger.error(f"[{request_id}] ===== SCHEMA LOADER END (ERROR) =====")
        logger.exception(f"[{request_id}] Schema loading failed: {e}")
        return error_state(e, "SCHEMA_UNAVAILABLE")
