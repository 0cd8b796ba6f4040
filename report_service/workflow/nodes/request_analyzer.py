"""Prompt analysis node"""
import logging
from typing import Dict, Any

from langchain_core.runnables import RunnableConfig

from ..context import error_state, get_context, get_publisher
from ..state import ReportState

logger = logging.getLogger(__name__)


async def analyze_prompt(state: ReportState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Break the request into intent, entities and data requirements.

    Args:
        state: Current workflow state
        config: Runnable config carrying the pipeline context and publisher

    Returns:
        Updated state with prompt_analysis
    """
    request_id = state["request_id"]
    context = get_context(config)
    publisher = get_publisher(config)

    logger.info(f"[{request_id}] ===== PROMPT ANALYZER START =====")
    logger.info(f"[{request_id}] Prompt: {state['prompt']}")

    try:
        await publisher.publish_progress("Analyzing your request...")

        analysis = await context.analyzer.analyze(
            state["prompt"],
            state["schema"].table_names(),
            state.get("conversation_history")
        )

        await publisher.publish_progress(
            "Request analysis complete",
            promptAnalysis=analysis.model_dump()
        )

        logger.info(f"[{request_id}]   - Core question: {analysis.coreQuestion}")
        logger.info(f"[{request_id}]   - Intent: {analysis.intentClassification.type}")
        logger.info(f"[{request_id}] ===== PROMPT ANALYZER END (SUCCESS) =====")

        return {"prompt_analysis": analysis}

    except Exception as e:
        logger.error(f"[{request_id}] ===== PROMPT ANALYZER END (ERROR) =====")
        logger.exception(f"[{request_id}] Prompt analysis failed: {e}")
        return error_state(e, "PROMPT_ANALYSIS_FAILED")
