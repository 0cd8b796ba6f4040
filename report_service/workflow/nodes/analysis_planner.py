"""Analysis planning node: decisions, calculations and follow-up queries"""
import asyncio
import logging
from typing import Dict, Any, List

from langchain_core.runnables import RunnableConfig

from ...core.analytics import analyze_data_for_insights
from ...exceptions import LLMServiceError, RateLimitExceededError
from ...models import BatchQuery
from ..context import error_state, get_context, get_publisher
from ..state import ReportState

logger = logging.getLogger(__name__)


def merge_calculations(decided: Dict[str, Any], preliminary: Dict[str, Any]) -> Dict[str, Any]:
    """Decision-driven sections, with preliminary results filling empty ones"""
    merged = dict(preliminary or {})
    for section, values in (decided or {}).items():
        if values or section not in merged:
            merged[section] = values
    return merged


def merge_enhanced_results(decided: Dict[str, Any], preliminary: Dict[str, Any]) -> Dict[str, Any]:
    """
    Concatenate the list sections of two ``process_decisions`` results.

    Decision-driven entries come first. A preliminary entry is dropped when an
    entry with the same type, field and content is already present.
    """
    merged = dict(decided or {})
    for section, items in (preliminary or {}).items():
        existing = list(merged.get(section) or [])
        seen = {(item.get("type"), item.get("field"), item.get("content")) for item in existing}
        for item in items:
            key = (item.get("type"), item.get("field"), item.get("content"))
            if key not in seen:
                existing.append(item)
                seen.add(key)
        merged[section] = existing
    return merged


async def plan_analysis(state: ReportState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Decide on the analysis, run it and assemble the enhanced results.

    Args:
        state: Current workflow state
        config: Runnable config carrying the pipeline context and publisher

    Returns:
        Updated state with decisions, calculations, final rows, additional
        queries and enhanced results
    """
    request_id = state["request_id"]
    context = get_context(config)
    publisher = get_publisher(config)
    prompt = state["prompt"]
    rows = state.get("enriched_rows") or []

    logger.info(f"[{request_id}] ===== ANALYSIS PLANNER START =====")

    try:
        await publisher.publish_progress("Determining analysis approach...")
        decisions = await context.planner.decide(prompt, rows)

        await publisher.publish_progress("Performing calculations...")
        decided = await asyncio.to_thread(
            context.analytics.compute_statistics, rows, decisions.calculationsNeeded
        )
        calculations = merge_calculations(decided, state.get("preliminary_calculations") or {})
        final_rows = context.analytics.enrich_data_with_calculations(rows, calculations)

        additional_queries: List[Dict[str, Any]] = []
        if decisions.dataRequirements.needsAdditionalQuery:
            await publisher.publish_progress("Generating follow-up questions...")
            additional_queries = await _additional_queries(
                context,
                prompt,
                state["minimal_schema"],
                decisions.dataRequirements.additionalQueryDescription
            )

        await publisher.publish_progress("Enhancing analysis results...")
        enhanced = context.analytics.process_decisions(decisions, final_rows)
        statistical_insights = await asyncio.to_thread(context.analytics.statistical_summary, final_rows)
        filtered_rows = context.enrichment.filter_by_prompt_analysis(final_rows, state.get("prompt_analysis"))
        ai_insights = await asyncio.to_thread(analyze_data_for_insights, filtered_rows, state.get("prompt_analysis"))

        enhanced_results = {
            **merge_enhanced_results(enhanced, state.get("preliminary_results") or {}),
            "statisticalInsights": statistical_insights,
            "columnTypes": state.get("column_types") or {},
            "aiInsights": [insight.model_dump() for insight in ai_insights],
        }

        logger.info(f"[{request_id}] Calculations: {list(calculations)}; "
                    f"{len(additional_queries)} additional queries")
        logger.info(f"[{request_id}] ===== ANALYSIS PLANNER END (SUCCESS) =====")

        return {
            "decisions": decisions,
            "calculations": calculations,
            "final_rows": final_rows,
            "additional_queries": additional_queries,
            "enhanced_results": enhanced_results
        }

    except Exception as e:
        logger.error(f"[{request_id}] ===== ANALYSIS PLANNER END (ERROR) =====")
        logger.exception(f"[{request_id}] Analysis planning failed: {e}")
        return error_state(e, "ANALYSIS_FAILED")


async def _additional_queries(context, prompt: str, minimal_schema, description) -> List[Dict[str, Any]]:
    """Generate follow-up queries and run them as one batch"""
    try:
        queries = await context.synthesizer.generate_additional_queries(prompt, minimal_schema, description)
    except RateLimitExceededError:
        raise
    except LLMServiceError as e:
        logger.warning(f"Additional queries unavailable: {e}")
        return []

    if not queries:
        return []

    results = await context.enrichment.execute_batch([
        BatchQuery(id=str(index), sql=query["sql"]) for index, query in enumerate(queries)
    ])
    for query, result in zip(queries, results):
        query["success"] = result.success
        query["rowCount"] = result.rowCount
        if result.error:
            query["error"] = result.error
    return queries
