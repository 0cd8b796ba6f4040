"""Data processing node: enrichment, insights and column typing"""
import asyncio
import logging
from typing import Dict, Any

from langchain_core.runnables import RunnableConfig

from ...core.analytics import analyze_data_for_insights
from ...core.enrichment import generate_table_structure, get_column_types, infer_column_metadata
from ...models import TableStructure
from ...utils.results import StepResult, run_step
from ..context import error_state, get_context, get_publisher
from ..state import ReportState

logger = logging.getLogger(__name__)

ANALYTICAL_INTENT = "analytical"


def _outcome(name: str, result: Any, default: Any) -> Any:
    """Value of one concurrent task, or its default when it failed"""
    if isinstance(result, Exception):
        logger.warning(f"Processing task '{name}' failed, using default: {result}")
        return default
    if isinstance(result, StepResult):
        return result.value_or(default, name)
    return result


async def process_data(state: ReportState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Run the independent processing tasks over the result rows concurrently.

    Each task degrades to an empty value on failure. Column metadata and the
    table structure are derived from the enriched rows afterwards.

    Args:
        state: Current workflow state
        config: Runnable config carrying the pipeline context and publisher

    Returns:
        Updated state with enriched rows, insights and column descriptions
    """
    request_id = state["request_id"]
    context = get_context(config)
    publisher = get_publisher(config)
    execution = state["execution"]
    rows = execution.rows
    analysis = state.get("prompt_analysis")

    logger.info(f"[{request_id}] ===== DATA PROCESSOR START =====")

    try:
        await publisher.publish_progress("Processing data...")

        if analysis is not None and analysis.intentClassification.type == ANALYTICAL_INTENT:
            requested = [str(metric) for metric in analysis.intentClassification.metrics]
            requested += [str(aggregation) for aggregation in analysis.dataRequirements.aggregations]
            preliminary = asyncio.to_thread(
                context.analytics.compute_statistics, rows, requested or ["basic statistics"]
            )
        else:
            preliminary = asyncio.sleep(0, result={})

        results = await asyncio.gather(
            context.enrichment.enrich_with_related_names(rows, state["schema"], state.get("tables")),
            asyncio.to_thread(analyze_data_for_insights, rows),
            preliminary,
            asyncio.to_thread(context.analytics.process_prompt_analysis, analysis, rows),
            asyncio.to_thread(get_column_types, rows),
            return_exceptions=True
        )

        enriched_rows, related_data = _outcome("related names", results[0], ([dict(row) for row in rows], {}))
        insights = _outcome("insights", results[1], [])
        calculations = _outcome("preliminary analytics", results[2], {})
        preliminary_results = _outcome("decision processing", results[3], {})
        column_types = _outcome("column types", results[4], {})

        related_data = {**execution.related_data, **related_data}

        column_metadata = run_step("column metadata", infer_column_metadata, enriched_rows).value_or({}, "column metadata")
        table_structure = run_step(
            "table structure", generate_table_structure, column_metadata
        ).value_or(TableStructure(), "table structure")

        logger.info(f"[{request_id}] Enriched {len(enriched_rows)} rows, related tables: {list(related_data)}")
        logger.info(f"[{request_id}] {len(insights)} insights, columns: {list(column_metadata)}")
        logger.info(f"[{request_id}] ===== DATA PROCESSOR END (SUCCESS) =====")

        return {
            "enriched_rows": enriched_rows,
            "related_data": related_data,
            "ai_insights": [insight.model_dump() for insight in insights],
            "preliminary_calculations": calculations,
            "preliminary_results": preliminary_results,
            "column_types": column_types,
            "column_metadata": column_metadata,
            "table_structure": table_structure
        }

    except Exception as e:
        logger.error(f"[{request_id}] ===== DATA PROCESSOR END (ERROR) =====")
        logger.exception(f"[{request_id}] Data processing failed: {e}")
        return error_state(e, "DATA_PROCESSING_FAILED")
