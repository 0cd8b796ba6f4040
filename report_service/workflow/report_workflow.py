"""LangGraph workflow for report generation"""
import logging
from typing import Literal

from langgraph.graph import StateGraph, END

from .state import ReportState
from .nodes import (
    schema_loader,
    request_analyzer,
    table_selector,
    sql_generator,
    sql_executor,
    data_processor,
    analysis_planner,
    report_writer
)

logger = logging.getLogger(__name__)

NODE_ORDER = [
    "load_schema",
    "analyze_prompt",
    "resolve_tables",
    "generate_sql",
    "execute_sql",
    "process_data",
    "plan_analysis",
    "write_report",
]


def check_for_errors(state: ReportState) -> Literal["continue", "error"]:
    """
    Check if any node has set an error in state.

    Args:
        state: Current workflow state

    Returns:
        "error" if error exists, "continue" otherwise
    """
    if state.get("error"):
        return "error"
    return "continue"


def create_report_workflow() -> StateGraph:
    """
    Create and compile the LangGraph workflow for report generation.

    The workflow:
    1. Load schema → cached table and relationship snapshot
    2. Analyze prompt → intent, entities and data requirements
    3. Resolve tables → minimal schema for the request
    4. Generate SQL → reuse known queries or ask the LLM
    5. Execute SQL → with the fallback ladder
    6. Process data → enrichment, insights and column typing in parallel
    7. Plan analysis → decisions, calculations and follow-up queries
    8. Write report → narrative and final result

    Any node that sets ``error`` ends the run.

    Returns:
        Compiled workflow graph
    """
    workflow = StateGraph(ReportState)

    workflow.add_node("load_schema", schema_loader.load_schema)
    workflow.add_node("analyze_prompt", request_analyzer.analyze_prompt)
    workflow.add_node("resolve_tables", table_selector.resolve_tables)
    workflow.add_node("generate_sql", sql_generator.generate_sql)
    workflow.add_node("execute_sql", sql_executor.execute_sql)
    workflow.add_node("process_data", data_processor.process_data)
    workflow.add_node("plan_analysis", analysis_planner.plan_analysis)
    workflow.add_node("write_report", report_writer.write_report)

    workflow.set_entry_point(NODE_ORDER[0])

    # Linear flow with error checks
    for current, following in zip(NODE_ORDER, NODE_ORDER[1:]):
        workflow.add_conditional_edges(
            current,
            check_for_errors,
            {
                "continue": following,
                "error": END
            }
        )

    workflow.add_edge(NODE_ORDER[-1], END)

    compiled = workflow.compile()

    logger.info("Report workflow compiled successfully")

    return compiled


# Global workflow instance (created once)
_workflow = None


def get_workflow() -> StateGraph:
    """Get global workflow instance"""
    global _workflow
    if _workflow is None:
        _workflow = create_report_workflow()
    return _workflow
