"""Workflow state definition for LangGraph"""
from typing import TypedDict, Optional, List, Dict, Any

from ..models import (
    AnalysisDecisions,
    ColumnMetadata,
    ExecutionResult,
    MinimalSchema,
    PromptAnalysis,
    SchemaSnapshot,
    TableStructure,
)


class ReportState(TypedDict, total=False):
    """
    State definition for the report workflow.

    Each node receives the current state and returns the keys it updates.
    """

    # ========================================================================
    # Input (Set at workflow start)
    # ========================================================================
    request_id: str
    prompt: str
    conversation_history: List[Dict[str, Any]]

    # ========================================================================
    # Intermediate Results (Updated by nodes)
    # ========================================================================
    schema: Optional[SchemaSnapshot]
    prompt_analysis: Optional[PromptAnalysis]
    tables: Optional[List[str]]
    minimal_schema: Optional[MinimalSchema]
    generated_sql: Optional[str]
    execution: Optional[ExecutionResult]
    enriched_rows: Optional[List[Dict[str, Any]]]
    related_data: Optional[Dict[str, List[Dict[str, Any]]]]
    ai_insights: Optional[List[Dict[str, Any]]]
    preliminary_calculations: Optional[Dict[str, Any]]
    preliminary_results: Optional[Dict[str, Any]]
    column_types: Optional[Dict[str, str]]
    column_metadata: Optional[Dict[str, ColumnMetadata]]
    table_structure: Optional[TableStructure]
    decisions: Optional[AnalysisDecisions]
    calculations: Optional[Dict[str, Any]]
    final_rows: Optional[List[Dict[str, Any]]]
    additional_queries: Optional[List[Dict[str, Any]]]
    enhanced_results: Optional[Dict[str, Any]]

    # ========================================================================
    # Control Flow
    # ========================================================================
    error: Optional[str]
    error_code: Optional[str]

    # ========================================================================
    # Output (Final result)
    # ========================================================================
    final_result: Optional[Dict[str, Any]]


def create_initial_state(
    request_id: str,
    prompt: str,
    conversation_history: Optional[List[Dict[str, Any]]] = None
) -> ReportState:
    """
    Create initial workflow state.

    Args:
        request_id: Unique identifier for this request
        prompt: User's question
        conversation_history: Earlier turns as {role, content} dicts

    Returns:
        Initial workflow state
    """
    return ReportState(
        # Input
        request_id=request_id,
        prompt=prompt,
        conversation_history=conversation_history or [],

        # Intermediate (initialized to None)
        schema=None,
        prompt_analysis=None,
        tables=None,
        minimal_schema=None,
        generated_sql=None,
        execution=None,
        enriched_rows=None,
        related_data=None,
        ai_insights=None,
        preliminary_calculations=None,
        preliminary_results=None,
        column_types=None,
        column_metadata=None,
        table_structure=None,
        decisions=None,
        calculations=None,
        final_rows=None,
        additional_queries=None,
        enhanced_results=None,

        # Control flow
        error=None,
        error_code=None,

        # Output
        final_result=None
    )
