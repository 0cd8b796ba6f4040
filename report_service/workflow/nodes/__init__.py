"""Workflow nodes for LangGraph"""
from . import (
    schema_loader,
    request_analyzer,
    table_selector,
    sql_generator,
    sql_executor,
    data_processor,
    analysis_planner,
    report_writer
)

__all__ = [
    "schema_loader",
    "request_analyzer",
    "table_selector",
    "sql_generator",
    "sql_executor",
    "data_processor",
    "analysis_planner",
    "report_writer"
]
