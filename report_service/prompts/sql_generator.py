"""Prompts for SQL generation and repair"""
import json
from typing import List

SQL_GENERATOR_PROMPT = """{history_section}You are a SQL expert. Generate a PostgreSQL query based on the following information:

RELEVANT SCHEMA:
{schema}

USER REQUEST: {prompt}

DETAILED REQUEST ANALYSIS:
{analysis}

IMPORTANT GUIDELINES:
1. Use only the tables provided in the schema
2. Use appropriate JOINs based on the relationships provided
3. Include error handling for NULL values
4. Use appropriate aggregation functions when needed
5. Return ONLY the SQL query without any markdown formatting, explanations, or backticks
6. The query must start with SELECT or WITH
7. ALWAYS qualify column names with table aliases to avoid ambiguity (e.g., use "c.country_id" instead of just "country_id")
8. When using UNION, ensure all SELECT statements have the same number of columns with matching data types
9. For complex queries, use CTEs (WITH clause) to improve readability and maintainability
10. Use table aliases for all tables (e.g., "FROM countries AS c")
11. Pay special attention to the core question and intent identified in the request analysis
12. Apply any filters or conditions identified in the request analysis
13. Include the specific fields identified as relevant in the request analysis
{limit_guideline}"""

ALL_DATA_GUIDELINE = "14. The user asked for all records: do NOT add a LIMIT clause\n"

SQL_FIX_PROMPT = """This SQL query has the following issues that need to be fixed:

{sql}

ISSUES:
{issues}

AVAILABLE TABLE ALIASES: {aliases}

Please fix the query by:
1. Ensuring all table aliases are properly defined in FROM/JOIN clauses
2. Using only defined table aliases in column references
3. Adding table aliases to ALL column references to avoid ambiguity
4. Making every SELECT in a UNION return the same number of columns

Return ONLY the corrected SQL query without any explanations or markdown.
"""

ADDITIONAL_QUERIES_PROMPT = """Based on this user request: "{prompt}"

We need additional data described as: "{description}"

Using this schema: {schema}

Generate up to 3 SQL queries that would provide the additional data needed.
Format each query as a JSON object with "description" and "sql" fields.
Return an array of these objects.

IMPORTANT: Each SQL query MUST start with SELECT or WITH.
"""


def format_schema_for_prompt(schema) -> str:
    """Pretty JSON for a pydantic schema model or plain dict"""
    data = schema.model_dump() if hasattr(schema, "model_dump") else schema
    return json.dumps(data, indent=2, default=str)


def create_sql_generation_prompt(
    prompt: str,
    schema,
    analysis,
    history_text: str = "",
    all_data: bool = False
) -> str:
    """
    Create the SQL generation prompt.

    Args:
        prompt: User's question
        schema: Minimal schema for the relevant tables
        analysis: Prompt analysis
        history_text: Formatted earlier conversation, may be empty
        all_data: Whether the user asked for every row

    Returns:
        Formatted prompt
    """
    history_section = f"CONVERSATION HISTORY:\n{history_text}\n\n" if history_text else ""
    return SQL_GENERATOR_PROMPT.format(
        history_section=history_section,
        schema=format_schema_for_prompt(schema),
        prompt=prompt,
        analysis=format_schema_for_prompt(analysis),
        limit_guideline=ALL_DATA_GUIDELINE if all_data else ""
    )


def create_sql_fix_prompt(sql: str, issue_messages: List[str], aliases: List[str]) -> str:
    return SQL_FIX_PROMPT.format(
        sql=sql,
        issues="\n".join(f"- {message}" for message in issue_messages),
        aliases=", ".join(aliases) if aliases else "(none declared)"
    )


def create_additional_queries_prompt(prompt: str, schema, description: str) -> str:
    return ADDITIONAL_QUERIES_PROMPT.format(
        prompt=prompt,
        description=description,
        schema=format_schema_for_prompt(schema)
    )
