"""Prompts for picking the tables a request needs"""

TABLE_SELECTION_PROMPT = """Given this user request: "{prompt}"
And these table names: {table_names}

Analyze the request carefully to determine which tables are most relevant.
Consider:
1. Direct mentions of table names or their singular/plural forms
2. References to data that would be stored in specific tables
3. The relationships between tables that might be needed to fulfill the request

Return only the names of tables that are relevant to this query, as a comma-separated list.
Be thorough - include all tables that might be needed to properly answer the query.
Do not include any additional text or formatting.
"""


def create_table_selection_prompt(prompt: str, table_names: list) -> str:
    return TABLE_SELECTION_PROMPT.format(prompt=prompt, table_names=", ".join(table_names))
