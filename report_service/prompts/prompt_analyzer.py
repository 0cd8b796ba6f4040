"""Prompts for understanding the user's request"""

PROMPT_ANALYSIS_PROMPT = """You are an expert data analyst tasked with understanding a user's request in depth.

USER REQUEST: "{prompt}"
{history_section}
AVAILABLE DATABASE TABLES: {table_names}

Perform a detailed analysis of this request by answering the following:

1. CORE QUESTION: What is the fundamental question or need the user is expressing?

2. INTENT CLASSIFICATION:
   - Is this descriptive (what happened), diagnostic (why it happened), predictive (what will happen), or prescriptive (what should be done)?
   - What specific metrics or KPIs is the user interested in?

3. ENTITIES AND RELATIONSHIPS:
   - What specific entities (e.g., products, customers, transactions) is the user asking about?
   - What relationships between entities need to be explored?
   - What time periods or date ranges are relevant?

4. DATA REQUIREMENTS:
   - Which database tables are most likely to contain the required information?
   - What specific fields would be most relevant?
   - What aggregations or calculations will be needed?
   - Are there any filters or conditions that should be applied?

5. COMPLEXITY ASSESSMENT:
   - How complex is this request (simple, moderate, complex)?
   - Does it require multiple queries or just one?
   - Does it need advanced statistical analysis?

Return your analysis as JSON with exactly this structure:
{{
  "coreQuestion": "...",
  "intentClassification": {{"type": "descriptive", "metrics": []}},
  "entitiesAndRelationships": {{"entities": [], "relationships": [], "timePeriods": []}},
  "dataRequirements": {{"relevantTables": [], "relevantFields": [], "aggregations": [], "filters": []}},
  "complexityAssessment": {{"level": "moderate", "requiresMultipleQueries": false, "requiresAdvancedAnalysis": false}}
}}

IMPORTANT: Format your response as valid JSON only, with no additional text.
"""


def create_prompt_analysis_prompt(prompt: str, table_names: list, history_text: str = "") -> str:
    """
    Create the request analysis prompt.

    Args:
        prompt: User's question
        table_names: Tables available in the database
        history_text: Formatted earlier conversation, may be empty

    Returns:
        Formatted prompt
    """
    history_section = f"\nCONVERSATION CONTEXT:\n{history_text}\n" if history_text else ""
    return PROMPT_ANALYSIS_PROMPT.format(
        prompt=prompt,
        history_section=history_section,
        table_names=", ".join(table_names)
    )
