"""Prompt for writing the narrative report"""
import json
from typing import Any, Dict, List, Optional

REPORT_PROMPT = """Generate a comprehensive report answering this request: "{prompt}"

DATA SAMPLE: {sample}
ROW COUNT: {row_count}
{sections}
REPORT GUIDELINES:
1. Focus specifically on answering the user's request: "{prompt}"
2. Start with an executive summary that directly addresses what the user asked for
3. Include key findings and insights that are relevant to the user's question
4. Support conclusions with data from the analysis
5. Use bullet points for clarity where appropriate
6. Highlight any anomalies or unexpected patterns
7. Format numbers and dates appropriately
8. Structure the report in a clear, readable format
9. If AI insights are available, incorporate them into the narrative
10. If recommendations are available, include them in a dedicated section
11. IMPORTANT: Use the actual names of entities rather than IDs (e.g., use "Product Name" instead of "product_id")
12. If statistical insights are available, interpret them in business terms
13. DO NOT make assumptions about the business domain - respond directly to what the data shows
"""


def _section(title: str, value: Any) -> str:
    if not value:
        return ""
    return f"{title}: {json.dumps(value, default=str)}\n"


def create_report_prompt(
    prompt: str,
    sample_rows: List[Dict[str, Any]],
    row_count: int,
    enhanced_results: Optional[Dict[str, Any]] = None
) -> str:
    """
    Create the report writing prompt.

    Sections without content are left out entirely.

    Args:
        prompt: User's question
        sample_rows: First rows of the final data
        row_count: Total number of rows
        enhanced_results: Insights, recommendations and statistics

    Returns:
        Formatted prompt
    """
    enhanced_results = enhanced_results or {}
    sections = "".join([
        _section("ENHANCED INSIGHTS", enhanced_results.get("insights")),
        _section("RECOMMENDATIONS", enhanced_results.get("recommendations")),
        _section("STATISTICAL INSIGHTS", enhanced_results.get("statisticalInsights")),
        _section("AI INSIGHTS", enhanced_results.get("aiInsights")),
    ])
    return REPORT_PROMPT.format(
        prompt=prompt,
        sample=json.dumps(sample_rows, default=str),
        row_count=row_count,
        sections=sections
    )
