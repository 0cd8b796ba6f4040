"""Prompt for deciding how to analyze a result set"""
import json

ANALYSIS_DECISIONS_PROMPT = """Analyze this request: {prompt}

Data sample: {sample}

Return a JSON with analysis decisions. The JSON should include:
- intentClassification (with type, confidence, reasoning)
- dataAssessment (with availableFields, dataTypes, sufficiencyScore, qualityIssues)
- analysisStrategy (with recommendedTechniques, visualizations)
- dataRequirements (with needsAdditionalQuery, additionalQueryDescription)
- calculationsNeeded (array of calculations, e.g. "basic statistics", "correlation analysis", "trend analysis")
- analysisSteps (array of steps)

IMPORTANT: Format your response as valid JSON only, with no additional text.
"""


def create_analysis_decisions_prompt(prompt: str, sample_rows: list) -> str:
    return ANALYSIS_DECISIONS_PROMPT.format(
        prompt=prompt,
        sample=json.dumps(sample_rows, default=str)
    )
