"""Helpers for pulling structured data out of free-form LLM responses"""
import re
import json
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"```[a-zA-Z]*\s*([\s\S]*?)```")
JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")
JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")


def response_text(response: Any) -> str:
    """Text content of a chat model response"""
    return response.content if hasattr(response, "content") else str(response)


def strip_code_fences(text: str) -> str:
    """Return the body of the first markdown code block, or the text itself"""
    if not text:
        return ""
    match = CODE_FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    return text.replace("```", "").strip()


def extract_json_object(text: str) -> Optional[dict]:
    """
    Parse the first JSON object found in an LLM response.

    Tries the raw text, then a fenced ```json block, then the widest
    {...} span. Returns None when nothing parses to a dict.
    """
    if not text:
        return None

    candidates = [text.strip(), strip_code_fences(text)]
    match = JSON_OBJECT_PATTERN.search(text)
    if match:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(data, dict):
            return data

    logger.warning(f"No JSON object found in LLM response: {text[:200]}")
    return None


def extract_json_array(text: str) -> Optional[list]:
    """Parse the first JSON array found in an LLM response"""
    if not text:
        return None

    candidates = [text.strip(), strip_code_fences(text)]
    match = JSON_ARRAY_PATTERN.search(text)
    if match:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(data, list):
            return data
    return None
