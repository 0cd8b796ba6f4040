"""Narrative report generation"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from ..config import settings
from ..prompts.report_writer import create_report_prompt
from ..services.llm_gateway import LLMGateway

logger = logging.getLogger(__name__)


class ReportCompositor:
    """Asks the LLM for the final narrative over the enriched rows"""

    def __init__(self, gateway: LLMGateway, sample_rows: Optional[int] = None):
        self.gateway = gateway
        self.sample_rows = sample_rows or settings.REPORT_SAMPLE_ROWS

    async def compose_report(
        self,
        prompt: str,
        rows: List[Dict[str, Any]],
        enhanced_results: Optional[Dict[str, Any]] = None,
        history: Optional[Sequence] = None
    ) -> str:
        """
        Generate the report text.

        Only the first rows are sent along with the total row count. The
        model output is returned as is.

        Raises:
            LLMServiceError: The provider failed
        """
        report_prompt = create_report_prompt(
            prompt,
            rows[:self.sample_rows],
            len(rows),
            enhanced_results
        )
        logger.info(f"Requesting report for {len(rows)} rows ({len(report_prompt)} char prompt)")
        return await self.gateway.complete(report_prompt, history)
