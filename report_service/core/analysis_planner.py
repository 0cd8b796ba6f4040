"""Decide how a result set should be analyzed"""
import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from ..exceptions import LLMServiceError, RateLimitExceededError
from ..models import AnalysisDecisions
from ..prompts.analysis_planner import create_analysis_decisions_prompt
from ..services.llm_gateway import LLMGateway
from ..utils.llm_output import extract_json_object

logger = logging.getLogger(__name__)

DECISION_SAMPLE_ROWS = 3


class AnalysisPlanner:
    """Asks the LLM which calculations and follow-ups the rows call for"""

    def __init__(self, gateway: LLMGateway):
        self.gateway = gateway

    async def decide(self, prompt: str, rows: List[Dict[str, Any]]) -> AnalysisDecisions:
        """
        Get analysis decisions for the rows.

        Unusable output, or a provider error other than exhausted rate
        limiting, yields the default decisions.

        Raises:
            RateLimitExceededError: Provider kept rate limiting
        """
        try:
            response = await self.gateway.complete(
                create_analysis_decisions_prompt(prompt, rows[:DECISION_SAMPLE_ROWS])
            )
        except RateLimitExceededError:
            raise
        except LLMServiceError as e:
            logger.warning(f"Analysis decisions unavailable, using defaults: {e}")
            return AnalysisDecisions()

        data = extract_json_object(response)
        if data is None:
            logger.warning("Analysis decisions response was not JSON, using defaults")
            return AnalysisDecisions()

        try:
            decisions = AnalysisDecisions(**data)
        except ValidationError as e:
            logger.warning(f"Analysis decisions did not match expected structure: {e}")
            return AnalysisDecisions()

        logger.info(f"Analysis decisions: calculations={decisions.calculationsNeeded}, "
                    f"techniques={decisions.analysisStrategy.recommendedTechniques}, "
                    f"additional query={decisions.dataRequirements.needsAdditionalQuery}")
        return decisions
