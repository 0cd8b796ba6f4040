"""Structured analysis of the user's request"""
import logging
from typing import List, Optional, Sequence

from pydantic import ValidationError

from ..exceptions import LLMServiceError, RateLimitExceededError
from ..models import PromptAnalysis
from ..prompts.prompt_analyzer import create_prompt_analysis_prompt
from ..services.llm_gateway import LLMGateway, format_conversation_history
from ..utils.llm_output import extract_json_object

logger = logging.getLogger(__name__)


class PromptAnalyzer:
    """Asks the LLM to break a request into intent, entities and data needs"""

    def __init__(self, gateway: LLMGateway):
        self.gateway = gateway

    async def analyze(
        self,
        prompt: str,
        table_names: List[str],
        history: Optional[Sequence] = None
    ) -> PromptAnalysis:
        """
        Analyze a user prompt.

        A response that cannot be parsed, or a provider error other than
        exhausted rate limiting, yields the default analysis.

        Args:
            prompt: User's question
            table_names: Tables available in the database
            history: Earlier conversation turns

        Returns:
            Fully populated prompt analysis

        Raises:
            RateLimitExceededError: Provider kept rate limiting
        """
        analysis_prompt = create_prompt_analysis_prompt(
            prompt,
            table_names,
            format_conversation_history(history)
        )

        try:
            response = await self.gateway.complete(analysis_prompt)
        except RateLimitExceededError:
            raise
        except LLMServiceError as e:
            logger.warning(f"Prompt analysis unavailable, using default: {e}")
            return PromptAnalysis.default_for(prompt)

        data = extract_json_object(response)
        if data is None:
            logger.warning("Prompt analysis response was not JSON, using default")
            return PromptAnalysis.default_for(prompt)

        try:
            analysis = PromptAnalysis(**data)
        except ValidationError as e:
            logger.warning(f"Prompt analysis did not match expected structure: {e}")
            return PromptAnalysis.default_for(prompt)

        if not analysis.coreQuestion:
            analysis.coreQuestion = prompt

        logger.info(f"Prompt analysis: intent={analysis.intentClassification.type}, "
                    f"tables={analysis.dataRequirements.relevantTables}, "
                    f"complexity={analysis.complexityAssessment.level}")
        return analysis
