"""Rate-limit aware access to the LLM"""
import asyncio
import logging
import random
from typing import Dict, List, Optional, Sequence, Union

from ..config import settings
from ..exceptions import LLMServiceError, RateLimitExceededError
from ..models import ConversationMessage

logger = logging.getLogger(__name__)

HistoryItem = Union[ConversationMessage, Dict[str, str]]


def _role_and_content(item: HistoryItem):
    if isinstance(item, ConversationMessage):
        return item.role, item.content
    return item.get("role", "user"), item.get("content", "")


def format_conversation_history(history: Optional[Sequence[HistoryItem]]) -> str:
    """
    Serialize prior turns as ``ROLE: content`` lines.

    Returns an empty string when there is no history.
    """
    if not history:
        return ""
    lines = []
    for item in history:
        role, content = _role_and_content(item)
        lines.append(f"{(role or 'user').upper()}: {content}")
    return "\n".join(lines)


def is_rate_limit_error(error: Exception) -> bool:
    """True when the provider signalled rate limiting"""
    status = getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    if status == 429:
        return True
    message = str(error).lower()
    return "429" in message or "rate limit" in message


class LLMGateway:
    """
    Single entry point for text completions.

    Retries only when the provider rate limits, with exponential backoff
    plus jitter. Any other failure surfaces immediately.
    """

    def __init__(
        self,
        transport,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        jitter: Optional[float] = None,
        timeout: Optional[float] = None
    ):
        self.transport = transport
        self.max_retries = settings.LLM_MAX_RETRIES if max_retries is None else max_retries
        self.base_delay = settings.LLM_RETRY_BASE_DELAY if base_delay is None else base_delay
        self.jitter = settings.LLM_RETRY_JITTER if jitter is None else jitter
        self.timeout = settings.LLM_TIMEOUT if timeout is None else timeout

    def build_messages(self, prompt: str, history: Optional[Sequence[HistoryItem]] = None) -> List[Dict[str, str]]:
        """History turns followed by the prompt as the final user turn"""
        messages = []
        for item in history or []:
            role, content = _role_and_content(item)
            messages.append({"role": "assistant" if role in ("assistant", "ai") else "user", "content": content})
        messages.append({"role": "user", "content": prompt})
        return messages

    def backoff_delay(self, attempt: int) -> float:
        return self.base_delay * (2 ** (attempt + 1)) + random.uniform(0, self.jitter)

    async def complete(self, prompt: str, history: Optional[Sequence[HistoryItem]] = None) -> str:
        """
        Send a prompt and return the model's text.

        Args:
            prompt: Prompt text for the final user turn
            history: Earlier conversation turns

        Returns:
            Response text

        Raises:
            RateLimitExceededError: Provider kept rate limiting after all retries
            LLMServiceError: Any other provider failure, including timeouts
        """
        messages = self.build_messages(prompt, history)
        attempt = 0

        while True:
            try:
                return await asyncio.wait_for(self.transport.chat(messages), timeout=self.timeout)

            except asyncio.TimeoutError as e:
                raise LLMServiceError(f"LLM request timed out after {self.timeout}s") from e

            except Exception as e:
                if not is_rate_limit_error(e):
                    if isinstance(e, LLMServiceError):
                        raise
                    logger.error(f"LLM call failed: {e}")
                    raise LLMServiceError(f"AI Service Error: {e}", getattr(e, "status_code", None)) from e

                if attempt >= self.max_retries:
                    logger.error(f"LLM rate limit persisted after {self.max_retries} retries")
                    raise RateLimitExceededError() from e

                delay = self.backoff_delay(attempt)
                attempt += 1
                logger.warning(
                    f"LLM rate limited, retry {attempt}/{self.max_retries} in {delay:.2f}s"
                )
                await asyncio.sleep(delay)
