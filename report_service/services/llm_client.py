"""Chat transports for the LLM gateway"""
import logging
from typing import Dict, List, Optional

import httpx
from langchain_community.chat_models import ChatOllama
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from ..config import settings
from ..exceptions import LLMServiceError
from ..utils.llm_output import response_text

logger = logging.getLogger(__name__)


def to_langchain_messages(messages: List[Dict[str, str]]) -> List[BaseMessage]:
    """Convert role-tagged dicts into langchain chat messages"""
    converted = []
    for message in messages:
        role = (message.get("role") or "user").lower()
        content = message.get("content") or ""
        if role == "system":
            converted.append(SystemMessage(content=content))
        elif role in ("assistant", "ai"):
            converted.append(AIMessage(content=content))
        else:
            converted.append(HumanMessage(content=content))
    return converted


class OllamaChatTransport:
    """Sends chat turns to a local Ollama model through langchain"""

    def __init__(self):
        self.host = settings.OLLAMA_HOST
        self.model = settings.OLLAMA_MODEL
        self.temperature = settings.OLLAMA_TEMPERATURE
        self.timeout = settings.LLM_TIMEOUT
        self._llm: Optional[ChatOllama] = None

    def get_llm(self) -> ChatOllama:
        """
        Get Ollama LLM instance.

        Returns:
            ChatOllama instance
        """
        if self._llm is None:
            self._llm = ChatOllama(
                base_url=self.host,
                model=self.model,
                temperature=self.temperature,
                timeout=self.timeout,
            )
        return self._llm

    async def chat(self, messages: List[Dict[str, str]]) -> str:
        response = await self.get_llm().ainvoke(to_langchain_messages(messages))
        return response_text(response)

    def describe(self) -> str:
        return f"ollama:{self.model}"


class MistralChatTransport:
    """Sends chat turns to the hosted Mistral chat-completions API"""

    def __init__(self, api_key: Optional[str] = None):
        self.api_url = settings.MISTRAL_API_URL
        self.api_key = api_key or settings.MISTRAL_API_KEY
        self.model = settings.MISTRAL_MODEL
        self.timeout = settings.LLM_TIMEOUT

    async def chat(self, messages: List[Dict[str, str]]) -> str:
        """
        Post the conversation and return the first choice's content.

        Raises:
            LLMServiceError: On a non-2xx response, carrying its status code
        """
        if not self.api_key:
            raise LLMServiceError("MISTRAL_API_KEY is not configured")

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        payload = {"model": self.model, "messages": messages}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.api_url, json=payload, headers=headers)

        if response.status_code >= 400:
            raise LLMServiceError(
                f"Mistral API returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code
            )

        data = response.json()
        return data["choices"][0]["message"]["content"]

    def describe(self) -> str:
        return f"mistral:{self.model}"


def create_transport(provider: Optional[str] = None):
    """Build the transport for the configured provider"""
    provider = (provider or settings.LLM_PROVIDER).lower()
    if provider == "mistral":
        return MistralChatTransport()
    if provider == "ollama":
        return OllamaChatTransport()
    raise ValueError(f"Unknown LLM provider: {provider}")
