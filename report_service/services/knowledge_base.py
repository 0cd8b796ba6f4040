"""Store of queries that previously answered user prompts"""
import re
import logging
from abc import ABC, abstractmethod
from typing import List, Set, Tuple

from ..models import KnowledgeBaseEntry

logger = logging.getLogger(__name__)

WORD_SPLIT_PATTERN = re.compile(r"\W+")


def prompt_words(text: str) -> Set[str]:
    """Lower-cased words longer than two characters"""
    return {word for word in WORD_SPLIT_PATTERN.split(text.lower()) if len(word) > 2}


def prompt_similarity(first: str, second: str) -> float:
    """
    Word-overlap similarity between two prompts.

    Shared words divided by the size of the larger word set; 0.0 when
    either prompt has no qualifying words.
    """
    first_words = prompt_words(first)
    second_words = prompt_words(second)
    if not first_words or not second_words:
        return 0.0
    overlap = len(first_words & second_words)
    return overlap / max(len(first_words), len(second_words))


class QueryKnowledgeStore(ABC):
    """Interface for knowledge base storage"""

    @abstractmethod
    async def add_entry(self, entry: KnowledgeBaseEntry) -> None:
        """
        Append a successful query.

        Args:
            entry: Query together with the prompt it answered
        """
        pass

    @abstractmethod
    async def find_similar(
        self,
        prompt: str,
        threshold: float,
        limit: int
    ) -> List[Tuple[KnowledgeBaseEntry, float]]:
        """
        Find entries whose prompt resembles ``prompt``.

        Args:
            prompt: New user prompt
            threshold: Minimum similarity, exclusive
            limit: Maximum number of matches

        Returns:
            (entry, similarity) pairs, most similar first
        """
        pass

    @abstractmethod
    async def count(self) -> int:
        """Number of stored entries"""
        pass


class InMemoryQueryKnowledgeStore(QueryKnowledgeStore):
    """Append-only store that lives as long as the process"""

    def __init__(self):
        self._entries: List[KnowledgeBaseEntry] = []

    async def add_entry(self, entry: KnowledgeBaseEntry) -> None:
        self._entries.append(entry)
        logger.info(f"Knowledge base now holds {len(self._entries)} queries")

    async def find_similar(
        self,
        prompt: str,
        threshold: float,
        limit: int
    ) -> List[Tuple[KnowledgeBaseEntry, float]]:
        scored = [
            (entry, prompt_similarity(prompt, entry.userPrompt))
            for entry in list(self._entries)
        ]
        matches = [pair for pair in scored if pair[1] > threshold]
        matches.sort(key=lambda pair: pair[1], reverse=True)
        return matches[:limit]

    async def count(self) -> int:
        return len(self._entries)
