"""Choose which tables a request should query"""
import re
import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Set

from rapidfuzz import fuzz

from ..exceptions import NoTablesAvailableError, RateLimitExceededError
from ..models import PromptAnalysis, SchemaSnapshot
from ..prompts.table_selector import create_table_selection_prompt
from ..services.llm_gateway import LLMGateway
from ..utils.llm_output import extract_json_array, strip_code_fences

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"[a-z0-9_]+")
ID_COLUMN_PATTERN = re.compile(r"(^id$|_id$|Id$)")


def _schema_lookup(schema: SchemaSnapshot) -> Dict[str, str]:
    return {name.lower(): name for name in schema.table_names()}


def _to_schema_names(candidates: Iterable[str], schema: SchemaSnapshot) -> Set[str]:
    lookup = _schema_lookup(schema)
    found = set()
    for candidate in candidates:
        if not isinstance(candidate, str):
            continue
        key = candidate.strip().strip('"').strip("'").strip("`").lower()
        if key in lookup:
            found.add(lookup[key])
    return found


def name_variations(table_name: str) -> Set[str]:
    """Singular, plural and spaced forms of a table name"""
    base = table_name.lower()
    variations = {base, base.replace("_", " "), base.replace("_", "")}
    if base.endswith("ies") and len(base) > 4:
        variations.add(base[:-3] + "y")
    elif base.endswith("es") and len(base) > 4:
        variations.add(base[:-2])
        variations.add(base[:-1])
    elif base.endswith("s") and len(base) > 3:
        variations.add(base[:-1])
    return variations


def prompt_tokens(prompt: str) -> Set[str]:
    """Words of the prompt plus adjacent pairs joined by underscore"""
    words = TOKEN_PATTERN.findall(prompt.lower())
    tokens = set(words)
    tokens.update(f"{first}_{second}" for first, second in zip(words, words[1:]))
    return tokens


class TableRelevanceResolver:
    """
    Decide which tables are needed to answer a prompt.

    Tables named by the prompt analysis win outright. Otherwise three
    strategies run concurrently and their answers are unioned; a failing
    strategy contributes nothing.
    """

    def __init__(self, gateway: LLMGateway, fuzzy_threshold: int = 85):
        self.gateway = gateway
        self.fuzzy_threshold = fuzzy_threshold

    async def resolve_tables(
        self,
        prompt: str,
        schema: SchemaSnapshot,
        analysis: Optional[PromptAnalysis] = None
    ) -> List[str]:
        """
        Resolve the relevant tables for a prompt.

        Args:
            prompt: User's question
            schema: Current schema snapshot
            analysis: Prompt analysis, if available

        Returns:
            Non-empty list of schema table names, in schema order

        Raises:
            NoTablesAvailableError: The schema has no tables
            RateLimitExceededError: LLM strategy hit exhausted rate limiting
        """
        table_names = schema.table_names()
        if not table_names:
            raise NoTablesAvailableError()

        if analysis is not None:
            from_analysis = _to_schema_names(analysis.dataRequirements.relevantTables, schema)
            if from_analysis:
                logger.info(f"Using tables from prompt analysis: {sorted(from_analysis)}")
                return self._ordered(from_analysis, table_names)

        results = await asyncio.gather(
            self.select_with_llm(prompt, schema),
            asyncio.to_thread(self.match_lexically, prompt, schema),
            asyncio.to_thread(self.match_by_schema, prompt, schema),
            return_exceptions=True
        )

        selected: Set[str] = set()
        for strategy, result in zip(("llm", "lexical", "heuristic"), results):
            if isinstance(result, RateLimitExceededError):
                raise result
            if isinstance(result, Exception):
                logger.warning(f"Table strategy '{strategy}' failed: {result}")
                continue
            logger.info(f"Table strategy '{strategy}' selected: {sorted(result)}")
            selected.update(result)

        if not selected:
            logger.warning(f"No relevant tables identified, falling back to '{table_names[0]}'")
            return [table_names[0]]

        return self._ordered(selected, table_names)

    @staticmethod
    def _ordered(selected: Set[str], table_names: List[str]) -> List[str]:
        return [name for name in table_names if name in selected]

    async def select_with_llm(self, prompt: str, schema: SchemaSnapshot) -> Set[str]:
        """Ask the LLM for a table list, accepting a comma list or JSON array"""
        response = await self.gateway.complete(
            create_table_selection_prompt(prompt, schema.table_names())
        )
        parsed = extract_json_array(response)
        if parsed is None:
            parsed = re.split(r"[,\n]", strip_code_fences(response))
        return _to_schema_names(parsed, schema)

    def match_lexically(self, prompt: str, schema: SchemaSnapshot) -> Set[str]:
        """Tables whose name, or name with spaces for underscores, occurs in the prompt"""
        text = prompt.lower()
        return {
            name for name in schema.table_names()
            if name.lower() in text or name.lower().replace("_", " ") in text
        }

    def match_by_schema(self, prompt: str, schema: SchemaSnapshot) -> Set[str]:
        """
        Fuzzy-match prompt words against table and column names.

        Table names are compared in singular and plural form. When no table
        name matches, tables owning a distinctive column named in the prompt
        are chosen instead.
        """
        tokens = {token for token in prompt_tokens(prompt) if len(token) >= 3}
        matched = set()

        for name in schema.table_names():
            variations = {v for v in name_variations(name) if len(v) >= 3}
            if any(
                fuzz.ratio(token, variation) >= self.fuzzy_threshold
                for token in tokens
                for variation in variations
            ):
                matched.add(name)

        if matched:
            return matched

        owners: Dict[str, Set[str]] = {}
        for name, table in schema.tables.items():
            for column in table.columns:
                if ID_COLUMN_PATTERN.search(column.name) or len(column.name) <= 3:
                    continue
                owners.setdefault(column.name.lower(), set()).add(name)

        for column, tables in owners.items():
            if len(tables) <= 2 and column in tokens:
                matched.update(tables)

        return matched
