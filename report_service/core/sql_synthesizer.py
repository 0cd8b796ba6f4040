"""Turn a request into a single SELECT statement"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..config import settings
from ..models import KnowledgeBaseEntry, MinimalSchema, PromptAnalysis
from ..prompts.sql_generator import (
    create_additional_queries_prompt,
    create_sql_fix_prompt,
    create_sql_generation_prompt,
)
from ..services.knowledge_base import QueryKnowledgeStore
from ..services.llm_gateway import LLMGateway, format_conversation_history
from ..utils.llm_output import extract_json_array
from ..utils.sql_utils import (
    clean_sql_response,
    ensure_limit,
    extract_aliases,
    extract_join_clauses,
    extract_table_names,
    extract_where_conditions,
    is_all_data_request,
    is_select_statement,
    scan_sql_issues,
    strip_limits,
    strip_trailing_limit,
)

logger = logging.getLogger(__name__)

KNOWLEDGE_REUSE_LIMIT = 100


def default_query(schema: Optional[MinimalSchema]) -> str:
    """Safe statement used when the model produced no usable SQL"""
    if schema and schema.tables:
        table = schema.table_names()[0]
        return f'SELECT * FROM "{table}" LIMIT 10'
    return "SELECT 1"


class SQLSynthesizer:
    """
    Produces SQL for a prompt.

    Reuses a known-good query when a similar prompt was answered before,
    otherwise asks the LLM and repairs common mistakes with one
    correction round. The returned statement always starts with SELECT or
    WITH.
    """

    def __init__(self, gateway: LLMGateway, knowledge_store: QueryKnowledgeStore):
        self.gateway = gateway
        self.knowledge_store = knowledge_store
        self.similarity_threshold = settings.KNOWLEDGE_SIMILARITY_THRESHOLD
        self.max_matches = settings.KNOWLEDGE_MAX_MATCHES

    async def synthesize(
        self,
        prompt: str,
        schema: MinimalSchema,
        analysis: Optional[PromptAnalysis] = None,
        history: Optional[Sequence] = None
    ) -> str:
        """
        Generate SQL for a prompt over the minimal schema.

        Args:
            prompt: User's question
            schema: Minimal schema of the relevant tables
            analysis: Prompt analysis
            history: Earlier conversation turns

        Returns:
            SQL statement starting with SELECT or WITH

        Raises:
            LLMServiceError: The provider failed (malformed output never raises)
        """
        all_data = is_all_data_request(prompt)

        reused = await self.find_knowledge_based_sql(prompt, schema)
        if reused:
            logger.info(f"Reusing knowledge-based SQL: {reused[:200]}")
            return reused

        generation_prompt = create_sql_generation_prompt(
            prompt,
            schema,
            analysis or PromptAnalysis.default_for(prompt),
            format_conversation_history(history),
            all_data=all_data
        )
        response = await self.gateway.complete(generation_prompt, history)
        sql = clean_sql_response(response)
        if sql is None:
            logger.warning(f"LLM returned no SQL, using default query. Response: {response[:200]}")
            sql = default_query(schema)

        sql = await self.validate_sql(sql)

        if all_data:
            sql = strip_trailing_limit(sql)

        logger.info(f"Synthesized SQL: {sql[:500]}")
        return sql

    async def find_knowledge_based_sql(self, prompt: str, schema: MinimalSchema) -> Optional[str]:
        """
        Reuse SQL from the most similar earlier prompt.

        The best match is used only when every table it reads is in the
        current schema. LIMIT clauses are dropped for all-data prompts and a
        LIMIT is added otherwise.
        """
        matches = await self.knowledge_store.find_similar(prompt, self.similarity_threshold, self.max_matches)
        if not matches:
            return None

        best, similarity = matches[0]
        available = {name.lower() for name in schema.table_names()}
        if not best.tables or not all(table.lower() in available for table in best.tables):
            logger.info(f"Similar query found (similarity {similarity:.2f}) but its tables are not all available")
            return None

        logger.info(f"Found similar query with similarity {similarity:.2f}")
        if is_all_data_request(prompt):
            return strip_limits(best.query)
        return ensure_limit(best.query, KNOWLEDGE_REUSE_LIMIT)

    async def validate_sql(self, sql: str) -> str:
        """
        Scan SQL for common mistakes and ask the LLM for one correction.

        The correction is used as returned once cleaned; it is not scanned
        again. A correction without a SELECT/WITH statement is discarded.
        """
        issues = scan_sql_issues(sql)
        if not issues:
            return sql

        logger.info(f"SQL validation found issues: {[issue.type for issue in issues]}")
        fix_prompt = create_sql_fix_prompt(
            sql,
            [issue.message for issue in issues],
            sorted(extract_aliases(sql).keys())
        )
        response = await self.gateway.complete(fix_prompt)
        fixed = clean_sql_response(response)
        if fixed is None:
            logger.warning("SQL correction contained no statement, keeping original SQL")
            return sql

        logger.info(f"Using corrected SQL: {fixed[:200]}")
        return fixed

    async def learn_from_successful_query(self, sql: str, prompt: str, result_count: int) -> bool:
        """
        Remember a query that returned rows.

        Returns:
            True when an entry was stored
        """
        if result_count <= 0 or not is_select_statement(sql):
            return False

        entry = KnowledgeBaseEntry(
            query=sql,
            userPrompt=prompt,
            tables=extract_table_names(sql),
            joins=extract_join_clauses(sql),
            whereConditions=extract_where_conditions(sql),
            resultCount=result_count,
            timestamp=datetime.now(timezone.utc).isoformat()
        )
        await self.knowledge_store.add_entry(entry)
        return True

    async def generate_additional_queries(
        self,
        prompt: str,
        schema: MinimalSchema,
        description: Optional[str]
    ) -> List[Dict[str, Any]]:
        """
        Ask for up to three follow-up queries.

        Entries without a SELECT/WITH statement get a placeholder query.

        Returns:
            List of {description, sql} dicts
        """
        if not description:
            return []

        response = await self.gateway.complete(create_additional_queries_prompt(prompt, schema, description))
        parsed = extract_json_array(response)
        if not parsed:
            logger.warning("Additional queries response was not a JSON array")
            return []

        queries = []
        for item in parsed[:3]:
            if not isinstance(item, dict):
                continue
            item_description = item.get("description") or description
            sql = clean_sql_response(item.get("sql") or "")
            if sql is None:
                sql = f"{default_query(schema)} -- Placeholder for: {item_description}"
            queries.append({"description": item_description, "sql": sql})
        return queries
