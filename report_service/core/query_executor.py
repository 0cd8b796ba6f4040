"""
Query execution with a fallback ladder
"""
import logging
from typing import Any, Dict, List, Optional

from ..config import settings
from ..models import ExecutionResult, SchemaSnapshot
from ..services.database_client import DatabaseClient
from ..services.stream_publisher import ProgressPublisher
from ..utils.sql_utils import extract_table_names
from .enrichment import DataEnrichmentService, RelationshipGraph

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "Could not retrieve data. Please try a different query."


class QueryExecutor:
    """
    Runs generated SQL and degrades to simpler reads when it fails.

    The ladder is: the SQL itself, a scan of its primary table (with the
    other referenced tables merged in memory), a sample from any schema
    table, and finally an empty result. ``execute`` never raises.
    """

    def __init__(self, db: DatabaseClient, enrichment: DataEnrichmentService):
        self.db = db
        self.enrichment = enrichment

    async def execute(
        self,
        sql: str,
        schema: SchemaSnapshot,
        publisher: Optional[ProgressPublisher] = None
    ) -> ExecutionResult:
        """
        Execute ``sql`` and fall back step by step on failure.

        Args:
            sql: Generated SELECT statement
            schema: Current schema snapshot
            publisher: Optional progress publisher for fallback notices

        Returns:
            ExecutionResult describing the rows and how they were obtained
        """
        try:
            rows = await self.db.run_query(sql)
            return ExecutionResult(rows=rows, sql_used=sql)
        except Exception as e:
            error = str(e)
            logger.warning(f"Primary query failed, falling back: {error}")

        if publisher:
            await publisher.publish_progress("Query failed, trying a simpler approach...")

        result = await self.fallback_to_referenced_tables(sql, schema)
        if result is None:
            result = await self.fallback_to_any_table(schema)
        if result is None:
            logger.error("All fallbacks failed, returning empty result")
            result = ExecutionResult(sql_used=sql, fallback_used=True, message=NO_DATA_MESSAGE)

        result.error = error
        return result

    async def fallback_to_referenced_tables(
        self,
        sql: str,
        schema: SchemaSnapshot
    ) -> Optional[ExecutionResult]:
        """Scan the tables named in ``sql`` and merge them on their foreign keys"""
        tables = self._schema_tables(extract_table_names(sql), schema)
        if not tables:
            logger.info("Failed SQL references no known tables")
            return None

        primary = tables[0]
        limit = settings.FALLBACK_ROW_LIMIT
        try:
            rows = await self.db.fetch_table_sample(primary, limit)
        except Exception as e:
            logger.warning(f"Fallback scan of {primary} failed: {e}")
            return None

        related: Dict[str, List[Dict[str, Any]]] = {}
        for table in tables[1:]:
            try:
                related[table] = await self.db.fetch_table_sample(table, limit)
            except Exception as e:
                logger.warning(f"Fallback scan of related table {table} failed: {e}")

        if related:
            graph = RelationshipGraph(schema.relationships)
            rows = self.enrichment.join_related_tables(primary, rows, related, graph)

        logger.info(f"Fallback on {primary} returned {len(rows)} rows, merged {list(related)}")
        return ExecutionResult(
            rows=rows,
            sql_used=self.db.table_sample_sql(primary, limit),
            fallback_used=True,
            message=f"Could not execute original query. Showing data from {primary} instead.",
            related_data=related
        )

    async def fallback_to_any_table(self, schema: SchemaSnapshot) -> Optional[ExecutionResult]:
        """Return a sample from the first schema table that has rows"""
        limit = settings.SAMPLE_ROW_LIMIT
        for table in schema.table_names()[:settings.SAMPLE_TABLE_LIMIT]:
            try:
                rows = await self.db.fetch_table_sample(table, limit)
            except Exception as e:
                logger.warning(f"Sample of {table} failed: {e}")
                continue
            if rows:
                return ExecutionResult(
                    rows=rows,
                    sql_used=self.db.table_sample_sql(table, limit),
                    fallback_used=True,
                    message=f"Could not execute original query. Showing sample data from {table} instead."
                )
        return None

    @staticmethod
    def _schema_tables(candidates: List[str], schema: SchemaSnapshot) -> List[str]:
        lookup = {name.lower(): name for name in schema.table_names()}
        resolved = []
        for candidate in candidates:
            name = lookup.get(candidate.split(".")[-1].lower())
            if name and name not in resolved:
                resolved.append(name)
        return resolved
