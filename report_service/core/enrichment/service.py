"""
Data enrichment over query results
"""
import asyncio
import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

from ...config import settings
from ...models import BatchQuery, BatchQueryResult, ForeignKeyReference, PromptAnalysis, SchemaSnapshot
from ...services.database_client import DatabaseClient
from ...utils.results import StepResult
from .foreign_keys import find_descriptive_field, identify_foreign_keys, is_id_column, name_column_for, substitute_names
from .relationship_graph import RelationshipGraph

logger = logging.getLogger(__name__)

RelatedData = Dict[str, List[Dict[str, Any]]]


class DataEnrichmentService:
    """
    Adds related information to result rows.

    Every operation works on copies and degrades to returning its input
    unchanged, with the failure reason logged.
    """

    def __init__(self, db: DatabaseClient, related_row_limit: Optional[int] = None):
        self.db = db
        self.related_row_limit = related_row_limit or settings.RELATED_ROW_LIMIT

    async def fetch_related_rows(
        self,
        reference: ForeignKeyReference,
        rows: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        """Rows of the referenced table for the key values present in ``rows``"""
        values = []
        seen = set()
        for row in rows:
            value = row.get(reference.column)
            if value is not None and value not in seen:
                seen.add(value)
                values.append(value)
        if not values:
            return []
        return await self.db.fetch_rows_by_keys(
            reference.referenced_table,
            reference.referenced_column,
            values,
            self.related_row_limit
        )

    async def enrich_with_related_names(
        self,
        rows: List[Dict[str, Any]],
        schema: SchemaSnapshot,
        source_tables: Optional[List[str]] = None
    ) -> StepResult[Tuple[List[Dict[str, Any]], RelatedData]]:
        """
        Resolve key columns to readable names.

        Related tables are fetched concurrently; a failed fetch only skips
        its own column.

        Args:
            rows: Result rows
            schema: Current schema snapshot
            source_tables: Tables the query read

        Returns:
            Enriched rows and the related rows keyed by table
        """
        try:
            if not rows:
                return StepResult.success(([], {}))

            references = identify_foreign_keys(
                rows[0].keys(),
                schema.relationships,
                schema.table_names(),
                source_tables
            )
            if not references:
                return StepResult.success(([dict(row) for row in rows], {}))

            logger.info(f"Resolving {len(references)} foreign keys: "
                        f"{[(r.column, r.referenced_table) for r in references]}")

            fetched = await asyncio.gather(
                *(self.fetch_related_rows(reference, rows) for reference in references),
                return_exceptions=True
            )

            enriched = [dict(row) for row in rows]
            related_data: RelatedData = {}
            for reference, result in zip(references, fetched):
                if isinstance(result, Exception):
                    logger.warning(f"Could not fetch {reference.referenced_table} for "
                                   f"{reference.column}: {result}")
                    continue
                related_data[reference.referenced_table] = result
                enriched = substitute_names(enriched, reference, result)

            return StepResult.success((enriched, related_data))

        except Exception as e:
            logger.error(f"Related-name enrichment failed: {e}")
            return StepResult.failure(str(e))

    def join_related_tables(
        self,
        primary_table: str,
        primary_rows: List[Dict[str, Any]],
        related: RelatedData,
        graph: RelationshipGraph
    ) -> List[Dict[str, Any]]:
        """
        Merge separately fetched tables into the primary rows in memory.

        Tables the primary table references contribute a name column;
        tables referencing the primary table contribute a child count.
        Tables with no direct relationship are ignored.
        """
        merged = [dict(row) for row in primary_rows]

        for table, rows in related.items():
            if not rows:
                continue
            paths = graph.find_paths(primary_table, table, max_depth=1)
            if not paths:
                logger.info(f"No direct relationship between {primary_table} and {table}, skipping merge")
                continue

            hop = paths[0][0]
            if hop["direction"] == "direct":
                field = find_descriptive_field(rows)
                if field is None:
                    continue
                lookup = {str(r.get(hop["toColumn"])): r.get(field) for r in rows}
                name_column = name_column_for(hop["fromColumn"])
                for row in merged:
                    key = str(row.get(hop["fromColumn"]))
                    if key in lookup and name_column not in row:
                        row[name_column] = lookup[key]
            else:
                counts = Counter(str(r.get(hop["toColumn"])) for r in rows)
                count_column = f"{table}_count"
                for row in merged:
                    row[count_column] = counts.get(str(row.get(hop["fromColumn"])), 0)

        return merged

    async def execute_batch(self, queries: List[BatchQuery]) -> List[BatchQueryResult]:
        """
        Run several queries concurrently.

        Each query reports its own success or failure; one failing query
        does not affect the others.
        """
        async def run(query: BatchQuery) -> BatchQueryResult:
            try:
                rows = await self.db.run_query(query.sql)
                return BatchQueryResult(id=query.id, success=True, rows=rows, rowCount=len(rows))
            except Exception as e:
                logger.warning(f"Batch query {query.id} failed: {e}")
                return BatchQueryResult(id=query.id, success=False, error=str(e))

        return list(await asyncio.gather(*(run(query) for query in queries)))

    def filter_by_prompt_analysis(
        self,
        rows: List[Dict[str, Any]],
        analysis: Optional[PromptAnalysis]
    ) -> List[Dict[str, Any]]:
        """
        Keep the fields the request is about, plus id and name columns.

        Rows come back unchanged when the analysis names no fields or none
        of them are present.
        """
        if not rows or analysis is None or not analysis.dataRequirements.relevantFields:
            return rows

        relevant = {field.split(".")[-1].lower() for field in analysis.dataRequirements.relevantFields}
        columns = list(rows[0].keys())
        if not any(column.lower() in relevant for column in columns):
            return rows

        keep = [
            column for column in columns
            if column.lower() in relevant or is_id_column(column) or "name" in column.lower()
        ]
        return [{column: row.get(column) for column in keep} for row in rows]
