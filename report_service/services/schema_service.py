"""Database schema introspection with a time-bounded cache"""
import time
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..config import settings
from ..exceptions import SchemaIntrospectionError
from ..models import ColumnInfo, Relationship, SchemaSnapshot, TableSchema
from .database_client import DatabaseClient

logger = logging.getLogger(__name__)


TABLE_SCHEMAS_SQL = """
SELECT
    t.table_name,
    json_agg(
        json_build_object(
            'column_name', c.column_name,
            'data_type', c.data_type,
            'is_nullable', c.is_nullable,
            'column_default', c.column_default
        ) ORDER BY c.ordinal_position
    ) AS columns
FROM information_schema.tables t
JOIN information_schema.columns c
    ON c.table_name = t.table_name
    AND c.table_schema = t.table_schema
WHERE t.table_schema = :schema
    AND t.table_type = 'BASE TABLE'
GROUP BY t.table_name
ORDER BY t.table_name
"""

TABLE_CONSTRAINTS_SQL = """
SELECT
    tc.table_name,
    tc.constraint_name,
    tc.constraint_type,
    kcu.column_name
FROM information_schema.table_constraints tc
JOIN information_schema.key_column_usage kcu
    ON tc.constraint_name = kcu.constraint_name
    AND tc.table_schema = kcu.table_schema
WHERE tc.table_schema = :schema
"""

FOREIGN_KEYS_SQL = """
SELECT
    tc.table_name,
    kcu.column_name,
    ccu.table_name AS foreign_table_name,
    ccu.column_name AS foreign_column_name
FROM information_schema.table_constraints AS tc
JOIN information_schema.key_column_usage AS kcu
    ON tc.constraint_name = kcu.constraint_name
    AND tc.table_schema = kcu.table_schema
JOIN information_schema.constraint_column_usage AS ccu
    ON ccu.constraint_name = tc.constraint_name
    AND ccu.table_schema = tc.table_schema
WHERE tc.constraint_type = 'FOREIGN KEY'
    AND tc.table_schema = :schema
"""


class SchemaService:
    """Reads table, column and foreign-key metadata from information_schema"""

    def __init__(self, db: DatabaseClient, schema: Optional[str] = None):
        self.db = db
        self.schema = schema or settings.DB_SCHEMA

    async def get_all_table_schemas(self) -> Dict[str, TableSchema]:
        """
        Fetch every base table with its ordered columns and constraints.

        Returns:
            Mapping of table name to table schema

        Raises:
            SchemaIntrospectionError: If the database cannot be queried
        """
        try:
            table_rows = await self.db.run_query(TABLE_SCHEMAS_SQL, {"schema": self.schema})
            constraint_rows = await self.db.run_query(TABLE_CONSTRAINTS_SQL, {"schema": self.schema})
        except Exception as e:
            logger.error(f"Failed to read table schemas: {e}")
            raise SchemaIntrospectionError(f"Failed to retrieve database schema: {e}") from e

        constraints: Dict[str, List[Dict[str, Any]]] = {}
        for row in constraint_rows:
            constraints.setdefault(row["table_name"], []).append({
                "constraint_name": row["constraint_name"],
                "constraint_type": row["constraint_type"],
                "column_name": row["column_name"],
            })

        tables = {}
        for row in table_rows:
            columns = [
                ColumnInfo(
                    name=column["column_name"],
                    data_type=column["data_type"],
                    is_nullable=column.get("is_nullable"),
                    column_default=column.get("column_default"),
                )
                for column in (row["columns"] or [])
            ]
            tables[row["table_name"]] = TableSchema(
                columns=columns,
                constraints=constraints.get(row["table_name"], [])
            )

        logger.info(f"Loaded schema for {len(tables)} tables")
        return tables

    async def get_table_relationships(self) -> List[Relationship]:
        """
        Fetch foreign-key relationships between tables.

        Raises:
            SchemaIntrospectionError: If the database cannot be queried
        """
        try:
            rows = await self.db.run_query(FOREIGN_KEYS_SQL, {"schema": self.schema})
        except Exception as e:
            logger.error(f"Failed to read table relationships: {e}")
            raise SchemaIntrospectionError(f"Failed to retrieve table relationships: {e}") from e

        relationships = [
            Relationship(
                table=row["table_name"],
                column=row["column_name"],
                referenced_table=row["foreign_table_name"],
                referenced_column=row["foreign_column_name"],
            )
            for row in rows
        ]
        logger.info(f"Loaded {len(relationships)} foreign-key relationships")
        return relationships

    async def load_snapshot(self) -> SchemaSnapshot:
        """Read tables and relationships together"""
        tables = await self.get_all_table_schemas()
        relationships = await self.get_table_relationships()
        return SchemaSnapshot(tables=tables, relationships=relationships)


class SchemaCache:
    """
    Holds the latest schema snapshot for a fixed time-to-live.

    The snapshot is replaced as a whole on refresh. Concurrent callers that
    find it expired share a single refresh.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl_seconds if ttl_seconds is not None else settings.SCHEMA_CACHE_TTL
        self._clock = clock
        self._snapshot: Optional[SchemaSnapshot] = None
        self._loaded_at: Optional[float] = None
        self._lock = asyncio.Lock()

    def is_fresh(self) -> bool:
        return (
            self._snapshot is not None
            and self._loaded_at is not None
            and self._clock() - self._loaded_at < self.ttl
        )

    async def get_or_refresh(self, loader: Callable[[], Awaitable[SchemaSnapshot]]) -> SchemaSnapshot:
        """Return the cached snapshot, loading a new one when it has expired"""
        if self.is_fresh():
            return self._snapshot

        async with self._lock:
            if self.is_fresh():
                return self._snapshot
            logger.info("Schema cache expired, reloading schema")
            snapshot = await loader()
            self._snapshot = snapshot
            self._loaded_at = self._clock()
            return snapshot

    def invalidate(self):
        self._snapshot = None
        self._loaded_at = None
