"""PostgreSQL client for executing report queries"""
import asyncio
import logging
from typing import List, Dict, Any, Optional, Sequence

from sqlalchemy import create_engine, text, bindparam
from sqlalchemy.engine import Engine

from ..config import settings
from ..exceptions import QueryExecutionError
from ..utils.json_encoder import to_json_safe

logger = logging.getLogger(__name__)


class DatabaseClient:
    """Client for running read queries against the reporting database"""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.DATABASE_URL
        self.schema = settings.DB_SCHEMA
        self.timeout = settings.DB_QUERY_TIMEOUT
        self.max_rows = settings.MAX_RESULT_ROWS
        self._engine: Optional[Engine] = None

    def get_engine(self) -> Engine:
        """
        Get or create the SQLAlchemy engine.

        Returns:
            SQLAlchemy engine
        """
        if self._engine is None:
            self._engine = create_engine(
                self.database_url,
                pool_size=settings.DB_POOL_SIZE,
                pool_pre_ping=True,
                connect_args={"options": f"-c statement_timeout={self.timeout * 1000}"}
            )
            logger.info(f"Connected to database at {settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}")
        return self._engine

    def close(self):
        """Dispose of pooled connections"""
        if self._engine:
            self._engine.dispose()
            self._engine = None

    def quote_identifier(self, name: str) -> str:
        """Quote a table or column name for the configured dialect"""
        return self.get_engine().dialect.identifier_preparer.quote(name)

    def execute_query(
        self,
        sql: str,
        params: Optional[Dict[str, Any]] = None,
        statement=None
    ) -> List[Dict[str, Any]]:
        """
        Execute SQL and return rows as JSON-safe dictionaries.

        Args:
            sql: SQL query to execute
            params: Bound parameters
            statement: Prebuilt SQLAlchemy text clause, used instead of ``sql``

        Returns:
            List of row dictionaries in column order

        Raises:
            QueryExecutionError: If query execution fails
        """
        try:
            logger.info(f"Executing query: {sql[:200]}")
            with self.get_engine().connect() as conn:
                result = conn.execute(statement if statement is not None else text(sql), params or {})
                columns = list(result.keys())
                rows = result.fetchmany(self.max_rows)

            results = [to_json_safe(dict(zip(columns, row))) for row in rows]
            if len(results) >= self.max_rows:
                logger.warning(f"Results truncated to {self.max_rows} rows")

            logger.info(f"Query returned {len(results)} rows")
            return results

        except Exception as e:
            logger.error(f"Query failed: {e}")
            raise QueryExecutionError(str(e), sql=sql) from e

    async def run_query(
        self,
        sql: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        statement=None
    ) -> List[Dict[str, Any]]:
        """
        Execute SQL off the event loop under a timeout.

        Raises:
            QueryExecutionError: If the query fails or times out
        """
        limit = timeout or self.timeout
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.execute_query, sql, params, statement),
                timeout=limit
            )
        except asyncio.TimeoutError as e:
            raise QueryExecutionError(f"Query timed out after {limit}s", sql=sql) from e

    def table_sample_sql(self, table: str, limit: int) -> str:
        """Statement run by ``fetch_table_sample``"""
        return f"SELECT * FROM {self.quote_identifier(table)} LIMIT {int(limit)}"

    async def fetch_table_sample(self, table: str, limit: int) -> List[Dict[str, Any]]:
        """Fetch up to ``limit`` rows of a table"""
        return await self.run_query(self.table_sample_sql(table, limit))

    async def fetch_rows_by_keys(
        self,
        table: str,
        column: str,
        values: Sequence[Any],
        limit: int
    ) -> List[Dict[str, Any]]:
        """
        Fetch rows of ``table`` whose ``column`` is one of ``values``.

        Values are sent as an expanding bound parameter; identifiers are
        quoted by the dialect.
        """
        if not values:
            return []
        sql = (
            f"SELECT * FROM {self.quote_identifier(table)} "
            f"WHERE {self.quote_identifier(column)} IN :values LIMIT {int(limit)}"
        )
        statement = text(sql).bindparams(bindparam("values", expanding=True))
        params = {"values": list(values)}
        return await self.run_query(sql, params, statement=statement)

    def test_connection(self) -> bool:
        """
        Test database connection.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            with self.get_engine().connect() as conn:
                return conn.execute(text("SELECT 1")).scalar() == 1
        except Exception as e:
            logger.error(f"Database connection test failed: {e}")
            return False


# Global client instance
_client: Optional[DatabaseClient] = None


def get_database_client() -> DatabaseClient:
    """Get global database client instance"""
    global _client
    if _client is None:
        _client = DatabaseClient()
    return _client
