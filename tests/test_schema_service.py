"""
Unit tests for schema introspection and the schema cache
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from report_service.exceptions import SchemaIntrospectionError
from report_service.models import SchemaSnapshot
from report_service.services.schema_service import SchemaCache, SchemaService

from conftest import make_shop_schema


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestSchemaService:
    """Test cases for SchemaService"""

    def setup_method(self):
        """Set up test fixtures"""
        self.db = Mock()
        self.db.run_query = AsyncMock()
        self.service = SchemaService(self.db, schema="public")

    @pytest.mark.asyncio
    async def test_load_snapshot(self):
        self.db.run_query.side_effect = [
            [{
                "table_name": "products",
                "columns": [
                    {"column_name": "id", "data_type": "integer", "is_nullable": "NO", "column_default": None},
                    {"column_name": "category_id", "data_type": "integer", "is_nullable": "YES"},
                ],
            }],
            [{"table_name": "products", "constraint_name": "products_pkey",
              "constraint_type": "PRIMARY KEY", "column_name": "id"}],
            [{"table_name": "products", "column_name": "category_id",
              "foreign_table_name": "categories", "foreign_column_name": "id"}],
        ]

        snapshot = await self.service.load_snapshot()

        products = snapshot.tables["products"]
        assert [c.name for c in products.columns] == ["id", "category_id"]
        assert products.constraints[0]["constraint_type"] == "PRIMARY KEY"
        assert snapshot.relationships[0].referenced_table == "categories"
        assert self.db.run_query.await_args_list[0].args[1] == {"schema": "public"}

    @pytest.mark.asyncio
    async def test_database_failure(self):
        self.db.run_query.side_effect = RuntimeError("connection refused")

        with pytest.raises(SchemaIntrospectionError):
            await self.service.load_snapshot()


class TestSchemaSnapshot:
    """Test cases for SchemaSnapshot.minimal"""

    def test_minimal_keeps_internal_relationships(self):
        minimal = make_shop_schema().minimal(["orders", "products", "missing"])

        assert minimal.table_names() == ["orders", "products"]
        assert [c.name for c in minimal.tables["products"]] == ["id", "name", "price", "category_id"]
        assert [(r.table, r.referenced_table) for r in minimal.relationships] == [("orders", "products")]


class TestSchemaCache:
    """Test cases for SchemaCache"""

    def setup_method(self):
        """Set up test fixtures"""
        self.clock = FakeClock()
        self.cache = SchemaCache(ttl_seconds=300, clock=self.clock)
        self.loader = AsyncMock(side_effect=lambda: SchemaSnapshot())

    @pytest.mark.asyncio
    async def test_reuses_fresh_snapshot(self):
        first = await self.cache.get_or_refresh(self.loader)
        self.clock.now = 299
        second = await self.cache.get_or_refresh(self.loader)

        assert first is second
        assert self.loader.await_count == 1

    @pytest.mark.asyncio
    async def test_reloads_after_ttl(self):
        first = await self.cache.get_or_refresh(self.loader)
        self.clock.now = 300
        second = await self.cache.get_or_refresh(self.loader)

        assert first is not second
        assert self.loader.await_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_refresh(self):
        await asyncio.gather(*(self.cache.get_or_refresh(self.loader) for _ in range(5)))

        assert self.loader.await_count == 1

    @pytest.mark.asyncio
    async def test_invalidate(self):
        await self.cache.get_or_refresh(self.loader)
        self.cache.invalidate()

        assert not self.cache.is_fresh()
        await self.cache.get_or_refresh(self.loader)
        assert self.loader.await_count == 2


if __name__ == "__main__":
    pytest.main([__file__])
