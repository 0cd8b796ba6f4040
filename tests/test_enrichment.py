"""
Unit tests for data enrichment: foreign keys, column metadata and relationship paths
"""

import pytest
from unittest.mock import AsyncMock, Mock

from report_service.models import BatchQuery, DataRequirements, ForeignKeyReference, PromptAnalysis
from report_service.core.enrichment import (
    DataEnrichmentService,
    RelationshipGraph,
    find_descriptive_field,
    generate_table_structure,
    get_column_types,
    identify_foreign_keys,
    infer_column_metadata,
    substitute_names,
)
from report_service.core.enrichment.column_metadata import display_name, parse_number
from report_service.core.enrichment.foreign_keys import foreign_key_base, name_column_for

from conftest import make_shop_schema


class TestForeignKeys:
    """Test cases for foreign key inference and name substitution"""

    def setup_method(self):
        """Set up test fixtures"""
        self.schema = make_shop_schema()

    def test_foreign_key_base(self):
        assert foreign_key_base("category_id") == "category"
        assert foreign_key_base("customerId") == "customer"
        assert foreign_key_base("id") is None

    def test_name_column_for(self):
        assert name_column_for("category_id") == "category_name"
        assert name_column_for("customerId") == "customerName"

    def test_inferred_from_column_name(self):
        """category_id resolves to the existing categories table"""
        references = identify_foreign_keys(["id", "category_id", "name"], [], ["categories", "products"])

        assert references == [ForeignKeyReference(column="category_id", referenced_table="categories")]

    def test_declared_relationship_preferred(self):
        references = identify_foreign_keys(
            ["customer_id"], self.schema.relationships, self.schema.table_names(), ["orders"]
        )

        assert references[0].referenced_table == "customers"
        assert references[0].referenced_column == "id"

    def test_unknown_table_skipped_with_table_list(self):
        assert identify_foreign_keys(["supplier_id"], [], ["products"]) == []

    def test_guess_without_table_list(self):
        references = identify_foreign_keys(["supplier_id"])
        assert references[0].referenced_table == "supplier"

    def test_find_descriptive_field(self):
        assert find_descriptive_field([{"id": 1, "title": "Intro", "name": "x"}]) == "name"
        assert find_descriptive_field([{"id": 1, "sku": "A1"}]) == "sku"
        assert find_descriptive_field([{"id": 1}]) is None
        assert find_descriptive_field([]) is None

    def test_substitute_names(self):
        """A name column is added next to the key; input rows are untouched"""
        rows = [{"category_id": 1}, {"category_id": 3}]
        reference = ForeignKeyReference(column="category_id", referenced_table="categories")

        enriched = substitute_names(rows, reference, [{"id": 1, "name": "Tools"}, {"id": 2, "name": "Toys"}])

        assert enriched == [{"category_id": 1, "category_name": "Tools"}, {"category_id": 3}]
        assert rows == [{"category_id": 1}, {"category_id": 3}]

    def test_existing_name_column_not_overwritten(self):
        rows = [{"category_id": 1, "category_name": "Mine"}]
        reference = ForeignKeyReference(column="category_id", referenced_table="categories")

        enriched = substitute_names(rows, reference, [{"id": 1, "name": "Tools"}])

        assert enriched[0]["category_name"] == "Mine"


class TestColumnMetadata:
    """Test cases for column type inference and table structure"""

    def setup_method(self):
        """Set up test fixtures"""
        self.rows = [
            {"id": 1, "name": "Widget", "price": 9.5, "category_name": "Tools", "qty": 3, "order_date": "2024-01-05"},
            {"id": 2, "name": "Gadget", "price": 12.0, "category_name": "Toys", "qty": 1, "order_date": "2024-02-11"},
        ]

    def test_parse_number(self):
        assert parse_number("12.5") == 12.5
        assert parse_number(True) is None
        assert parse_number("$1,234.56") is None
        assert parse_number(float("nan")) is None

    def test_display_name(self):
        assert display_name("customer_name") == "Customer name"
        assert display_name("customerName") == "Customer Name"

    def test_infer_types_and_formats(self):
        metadata = infer_column_metadata(self.rows)

        assert metadata["id"].isId
        assert metadata["price"].format == "currency"
        assert metadata["qty"].format == "integer"
        assert metadata["order_date"].type == "date"
        assert metadata["name"].isName
        assert metadata["category_name"].type == "string"
        assert metadata["category_name"].distinctCount == 2

    def test_formatted_values_are_strings(self):
        """Already formatted values infer as text, so a second pass changes nothing"""
        formatted = [{"price": "$1,234.56"}, {"price": "$99.00"}]

        first = infer_column_metadata(formatted)
        second = infer_column_metadata(formatted)

        assert first["price"].type == "string"
        assert first == second

    def test_get_column_types(self):
        assert get_column_types(self.rows) == {
            "id": "number", "name": "string", "price": "number",
            "category_name": "string", "qty": "number", "order_date": "date",
        }
        assert get_column_types([]) == {}

    def test_table_structure(self):
        structure = generate_table_structure(infer_column_metadata(self.rows))

        assert structure.primaryKey == "id"
        assert structure.displayColumns == ["category_name", "name", "order_date", "price", "qty"]
        assert structure.summaryColumns == ["price", "qty"]
        assert structure.groupableColumns == ["name", "category_name"]
        assert structure.sortableColumns == list(self.rows[0].keys())

    def test_small_table_keeps_ids(self):
        structure = generate_table_structure(infer_column_metadata([{"id": 1, "name": "A"}]))

        assert structure.displayColumns == ["name", "id"]


class TestRelationshipGraph:
    """Test cases for RelationshipGraph"""

    def setup_method(self):
        """Set up test fixtures"""
        self.graph = RelationshipGraph(make_shop_schema().relationships)

    def test_multi_hop_path(self):
        paths = self.graph.find_paths("orders", "categories")

        assert [(hop["from"], hop["to"]) for hop in paths[0]] == [("orders", "products"), ("products", "categories")]
        assert all(hop["direction"] == "direct" for hop in paths[0])

    def test_inverse_direction(self):
        hop = self.graph.find_paths("categories", "products")[0][0]

        assert hop["direction"] == "inverse"
        assert hop["fromColumn"] == "id"
        assert hop["toColumn"] == "category_id"

    def test_no_path_to_itself(self):
        assert self.graph.find_paths("orders", "orders") == []

    def test_unknown_table(self):
        assert self.graph.find_paths("orders", "missing") == []
        assert self.graph.neighbors("missing") == []

    def test_paths_memoized(self):
        first = self.graph.find_paths("orders", "categories")
        size = self.graph.cache_size()

        assert self.graph.find_paths("orders", "categories") is first
        assert self.graph.cache_size() == size

    def test_neighbors(self):
        neighbors = {(n["table"], n["direction"]) for n in self.graph.neighbors("products")}

        assert neighbors == {("categories", "direct"), ("orders", "inverse")}


class TestDataEnrichmentService:
    """Test cases for DataEnrichmentService"""

    def setup_method(self):
        """Set up test fixtures"""
        self.schema = make_shop_schema()
        self.db = Mock()
        self.db.fetch_rows_by_keys = AsyncMock()
        self.db.run_query = AsyncMock()
        self.service = DataEnrichmentService(self.db)
        self.rows = [
            {"id": 1, "name": "Widget", "category_id": 1},
            {"id": 2, "name": "Gadget", "category_id": 2},
            {"id": 3, "name": "Gizmo", "category_id": 1},
        ]

    @pytest.mark.asyncio
    async def test_enrich_with_related_names(self):
        self.db.fetch_rows_by_keys.return_value = [{"id": 1, "name": "Tools"}, {"id": 2, "name": "Toys"}]

        result = await self.service.enrich_with_related_names(self.rows, self.schema, ["products"])

        assert result.ok
        rows, related = result.value
        assert [row["category_name"] for row in rows] == ["Tools", "Toys", "Tools"]
        assert list(related) == ["categories"]
        self.db.fetch_rows_by_keys.assert_awaited_once_with("categories", "id", [1, 2], 1000)
        assert "category_name" not in self.rows[0]

    @pytest.mark.asyncio
    async def test_failed_fetch_leaves_rows(self):
        self.db.fetch_rows_by_keys.side_effect = RuntimeError("connection reset")

        result = await self.service.enrich_with_related_names(self.rows, self.schema, ["products"])

        rows, related = result.value
        assert rows == self.rows
        assert related == {}

    @pytest.mark.asyncio
    async def test_empty_rows(self):
        result = await self.service.enrich_with_related_names([], self.schema)

        assert result.value == ([], {})

    def test_join_child_counts(self):
        """Tables referencing the primary table contribute a count column"""
        customers = [{"id": 10, "name": "Ada"}, {"id": 11, "name": "Grace"}]
        orders = [{"id": 1, "customer_id": 10}, {"id": 2, "customer_id": 10}]
        graph = RelationshipGraph(self.schema.relationships)

        merged = self.service.join_related_tables("customers", customers, {"orders": orders}, graph)

        assert [row["orders_count"] for row in merged] == [2, 0]

    def test_join_skips_unrelated_tables(self):
        graph = RelationshipGraph(self.schema.relationships)

        merged = self.service.join_related_tables("customers", [{"id": 1}], {"categories": [{"id": 1}]}, graph)

        assert merged == [{"id": 1}]

    @pytest.mark.asyncio
    async def test_execute_batch_isolates_failures(self):
        async def run_query(sql):
            if "broken" in sql:
                raise RuntimeError("syntax error")
            return [{"n": 1}, {"n": 2}]

        self.db.run_query.side_effect = run_query

        results = await self.service.execute_batch([
            BatchQuery(id="q1", sql="SELECT n FROM t"),
            BatchQuery(id="q2", sql="SELECT broken"),
        ])

        assert [(r.id, r.success, r.rowCount) for r in results] == [("q1", True, 2), ("q2", False, 0)]
        assert results[1].error == "syntax error"

    def test_filter_by_prompt_analysis(self):
        rows = [{"id": 1, "name": "A", "price": 2, "stock": 5}]
        analysis = PromptAnalysis(dataRequirements=DataRequirements(relevantFields=["products.price"]))

        assert self.service.filter_by_prompt_analysis(rows, analysis) == [{"id": 1, "name": "A", "price": 2}]

    def test_filter_without_matching_fields(self):
        rows = [{"id": 1, "price": 2}]
        analysis = PromptAnalysis(dataRequirements=DataRequirements(relevantFields=["revenue"]))

        assert self.service.filter_by_prompt_analysis(rows, analysis) is rows
        assert self.service.filter_by_prompt_analysis(rows, None) is rows


if __name__ == "__main__":
    pytest.main([__file__])
