"""
Data enrichment: foreign-key resolution, type inference and relationship paths
"""
from .column_metadata import generate_table_structure, get_column_types, infer_column_metadata
from .foreign_keys import find_descriptive_field, identify_foreign_keys, substitute_names
from .relationship_graph import RelationshipGraph
from .service import DataEnrichmentService

__all__ = [
    "DataEnrichmentService",
    "RelationshipGraph",
    "find_descriptive_field",
    "generate_table_structure",
    "get_column_types",
    "identify_foreign_keys",
    "infer_column_metadata",
    "substitute_names",
]
