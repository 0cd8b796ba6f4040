"""
Foreign-key inference and id-to-name substitution for result rows
"""
import re
import logging
from typing import Any, Dict, Iterable, List, Optional

from ...models import ForeignKeyReference, Relationship

logger = logging.getLogger(__name__)

DESCRIPTIVE_FIELD_PRIORITY = ["name", "title", "label", "description", "code", "username", "email"]
CAMEL_BOUNDARY_PATTERN = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def is_id_column(column: str) -> bool:
    return column == "id" or column.endswith("_id") or (column.endswith("Id") and len(column) > 2)


def foreign_key_base(column: str) -> Optional[str]:
    """Entity name a key column points at, e.g. customer_id / customerId -> customer"""
    if column.endswith("_id") and len(column) > 3:
        base = column[:-3]
    elif column.endswith("Id") and len(column) > 2:
        base = column[:-2]
    else:
        return None
    return CAMEL_BOUNDARY_PATTERN.sub("_", base).lower()


def candidate_table_names(base: str) -> List[str]:
    """Guesses for the table behind an entity name"""
    candidates = [base, f"{base}s", f"{base}es"]
    if base.endswith("y"):
        candidates.append(f"{base[:-1]}ies")
    return candidates


def name_column_for(column: str) -> str:
    """Column that carries the readable name for a key column"""
    if column.endswith("_id"):
        return f"{column[:-3]}_name"
    if column.endswith("Id") and len(column) > 2:
        return f"{column[:-2]}Name"
    return f"{column}_name"


def identify_foreign_keys(
    columns: Iterable[str],
    relationships: Optional[List[Relationship]] = None,
    table_names: Optional[Iterable[str]] = None,
    source_tables: Optional[Iterable[str]] = None
) -> List[ForeignKeyReference]:
    """
    Work out which result columns reference other tables.

    Declared relationships are used first, preferring ones that start at a
    table the query read. Otherwise the referenced table is guessed from
    the column name (category_id -> category, categorys, categoryes,
    categories). With a known table list the first guess that exists wins
    and columns with no existing guess are skipped.

    Args:
        columns: Result column names
        relationships: Declared foreign keys
        table_names: Known tables, if available
        source_tables: Tables the query read

    Returns:
        One reference per key column
    """
    relationships = relationships or []
    sources = {t.lower() for t in (source_tables or [])}
    known = {t.lower(): t for t in table_names} if table_names is not None else None

    references = []
    for column in columns:
        if not is_id_column(column):
            continue

        declared = [rel for rel in relationships if rel.column == column]
        declared.sort(key=lambda rel: rel.table.lower() not in sources)
        if declared and (column != "id" or declared[0].table.lower() in sources):
            rel = declared[0]
            references.append(ForeignKeyReference(
                column=column,
                referenced_table=rel.referenced_table,
                referenced_column=rel.referenced_column
            ))
            continue

        base = foreign_key_base(column)
        if base is None:
            continue

        candidates = candidate_table_names(base)
        if known is None:
            references.append(ForeignKeyReference(column=column, referenced_table=base))
            continue

        for candidate in candidates:
            if candidate in known:
                references.append(ForeignKeyReference(column=column, referenced_table=known[candidate]))
                break

    return references


def find_descriptive_field(rows: List[Dict[str, Any]]) -> Optional[str]:
    """
    Pick the column that best names a row.

    Checks name, title, label, description, code, username and email in
    that order, then falls back to the first non-id column holding a
    non-empty string.
    """
    if not rows:
        return None
    sample = rows[0]
    for field in DESCRIPTIVE_FIELD_PRIORITY:
        if field in sample:
            return field
    for column, value in sample.items():
        if not is_id_column(column) and isinstance(value, str) and value.strip():
            return column
    return None


def _key(value: Any) -> str:
    return str(value)


def substitute_names(
    rows: List[Dict[str, Any]],
    reference: ForeignKeyReference,
    related_rows: List[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """
    Add a readable name column next to a key column.

    Returns a new list; input rows are not modified. Rows are returned
    unchanged when the related rows have no descriptive field or the name
    column already exists.
    """
    field = find_descriptive_field(related_rows)
    name_column = name_column_for(reference.column)
    if field is None or (rows and name_column in rows[0]):
        return [dict(row) for row in rows]

    lookup = {
        _key(related[reference.referenced_column]): related.get(field)
        for related in related_rows
        if related.get(reference.referenced_column) is not None
    }

    enriched = []
    for row in rows:
        new_row = dict(row)
        value = row.get(reference.column)
        if value is not None and _key(value) in lookup:
            new_row[name_column] = lookup[_key(value)]
        enriched.append(new_row)
    return enriched
