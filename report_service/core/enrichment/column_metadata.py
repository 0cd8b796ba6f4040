"""
Column type inference and table layout for result sets
"""
import re
import math
import logging
from collections import Counter
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from ...models import ColumnMetadata, TableStructure
from .foreign_keys import is_id_column

logger = logging.getLogger(__name__)

CURRENCY_HINTS = ("price", "cost", "amount", "total")
PERCENT_HINTS = ("percent", "rate")
DATE_NAME_HINTS = ("date", "time", "created", "updated")
DATE_VALUE_PATTERNS = [
    re.compile(r"^\d{4}-\d{2}-\d{2}"),
    re.compile(r"^\d{2}/\d{2}/\d{4}"),
]
MAX_DISPLAY_COLUMNS = 10
MAX_GROUPABLE_DISTINCT = 20


def display_name(column: str) -> str:
    """Human-readable label: customer_name / customerName -> Customer name / Customer Name"""
    spaced = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", column.replace("_", " "))
    spaced = " ".join(spaced.split())
    return spaced[:1].upper() + spaced[1:]


def is_name_column(column: str) -> bool:
    lowered = column.lower()
    return "name" in lowered or lowered == "title"


def _parses_as_date(value: str) -> bool:
    return not pd.isna(pd.to_datetime(value, errors="coerce"))


def parse_number(value: Any) -> Optional[float]:
    """Numeric value of a number or numeric string, else None"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else float(value)
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def classify_value(column: str, value: Any) -> str:
    """Type of one cell: null, boolean, number, date or string"""
    if value is None or (isinstance(value, str) and not value.strip()):
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (datetime, date)):
        return "date"
    if isinstance(value, (int, float)):
        return "null" if isinstance(value, float) and math.isnan(value) else "number"
    if isinstance(value, str):
        lowered = column.lower()
        if any(hint in lowered for hint in DATE_NAME_HINTS) and \
                any(p.match(value) for p in DATE_VALUE_PATTERNS) and _parses_as_date(value):
            return "date"
        if parse_number(value) is not None:
            return "number"
    return "string"


def _number_format(column: str, values: List[Any]) -> str:
    lowered = column.lower()
    if any(hint in lowered for hint in CURRENCY_HINTS):
        return "currency"
    if any(hint in lowered for hint in PERCENT_HINTS):
        return "percent"
    numbers = [n for n in (parse_number(v) for v in values) if n is not None]
    if numbers and all(float(n).is_integer() for n in numbers):
        return "integer"
    return "decimal"


def infer_column_metadata(rows: List[Dict[str, Any]]) -> Dict[str, ColumnMetadata]:
    """
    Infer type and display hints for every column.

    The type is the majority vote over non-null cells. Name columns added by
    enrichment are always text. Formatted strings such as "$1,234.56" are
    simply strings, so running this on already formatted data is safe.

    Args:
        rows: Result rows

    Returns:
        Mapping of column name to metadata, in column order
    """
    if not rows:
        return {}

    columns: List[str] = []
    for row in rows:
        for column in row:
            if column not in columns:
                columns.append(column)

    metadata = {}
    for column in columns:
        values = [row.get(column) for row in rows]
        non_null = [v for v in values if classify_value(column, v) != "null"]
        distinct = len({str(v) for v in non_null})
        is_id = is_id_column(column)
        is_name = is_name_column(column)

        if column.endswith("_name") or (column.endswith("Name") and len(column) > 4):
            metadata[column] = ColumnMetadata(
                type="string",
                format="text",
                isId=False,
                isName=True,
                displayName=display_name(column),
                distinctCount=distinct
            )
            continue

        votes = Counter(classify_value(column, v) for v in non_null)
        column_type = votes.most_common(1)[0][0] if votes else "string"

        if column_type == "number":
            column_format = _number_format(column, non_null)
        elif column_type == "date":
            column_format = "date"
        else:
            column_format = "text"

        metadata[column] = ColumnMetadata(
            type=column_type,
            format=column_format,
            isId=is_id,
            isName=is_name,
            displayName=display_name(column),
            distinctCount=distinct
        )

    return metadata


def get_column_types(rows: List[Dict[str, Any]]) -> Dict[str, str]:
    """Quick per-column type from the first row"""
    if not rows:
        return {}
    return {column: classify_value(column, value) for column, value in rows[0].items()}


def generate_table_structure(metadata: Dict[str, ColumnMetadata]) -> TableStructure:
    """
    Derive presentation layout from column metadata.

    Display columns skip ids unless the table has three columns or fewer,
    list name columns first and id columns last, and are capped at ten.
    """
    columns = list(metadata.keys())
    if not columns:
        return TableStructure()

    if "id" in metadata:
        primary_key = "id"
    else:
        primary_key = next((c for c in columns if metadata[c].isId), None)

    if len(columns) <= 3:
        display = list(columns)
    else:
        display = [c for c in columns if not metadata[c].isId]

    display.sort(key=lambda c: (0 if metadata[c].isName else 2 if metadata[c].isId else 1, c))

    return TableStructure(
        columns=columns,
        primaryKey=primary_key,
        displayColumns=display[:MAX_DISPLAY_COLUMNS],
        summaryColumns=[c for c in columns if metadata[c].type == "number" and not metadata[c].isId],
        groupableColumns=[
            c for c in columns
            if metadata[c].type in ("string", "boolean")
            and not metadata[c].isId
            and 0 < metadata[c].distinctCount <= MAX_GROUPABLE_DISTINCT
        ],
        sortableColumns=list(columns)
    )
