"""SQL parsing and validation utilities"""
import re
import logging
from typing import Dict, List, Optional, Set

import sqlparse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


STRING_LITERAL_PATTERN = re.compile(r"'(?:[^']|'')*'")
STATEMENT_START_KEYWORD = r"(SELECT\b|WITH\s+(?:RECURSIVE\s+)?[A-Za-z_]\w*\s+AS\s*\()"
STATEMENT_START_PATTERN = re.compile(r"^\s*" + STATEMENT_START_KEYWORD, re.IGNORECASE | re.MULTILINE)
KEYWORD_START_PATTERN = re.compile(r"\b" + STATEMENT_START_KEYWORD, re.IGNORECASE)
SUBQUERY_ALIAS_PATTERN = re.compile(r"\)\s+(?:AS\s+)?([A-Za-z_]\w*)", re.IGNORECASE)
CTE_NAME_PATTERN = re.compile(r"(?:\bWITH|,)\s*(?:RECURSIVE\s+)?([A-Za-z_]\w*)\s+AS\s*\(", re.IGNORECASE)
QUALIFIED_REFERENCE_PATTERN = re.compile(r"(?<![\w.\"])([A-Za-z_]\w*)\.(?:[A-Za-z_]\w*|\*|\"[^\"]+\")")
UNION_PATTERN = re.compile(r"\bUNION(?:\s+ALL)?\b", re.IGNORECASE)
SELECT_PATTERN = re.compile(r"\bSELECT\b", re.IGNORECASE)
FROM_PATTERN = re.compile(r"\bFROM\b", re.IGNORECASE)
DISTINCT_PREFIX_PATTERN = re.compile(r"^\s*DISTINCT(?:\s+ON\s*\([^)]*\))?\s+", re.IGNORECASE)
BARE_COLUMN_PATTERN = re.compile(r"^\"?([A-Za-z_]\w*)\"?(?:\s+(?:AS\s+)?\"?[A-Za-z_]\w*\"?)?$", re.IGNORECASE)
LIMIT_PATTERN = re.compile(r"\s*\bLIMIT\s+\d+\b", re.IGNORECASE)
TRAILING_LIMIT_PATTERN = re.compile(r"\s*\bLIMIT\s+\d+\s*;?\s*$", re.IGNORECASE)
JOIN_CLAUSE_PATTERN = re.compile(
    r"\b(?:(?:LEFT|RIGHT|INNER|FULL|CROSS)(?:\s+OUTER)?\s+)?JOIN\s+.*?"
    r"(?=\b(?:LEFT|RIGHT|INNER|FULL|CROSS|JOIN|WHERE|GROUP|ORDER|LIMIT|UNION)\b|$)",
    re.IGNORECASE | re.DOTALL
)
WHERE_CLAUSE_PATTERN = re.compile(
    r"\bWHERE\s+(.*?)(?:\bGROUP\s+BY\b|\bORDER\s+BY\b|\bLIMIT\b|$)",
    re.IGNORECASE | re.DOTALL
)

SQL_KEYWORDS = {
    "select", "from", "where", "join", "inner", "left", "right", "full", "outer",
    "cross", "on", "group", "order", "by", "having", "limit", "offset", "union",
    "all", "as", "and", "or", "not", "null", "true", "false", "case", "when",
    "then", "else", "end", "distinct", "with", "using", "natural", "lateral",
    "asc", "desc", "in", "is", "like", "between", "exists", "current_date",
    "current_timestamp", "now", "interval", "window", "fetch", "for", "except",
    "intersect",
}

_KEYWORD_ALTERNATION = "|".join(sorted(SQL_KEYWORDS, key=len, reverse=True))

TABLE_REFERENCE_PATTERN = re.compile(
    r"\b(?:FROM|JOIN)\s+((?:\"?[A-Za-z_][\w$]*\"?\.)?\"?[A-Za-z_][\w$]*\"?)"
    r"(?:\s+(?:AS\s+)?(?!(?:" + _KEYWORD_ALTERNATION + r")\b)(\"?[A-Za-z_]\w*\"?))?",
    re.IGNORECASE
)

SUBQUERY_START_PATTERN = re.compile(r"\s*(?:SELECT|WITH)\b", re.IGNORECASE)
FUNCTION_NAME_PATTERN = re.compile(r"([A-Za-z_]\w*)\s*$")

ALL_DATA_PATTERNS = [
    re.compile(r"\b(show|fetch|get|retrieve|return|display)\s+all\s+(the\s+)?data\b", re.IGNORECASE),
    re.compile(r"\ball\s+records\b", re.IGNORECASE),
    re.compile(r"\b(complete|full|entire)\s+(data\s*set|dataset)\b", re.IGNORECASE),
    re.compile(r"\bno\s+limit\b", re.IGNORECASE),
    re.compile(r"\bwithout\s+(a\s+)?limit\b", re.IGNORECASE),
]


class SQLIssue(BaseModel):
    """Problem found by the static scan of a generated query"""
    type: str
    message: str
    details: List[str] = []


def _mask_literals(sql: str) -> str:
    return STRING_LITERAL_PATTERN.sub("''", sql)


def _paren_depths(text: str) -> List[int]:
    depths = []
    depth = 0
    for ch in text:
        if ch == "(":
            depths.append(depth)
            depth += 1
        elif ch == ")":
            depth = max(depth - 1, 0)
            depths.append(depth)
        else:
            depths.append(depth)
    return depths


def _top_level_matches(pattern: re.Pattern, text: str, depths: List[int]) -> List[re.Match]:
    return [m for m in pattern.finditer(text) if depths[m.start()] == 0]


def _inside_function_call(text: str, position: int) -> bool:
    """True when the nearest unclosed parenthesis before ``position`` opens a function call"""
    depth = 0
    for index in range(position - 1, -1, -1):
        ch = text[index]
        if ch == ")":
            depth += 1
        elif ch == "(":
            if depth:
                depth -= 1
                continue
            if SUBQUERY_START_PATTERN.match(text, index + 1):
                return False
            name = FUNCTION_NAME_PATTERN.search(text, 0, index)
            return bool(name) and name.group(1).lower() not in SQL_KEYWORDS
    return False


def _table_references(masked: str) -> List[re.Match]:
    """FROM/JOIN references, skipping EXTRACT(... FROM x) style function arguments"""
    return [m for m in TABLE_REFERENCE_PATTERN.finditer(masked) if not _inside_function_call(masked, m.start())]


def _split_top_level_commas(text: str) -> List[str]:
    depths = _paren_depths(text)
    parts = []
    start = 0
    for index, ch in enumerate(text):
        if ch == "," and depths[index] == 0:
            parts.append(text[start:index])
            start = index + 1
    parts.append(text[start:])
    return [part.strip() for part in parts if part.strip()]


def _normalize_identifier(name: str) -> str:
    return name.strip('"').lower()


def is_select_statement(sql: Optional[str]) -> bool:
    """True when the statement starts with SELECT or WITH"""
    return bool(sql) and bool(re.match(r"^\s*(SELECT|WITH)\b", sql, re.IGNORECASE))


def clean_sql_response(text: Optional[str]) -> Optional[str]:
    """
    Extract a single SQL statement from an LLM response.

    Removes markdown fences and surrounding prose and keeps everything from
    the first SELECT/WITH keyword. WITH counts only when it opens a CTE. A
    keyword at the start of a line wins over one buried in a sentence.

    Args:
        text: Raw model output

    Returns:
        The statement without trailing semicolon, or None when the text holds
        no SELECT/WITH keyword
    """
    if not text:
        return None

    cleaned = re.sub(r"```[a-zA-Z]*", "", text).replace("```", "").strip()

    match = STATEMENT_START_PATTERN.search(cleaned)
    if match:
        start = match.start(1)
    else:
        match = KEYWORD_START_PATTERN.search(cleaned)
        if not match:
            return None
        start = match.start(1)

    statement = cleaned[start:].strip()
    statements = [s for s in sqlparse.split(statement) if s.strip()]
    if statements:
        statement = statements[0].strip()

    statement = statement.rstrip(";").strip()
    return statement if is_select_statement(statement) else None


def extract_table_names(sql: str) -> List[str]:
    """
    Extract table names referenced in FROM and JOIN clauses.

    Schema qualifiers and identifier quotes are dropped. Order of first
    appearance is kept.

    Args:
        sql: SQL query

    Returns:
        List of table names
    """
    tables = []
    for match in _table_references(_mask_literals(sql)):
        name = _normalize_identifier(match.group(1).split(".")[-1])
        if name in SQL_KEYWORDS or name in tables:
            continue
        tables.append(name)
    return tables


def extract_cte_names(sql: str) -> Set[str]:
    return {_normalize_identifier(m.group(1)) for m in CTE_NAME_PATTERN.finditer(_mask_literals(sql))}


def extract_aliases(sql: str) -> Dict[str, str]:
    """
    Map declared aliases to the table they stand for.

    Tables declared without an alias map to themselves.
    """
    aliases = {}
    masked = _mask_literals(sql)
    for match in _table_references(masked):
        table = _normalize_identifier(match.group(1).split(".")[-1])
        if table in SQL_KEYWORDS:
            continue
        alias = match.group(2)
        if alias and _normalize_identifier(alias) not in SQL_KEYWORDS:
            aliases[_normalize_identifier(alias)] = table
        aliases.setdefault(table, table)
    for match in SUBQUERY_ALIAS_PATTERN.finditer(masked):
        alias = _normalize_identifier(match.group(1))
        if alias not in SQL_KEYWORDS:
            aliases.setdefault(alias, alias)
    return aliases


def _valid_qualifiers(sql: str) -> Set[str]:
    qualifiers = set(extract_aliases(sql).keys()) | extract_cte_names(sql)
    for match in _table_references(_mask_literals(sql)):
        parts = match.group(1).split(".")
        if len(parts) > 1:
            qualifiers.add(_normalize_identifier(parts[0]))
    return qualifiers


def split_union_parts(sql: str) -> List[str]:
    """Split a statement on top-level UNION / UNION ALL"""
    masked = _mask_literals(sql)
    depths = _paren_depths(masked)
    parts = []
    start = 0
    for match in _top_level_matches(UNION_PATTERN, masked, depths):
        parts.append(masked[start:match.start()])
        start = match.end()
    parts.append(masked[start:])
    return [part for part in parts if part.strip()]


def select_list_items(sql_part: str) -> List[str]:
    """Items of the top-level select list of one SELECT"""
    depths = _paren_depths(sql_part)
    selects = _top_level_matches(SELECT_PATTERN, sql_part, depths)
    if not selects:
        return []
    list_start = selects[0].end()
    froms = [m for m in _top_level_matches(FROM_PATTERN, sql_part, depths) if m.start() > list_start]
    list_end = froms[0].start() if froms else len(sql_part)
    select_list = DISTINCT_PREFIX_PATTERN.sub("", sql_part[list_start:list_end])
    return _split_top_level_commas(select_list)


def scan_sql_issues(sql: str) -> List[SQLIssue]:
    """
    Statically scan a generated query for common LLM mistakes.

    Reports unqualified columns when more than one table is in play, UNION
    branches whose select lists differ in length, and qualifiers that match
    no declared alias, table or CTE.

    Args:
        sql: SQL query

    Returns:
        List of issues, empty when none were found
    """
    issues: List[SQLIssue] = []
    masked = _mask_literals(sql)
    parts = split_union_parts(masked)
    tables = [t for t in extract_table_names(masked) if t not in extract_cte_names(masked)]

    if len(tables) > 1:
        unqualified = []
        for part in parts:
            for item in select_list_items(part):
                match = BARE_COLUMN_PATTERN.match(item)
                if match and match.group(1).lower() not in SQL_KEYWORDS:
                    unqualified.append(match.group(1))
        if unqualified:
            issues.append(SQLIssue(
                type="ambiguous_columns",
                message=f"Columns without table alias in a multi-table query: {', '.join(unqualified)}",
                details=unqualified
            ))

    if len(parts) > 1:
        counts = [len(select_list_items(part)) for part in parts]
        counts = [count for count in counts if count]
        if len(set(counts)) > 1:
            issues.append(SQLIssue(
                type="union_mismatch",
                message=f"UNION branches select different numbers of columns: {counts}",
                details=[str(count) for count in counts]
            ))

    valid = _valid_qualifiers(masked)
    invalid = []
    for match in QUALIFIED_REFERENCE_PATTERN.finditer(masked):
        qualifier = match.group(1).lower()
        if qualifier not in valid and qualifier not in invalid:
            invalid.append(qualifier)
    if invalid:
        issues.append(SQLIssue(
            type="invalid_alias",
            message=f"Undeclared table aliases referenced: {', '.join(invalid)}",
            details=invalid
        ))

    return issues


def extract_join_clauses(sql: str) -> List[str]:
    return [" ".join(m.group(0).split()) for m in JOIN_CLAUSE_PATTERN.finditer(sql)]


def extract_where_conditions(sql: str) -> List[str]:
    return [" ".join(m.group(1).split()) for m in WHERE_CLAUSE_PATTERN.finditer(sql) if m.group(1).strip()]


def is_all_data_request(prompt: Optional[str]) -> bool:
    """True when the user explicitly asked for every row"""
    if not prompt:
        return False
    return any(pattern.search(prompt) for pattern in ALL_DATA_PATTERNS)


def has_limit(sql: str) -> bool:
    return bool(re.search(r"\bLIMIT\s+\d+", sql, re.IGNORECASE))


def strip_limits(sql: str) -> str:
    """Remove every LIMIT n clause"""
    return LIMIT_PATTERN.sub("", sql).strip()


def strip_trailing_limit(sql: str) -> str:
    """Remove a LIMIT n clause at the very end of the statement"""
    return TRAILING_LIMIT_PATTERN.sub("", sql).strip()


def ensure_limit(sql: str, limit: int) -> str:
    """Append LIMIT when the statement has none"""
    if has_limit(sql):
        return sql
    return f"{sql.rstrip().rstrip(';')} LIMIT {limit}"
