"""Best-effort extraction of table names and record ids from SQL text.

This is string inspection, not a SQL parser. When a statement does not match
the simple shapes below the helpers return placeholder values instead of
raising:

* ``UNKNOWN``: table or record could not be determined.
* ``NEW_RECORD``: an INSERT, whose key is not known before execution.
* ``EXTRACTED_FROM_WHERE``: a WHERE clause filters on an id column. The
  actual value is not extracted.
"""

from __future__ import annotations

UNKNOWN = "unknown"
NEW_RECORD = "new_record"
EXTRACTED_FROM_WHERE = "extracted_from_where"

_IDENTIFIER_STRIP = "\"'`[];,"


def _clean_identifier(token: str) -> str:
    token = token.split("(", 1)[0]
    return token.strip(_IDENTIFIER_STRIP).lower()


def _token_after(parts: list[str], keyword: str) -> str | None:
    try:
        index = parts.index(keyword)
    except ValueError:
        return None
    if index + 1 >= len(parts):
        return None
    return parts[index + 1]


def statement_verb(sql: str | None) -> str | None:
    """Return the leading keyword of ``sql`` upper-cased, or None for blank input."""
    if not sql:
        return None
    parts = sql.strip().split(None, 1)
    return parts[0].upper() if parts else None


def extract_table_name(sql: str | None) -> str:
    if not sql:
        return UNKNOWN
    upper = sql.strip().upper()
    parts = upper.split()
    token: str | None = None
    if upper.startswith("INSERT INTO"):
        token = _token_after(parts, "INTO")
    elif upper.startswith("UPDATE"):
        token = parts[1] if len(parts) > 1 else None
    elif upper.startswith("DELETE FROM") or upper.startswith("SELECT"):
        token = _token_after(parts, "FROM")
    if not token:
        return UNKNOWN
    name = _clean_identifier(token)
    return name or UNKNOWN


def extract_record_id(sql: str | None) -> str:
    if not sql:
        return UNKNOWN
    text = sql.strip()
    upper = text.upper()
    where_at = upper.find("WHERE")
    # Lower-case column match only; "WHERE ID = ?" stays unknown.
    if where_at >= 0 and "id =" in text[where_at:]:
        return EXTRACTED_FROM_WHERE
    if upper.startswith("INSERT"):
        return NEW_RECORD
    return UNKNOWN
