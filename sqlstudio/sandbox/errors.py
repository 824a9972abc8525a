"""
Maps engine failures onto the sandbox's caller-safe vocabulary.

Only SQLSTATE codes are inspected, so the mapping works for any driver that
exposes them (asyncpg, psycopg) and can be exercised without a database.
"""

from __future__ import annotations

import re
from typing import Dict, Optional, Tuple

from ..schemas import ErrorKind

GENERIC_FAILURE = "Query execution failed"
UNAVAILABLE = "Database is unavailable, please try again"

SQLSTATE_REASONS: Dict[str, Tuple[ErrorKind, str]] = {
    "57014": (
        ErrorKind.STATEMENT_TIMEOUT,
        "Query timeout: Your query took too long to execute",
    ),
    "42P01": (ErrorKind.SCHEMA_REFERENCE, "Table not found"),
    "42703": (ErrorKind.SCHEMA_REFERENCE, "Column not found"),
    "42601": (ErrorKind.SYNTAX_ERROR, "SQL syntax error"),
}

# SQLAlchemy's asyncpg adapter renders errors as "<class '...'>: message".
_DRIVER_PREFIX = re.compile(r"^<class '[^']+'>:\s*")


def sqlstate_of(exc: BaseException) -> Optional[str]:
    """
    Returns the SQLSTATE carried by exc, looking through SQLAlchemy's
    DBAPIError wrapper and the driver exception chain.
    """
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        for attr in ("sqlstate", "pgcode"):
            code = getattr(current, attr, None)
            if isinstance(code, str) and code:
                return code
        current = getattr(current, "orig", None) or current.__cause__
    return None


def engine_message(exc: BaseException) -> str:
    """First line of the underlying driver message, without wrapper noise."""
    orig = getattr(exc, "orig", None)
    source = orig if orig is not None else exc
    text = str(source).strip()
    if not text:
        return ""
    first_line = text.splitlines()[0]
    return _DRIVER_PREFIX.sub("", first_line).strip()


def classify_error(exc: BaseException) -> Tuple[ErrorKind, str]:
    """
    Returns (kind, reason) for a failed sandbox execution. The reason never
    contains more than the first line of the engine message.
    """
    code = sqlstate_of(exc)
    if code in SQLSTATE_REASONS:
        return SQLSTATE_REASONS[code]

    message = engine_message(exc)
    return ErrorKind.UNCLASSIFIED, message or GENERIC_FAILURE
