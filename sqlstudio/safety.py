from __future__ import annotations

import re
from typing import Any

from .schemas import ErrorKind, ValidationVerdict

# Keyword blacklist. Not a parser: obscure syntax can get past it, the
# executor's unconditional rollback is the backstop.
DESTRUCTIVE_KEYWORDS = re.compile(
    r"\b(DROP|ALTER|CREATE|INSERT|UPDATE|DELETE|TRUNCATE|GRANT|REVOKE|COPY|VACUUM)\b",
    re.IGNORECASE,
)

# Sleep, backend termination/cancellation and server-side file access.
DANGEROUS_FUNCTIONS = re.compile(
    r"\b(pg_sleep|pg_terminate_backend|pg_cancel_backend|pg_read_file|pg_write_file)\b",
    re.IGNORECASE,
)

SELECT_PREFIX = re.compile(r"^\s*SELECT\b", re.IGNORECASE)
LIMIT_CLAUSE = re.compile(r"\bLIMIT\b", re.IGNORECASE)

STATEMENT_TERMINATOR = ";"

DEFAULT_ROW_LIMIT = 500

NOT_A_STRING = "Query must be a non-empty string"
EMPTY_QUERY = "Query cannot be empty"
DESTRUCTIVE_OPERATION = (
    "Destructive operations (DROP, ALTER, CREATE, INSERT, UPDATE, DELETE, etc.) "
    "are not allowed"
)
DANGEROUS_FUNCTION = "Dangerous PostgreSQL functions are not allowed"
MULTIPLE_STATEMENTS = (
    "Multiple statements are not allowed. Please submit one query at a time."
)


class QueryValidator:
    def __init__(self, row_limit: int = DEFAULT_ROW_LIMIT) -> None:
        """
        Static read-only safety check for student SQL.

        row_limit is the cap appended to SELECT statements without a LIMIT.
        """
        if row_limit <= 0:
            raise ValueError(f"row_limit must be positive, got {row_limit}")
        self.row_limit = row_limit

    def validate(self, sql: Any) -> ValidationVerdict:
        """
        Decides whether sql may run in the sandbox.

        Returns an accepted verdict carrying the sanitized text (trailing
        terminator stripped, row cap appended) or a rejection with a reason.
        Never touches the database.
        """
        if not sql or not isinstance(sql, str):
            return ValidationVerdict.reject(ErrorKind.INPUT_INVALID, NOT_A_STRING)

        trimmed = sql.strip()
        if not trimmed:
            return ValidationVerdict.reject(ErrorKind.INPUT_INVALID, EMPTY_QUERY)

        if DESTRUCTIVE_KEYWORDS.search(trimmed):
            return ValidationVerdict.reject(
                ErrorKind.POLICY_VIOLATION, DESTRUCTIVE_OPERATION
            )

        if DANGEROUS_FUNCTIONS.search(trimmed):
            return ValidationVerdict.reject(ErrorKind.POLICY_VIOLATION, DANGEROUS_FUNCTION)

        # Terminators inside string literals or comments count too.
        terminators = trimmed.count(STATEMENT_TERMINATOR)
        ends_with_terminator = trimmed.endswith(STATEMENT_TERMINATOR)
        if terminators > 1 or (terminators == 1 and not ends_with_terminator):
            return ValidationVerdict.reject(
                ErrorKind.POLICY_VIOLATION, MULTIPLE_STATEMENTS
            )

        sanitized = trimmed[:-1].strip() if ends_with_terminator else trimmed
        if not sanitized:
            return ValidationVerdict.reject(ErrorKind.INPUT_INVALID, EMPTY_QUERY)

        # An existing LIMIT is kept as is, even when larger than row_limit.
        if SELECT_PREFIX.match(sanitized) and not LIMIT_CLAUSE.search(sanitized):
            sanitized = f"{sanitized} LIMIT {self.row_limit}"

        return ValidationVerdict.accept(sanitized)


def is_select_query(sql: str) -> bool:
    return bool(SELECT_PREFIX.match(sql.strip()))
