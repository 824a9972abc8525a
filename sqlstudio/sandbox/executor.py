import datetime
import logging
import math
import time
from typing import Any, List

from asyncpg import Record
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncTransaction

from ..db.connector import SandboxPool
from ..schemas import ErrorKind, ExecutionOutcome, FieldInfo
from .errors import UNAVAILABLE, classify_error, sqlstate_of

logger = logging.getLogger(__name__)


class SandboxExecutor:
    """
    Runs validator-approved SQL inside a doomed transaction.

    Every call leases its own connection, sets transaction-scoped statement
    and lock timeouts, runs the statement and rolls back, whatever happened.
    Failures come back as ExecutionOutcome, never as exceptions.
    """

    def __init__(
        self,
        pool: SandboxPool,
        statement_timeout_ms: int = 2000,
        lock_timeout_ms: int = 2000,
    ):
        self.pool = pool
        self.statement_timeout_ms = statement_timeout_ms
        self.lock_timeout_ms = lock_timeout_ms

    async def execute(self, sql: str) -> ExecutionOutcome:
        try:
            async with self.pool.lease() as conn:
                return await self._run_in_transaction(conn, sql)
        except Exception as e:
            # Only reachable when leasing (or returning) the connection fails.
            logger.error(f"Sandbox connection unavailable: {e}")
            return ExecutionOutcome.failure(ErrorKind.UNAVAILABLE, UNAVAILABLE)

    async def _run_in_transaction(
        self, conn: AsyncConnection, sql: str
    ) -> ExecutionOutcome:
        trans = None
        start = time.perf_counter()
        try:
            trans = await conn.begin()
            await conn.exec_driver_sql(
                f"SET LOCAL statement_timeout = '{int(self.statement_timeout_ms)}ms'"
            )
            await conn.exec_driver_sql(
                f"SET LOCAL lock_timeout = '{int(self.lock_timeout_ms)}ms'"
            )

            result = await conn.exec_driver_sql(sql)
            fields = _fields_of(result)
            rows = [
                {key: json_safe(value) for key, value in row.items()}
                for row in result.mappings()
            ] if result.returns_rows else []
            row_count = result.rowcount if result.rowcount is not None else -1

            # Never commit, even a read.
            await trans.rollback()

            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.debug(f"Sandbox query returned {len(rows)} rows in {elapsed_ms:.0f}ms")
            return ExecutionOutcome.ok(
                rows=rows,
                fields=fields,
                row_count=row_count if row_count >= 0 else len(rows),
            )

        except Exception as e:
            await self._rollback_quietly(trans)
            kind, reason = classify_error(e)
            logger.error(f"Query execution error: {sqlstate_of(e)} {e}")
            return ExecutionOutcome.failure(kind, reason)

    async def _rollback_quietly(self, trans: AsyncTransaction | None) -> None:
        if trans is None or not trans.is_active:
            return
        try:
            await trans.rollback()
        except Exception:
            logger.error(
                f"Rollback failed ({ErrorKind.ROLLBACK_FAILURE.value})", exc_info=True
            )


def _fields_of(result: Any) -> List[FieldInfo]:
    """
    Column name and engine type id per result column. Nothing else from the
    cursor description is exposed.
    """
    if not result.returns_rows:
        return []

    cursor = getattr(result, "cursor", None)
    description = getattr(cursor, "description", None)
    if description:
        return [
            FieldInfo(
                name=col[0],
                data_type_id=col[1] if isinstance(col[1], int) else None,
            )
            for col in description
        ]
    return [FieldInfo(name=str(key)) for key in result.keys()]


def json_safe(value: Any) -> Any:
    """
    Converts a driver value into something JSON can carry. bytea comes back
    hex-encoded with a \\x prefix, composite values as lists, non-finite
    floats and anything unrecognised as strings.
    """
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, Record):
        return [json_safe(v) for v in value.values()]
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    return str(value)
