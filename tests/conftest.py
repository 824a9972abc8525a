from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import pytest
from pydantic import SecretStr
from sqlalchemy.exc import DBAPIError

from sqlstudio.config import DatabaseConfig, StudioConfig
from sqlstudio.schemas import Assignment, SampleSchema


class PgError(Exception):
    """Stands in for a driver exception carrying a SQLSTATE."""

    def __init__(self, message: str, sqlstate: Optional[str] = None):
        super().__init__(message)
        self.sqlstate = sqlstate


def db_error(sqlstate: Optional[str], message: str) -> DBAPIError:
    return DBAPIError("SELECT ...", None, PgError(message, sqlstate))


class FakeCursor:
    def __init__(self, description):
        self.description = description


class FakeResult:
    def __init__(
        self,
        rows: Optional[List[Dict[str, Any]]] = None,
        type_ids: Optional[List[int]] = None,
        rowcount: Optional[int] = None,
    ):
        self._rows = rows
        self.returns_rows = rows is not None
        self.rowcount = rowcount if rowcount is not None else len(rows or [])
        columns = list(rows[0].keys()) if rows else []
        type_ids = type_ids or [23] * len(columns)
        self.cursor = FakeCursor(
            [(name, oid, None, None, None, None, None) for name, oid in zip(columns, type_ids)]
            if self.returns_rows
            else None
        )

    def keys(self):
        return list(self._rows[0].keys()) if self._rows else []

    def mappings(self):
        return iter(self._rows or [])


class FakeTransaction:
    def __init__(self, fail_rollback: bool = False):
        self.is_active = True
        self.rollbacks = 0
        self.commits = 0
        self.fail_rollback = fail_rollback

    async def rollback(self):
        self.rollbacks += 1
        if self.fail_rollback:
            raise PgError("connection lost during rollback")
        self.is_active = False

    async def commit(self):
        self.commits += 1


class FakeConnection:
    """
    Records every statement. `results` maps the user statement to a
    FakeResult, `errors` maps it to the exception it raises.
    """

    def __init__(self, results=None, errors=None, fail_rollback=False):
        self.results = results or {}
        self.errors = errors or {}
        self.fail_rollback = fail_rollback
        self.statements: List[str] = []
        self.transactions: List[FakeTransaction] = []

    async def begin(self):
        trans = FakeTransaction(fail_rollback=self.fail_rollback)
        self.transactions.append(trans)
        return trans

    async def exec_driver_sql(self, statement: str):
        self.statements.append(statement)
        if statement in self.errors:
            raise self.errors[statement]
        if statement.startswith("SET LOCAL"):
            return FakeResult()
        return self.results.get(statement, FakeResult(rows=[]))


class FakePool:
    def __init__(self, connection: Optional[FakeConnection] = None, fail_lease: bool = False):
        self.connection = connection or FakeConnection()
        self.fail_lease = fail_lease
        self.leased = 0
        self.acquired = 0
        self.released = 0
        self.closed = False

    @asynccontextmanager
    async def lease(self):
        if self.fail_lease:
            raise TimeoutError("QueuePool limit reached, connection timed out")
        self.acquired += 1
        self.leased += 1
        try:
            yield self.connection
        finally:
            self.leased -= 1
            self.released += 1

    async def ping(self) -> bool:
        return not self.fail_lease

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_pool():
    return FakePool()


@pytest.fixture
def studio_config():
    return StudioConfig(
        database=DatabaseConfig(url=SecretStr("postgresql+asyncpg://reader@localhost/sandbox"))
    )


@pytest.fixture
def sample_assignment():
    return Assignment(
        id="a1",
        title="High earners",
        difficulty="Easy",
        short_description="Filter employees by salary",
        question="List the names of employees earning more than 50000.",
        sample_schemas=[
            SampleSchema(
                table="employees",
                columns=["id", "name", "salary"],
                sample_rows=[[1, "Ada", 72000], [2, "Linus", 48000]],
            )
        ],
        expected_result=[{"name": "Ada"}],
    )
