import asyncio
from contextlib import asynccontextmanager

import pytest

from conftest import FakeConnection
from sqlstudio.db.catalog import assignment_from_document
from sqlstudio.schemas import Difficulty
from sqlstudio.seed import SAMPLE_ASSIGNMENTS, SANDBOX_DDL, sample_catalog, seed_catalog, seed_sandbox


class FakeInsertResult:
    def __init__(self, ids):
        self.inserted_ids = ids


class FakeCollection:
    def __init__(self, existing=()):
        self.documents = list(existing)
        self.deleted_with = None

    def delete_many(self, query):
        self.deleted_with = query
        self.documents = []

    def insert_many(self, documents):
        for i, doc in enumerate(documents, start=len(self.documents) + 1):
            doc["_id"] = f"oid-{i}"
        self.documents.extend(documents)
        return FakeInsertResult([doc["_id"] for doc in documents])


class FakeEngine:
    def __init__(self):
        self.connection = FakeConnection()

    @asynccontextmanager
    async def begin(self):
        yield self.connection


def test_seed_catalog_replaces_existing_documents():
    collection = FakeCollection(existing=[{"_id": "old", "title": "Stale"}])

    count = seed_catalog(collection)

    assert count == 3
    assert collection.deleted_with == {}
    assert [d["title"] for d in collection.documents] == [d["title"] for d in SAMPLE_ASSIGNMENTS]
    assert all("_id" not in doc for doc in SAMPLE_ASSIGNMENTS)


def test_seeded_documents_load_as_assignments():
    collection = FakeCollection()
    seed_catalog(collection)

    assignments = [assignment_from_document(doc) for doc in collection.documents]

    assert [a.id for a in assignments] == ["oid-1", "oid-2", "oid-3"]
    top_customers = assignments[0]
    assert top_customers.difficulty is Difficulty.MEDIUM
    assert [s.table for s in top_customers.sample_schemas] == ["customers", "orders"]
    assert top_customers.sample_schemas[0].sample_rows[0][1] == "Alice Johnson"


def test_sample_catalog_lists_by_difficulty():
    catalog = sample_catalog()

    titles = [s.title for s in catalog.list_assignments()]

    assert titles == ["Products by Category", "Top Customers by Order Value", "Monthly Revenue Trend"]
    assert catalog.get_assignment("sample-3").title == "Monthly Revenue Trend"


def test_seed_sandbox_creates_tables_then_grants_select():
    engine = FakeEngine()

    asyncio.run(seed_sandbox(engine, "sandbox_reader"))

    statements = engine.connection.statements
    assert statements[: len(SANDBOX_DDL)] == SANDBOX_DDL
    assert statements[-1] == "GRANT SELECT ON customers, products, orders TO sandbox_reader"


def test_seed_sandbox_rejects_unsafe_role_name():
    engine = FakeEngine()
    with pytest.raises(ValueError):
        asyncio.run(seed_sandbox(engine, "reader; DROP TABLE orders"))
    assert engine.connection.statements == []
