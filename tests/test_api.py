import pytest
from fastapi.testclient import TestClient

from conftest import FakeConnection, FakePool, FakeResult, db_error
from sqlstudio.api import create_app
from sqlstudio.config import ModelConfig
from sqlstudio.db.catalog import InMemoryCatalog
from sqlstudio.hints.generator import HintGenerator
from sqlstudio.studio import Studio

SANITIZED = "SELECT name FROM employees LIMIT 500"
BINARY = "SELECT avatar FROM employees LIMIT 500"


@pytest.fixture
def pool():
    conn = FakeConnection(
        results={
            SANITIZED: FakeResult(rows=[{"name": "Ada"}], type_ids=[25]),
            BINARY: FakeResult(rows=[{"avatar": b"\xff\x00"}], type_ids=[17]),
        },
        errors={"SELECT nope FROM employees LIMIT 500": db_error("42703", "column nope")},
    )
    return FakePool(conn)


@pytest.fixture
def client(studio_config, pool, sample_assignment):
    studio = Studio(
        studio_config,
        pool=pool,
        catalog=InMemoryCatalog([sample_assignment]),
        hints=HintGenerator(ModelConfig()),
    )
    with TestClient(create_app(studio)) as c:
        yield c


def test_list_assignments(client):
    resp = client.get("/api/assignments")
    assert resp.status_code == 200
    assert resp.json() == [
        {
            "id": "a1",
            "title": "High earners",
            "difficulty": "Easy",
            "shortDescription": "Filter employees by salary",
        }
    ]


def test_get_assignment(client):
    resp = client.get("/api/assignments/a1")
    assert resp.status_code == 200
    body = resp.json()
    assert body["question"].startswith("List the names")
    assert body["sampleSchemas"][0]["table"] == "employees"


def test_get_assignment_hides_expected_result(client):
    body = client.get("/api/assignments/a1").json()
    assert "expectedResult" not in body
    assert set(body) == {"id", "title", "difficulty", "question", "sampleSchemas"}


def test_get_missing_assignment(client):
    assert client.get("/api/assignments/zzz").status_code == 404


def test_execute_success(client, pool):
    resp = client.post("/api/assignments/a1/execute", json={"sql": "SELECT name FROM employees;"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["rows"] == [{"name": "Ada"}]
    assert body["fields"] == [{"name": "name", "dataTypeID": 25}]
    assert body["rowCount"] == 1
    assert body["error"] is None
    assert pool.leased == 0


def test_execute_returns_binary_values_as_hex(client, pool):
    resp = client.post("/api/assignments/a1/execute", json={"sql": "SELECT avatar FROM employees"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["rows"] == [{"avatar": "\\xff00"}]
    assert body["fields"] == [{"name": "avatar", "dataTypeID": 17}]
    assert pool.leased == 0


def test_execute_requires_sql(client, pool):
    resp = client.post("/api/assignments/a1/execute", json={})
    assert resp.status_code == 400
    assert resp.json()["error"] == "SQL query is required"
    assert pool.acquired == 0


def test_execute_rejects_destructive_query(client, pool):
    resp = client.post("/api/assignments/a1/execute", json={"sql": "DROP TABLE employees"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["rows"] == [] and body["fields"] == []
    assert body["error"].startswith("Destructive operations")
    assert pool.acquired == 0


def test_execute_reports_engine_failure(client):
    resp = client.post("/api/assignments/a1/execute", json={"sql": "SELECT nope FROM employees"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Column not found"


def test_hint_falls_back_without_llm(client):
    resp = client.post("/api/assignments/a1/hint", json={"sql": None, "hintLevel": "bogus"})
    assert resp.status_code == 200
    body = resp.json()
    assert "employees" in body["hint"]
    assert len(body["nextSteps"]) == 4
    assert body["error"] is None


def test_hint_for_missing_assignment(client):
    assert client.post("/api/assignments/zzz/hint", json={}).status_code == 404


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
