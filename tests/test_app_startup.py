"""Application startup and shutdown through the FastAPI lifespan."""

import sqlite3

import pytest
from fastapi.testclient import TestClient

import app
import db
import env_validation


@pytest.fixture
def startup_env(monkeypatch, tmp_path):
    monkeypatch.setattr(env_validation, "_ENV_FILE", tmp_path / "missing.env")
    # The lifespan rebinds these module globals; restore them afterwards.
    monkeypatch.setattr(db, "_pool", db._pool)
    monkeypatch.setattr(db, "DB_PATH", db.DB_PATH)
    monkeypatch.setattr(app, "STUDENT_STORE", app.STUDENT_STORE)
    for var in (
        "ASSISTANT_API_URL",
        "ASSISTANT_TIMEOUT",
        "ASSISTANT_TEMPERATURE",
        "ASSISTANT_TOP_P",
        "ASSISTANT_MAX_TOKENS",
        "SEED_ON_EMPTY",
    ):
        monkeypatch.delenv(var, raising=False)
    db_path = tmp_path / "startup.db"
    monkeypatch.setenv("DB_PATH", str(db_path))
    return db_path


def _row_count(db_path):
    with sqlite3.connect(db_path) as con:
        return con.execute("SELECT COUNT(*) FROM students").fetchone()[0]


def test_sqlite_backend_seeds_empty_database_once(monkeypatch, startup_env):
    monkeypatch.setenv("STORE_BACKEND", "sqlite")

    with TestClient(app.app) as client:
        assert isinstance(app.STUDENT_STORE, db.SQLiteStudentStore)
        assert db.DB_PATH == str(startup_env)
        assert len(client.get("/api/students").json()) == 40
        created = client.post(
            "/api/students",
            json={"name": "New", "course": "SQL", "semester": "Fall 2025", "score": 70},
        )
        assert created.status_code == 200

    assert _row_count(startup_env) == 41

    with TestClient(app.app) as client:
        assert len(client.get("/api/students").json()) == 41


def test_sqlite_backend_skips_seed_when_disabled(monkeypatch, startup_env):
    monkeypatch.setenv("STORE_BACKEND", "sqlite")
    monkeypatch.setenv("SEED_ON_EMPTY", "false")

    with TestClient(app.app) as client:
        assert client.get("/api/students").json() == []

    assert _row_count(startup_env) == 0


def test_memory_backend_serves_seed_without_touching_disk(monkeypatch, startup_env):
    monkeypatch.setenv("STORE_BACKEND", "memory")

    with TestClient(app.app) as client:
        assert isinstance(app.STUDENT_STORE, db.InMemoryStudentStore)
        students = client.get("/api/students").json()
        assert len(students) == 40
        assert students[0]["id"] == 1

    assert not startup_env.exists()


def test_shutdown_closes_pooled_connections(monkeypatch, startup_env):
    monkeypatch.setenv("STORE_BACKEND", "sqlite")

    with TestClient(app.app) as client:
        client.get("/api/stats")
        pool = db._pool
        assert pool._created_connections > 0

    assert pool._created_connections == 0


def test_invalid_configuration_aborts_startup(monkeypatch, startup_env):
    monkeypatch.setenv("ASSISTANT_API_URL", "ftp://example.com")

    with pytest.raises(env_validation.EnvironmentConfigError):
        with TestClient(app.app):
            pass
