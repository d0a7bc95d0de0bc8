import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


SAMPLE_STUDENTS = [
    {"id": 1, "name": "Ruhan", "course": "Vue 3 Lab", "score": 95, "semester": "Spring 2025", "status": "Active"},
    {"id": 2, "name": "Rejuan", "course": "Frontend Interaction", "score": 90, "semester": "Fall 2024", "status": "Active"},
    {"id": 3, "name": "Ahmed", "course": "Backend Basics", "score": 85, "semester": "Spring 2025", "status": "Inactive"},
    {"id": 4, "name": "Alice Chen", "course": "Vue 3 Lab", "score": 88, "semester": "Spring 2025", "status": "Active"},
    {"id": 5, "name": "Bob Li", "course": "Frontend Interaction", "score": 76, "semester": "Spring 2024", "status": "Graduated"},
]


@pytest.fixture
def sample_students():
    return [dict(record) for record in SAMPLE_STUDENTS]


@pytest.fixture
def memory_store(sample_students):
    import db

    return db.InMemoryStudentStore(sample_students)


@pytest.fixture
def temp_db(monkeypatch, tmp_path):
    import db

    db_path = tmp_path / "test.db"
    pool = db.SQLiteConnectionPool(str(db_path), max_connections=10)
    monkeypatch.setattr(db, "DB_PATH", str(db_path))
    # Reset the connection pool for each test
    monkeypatch.setattr(db, "_pool", pool)
    db.init()
    yield str(db_path)
    pool.close_all()
