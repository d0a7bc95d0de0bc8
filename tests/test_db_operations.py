"""Test cases for the SQLite and in-memory student stores."""

import pytest

import db
from db import _conn


def test_insert_and_list_in_id_order(temp_db):
    store = db.SQLiteStudentStore()
    first = store.insert({"name": "Ruhan", "course": "Vue 3 Lab", "score": 95, "semester": "Spring 2025", "status": "Active"})
    second = store.insert({"name": "Zhang", "course": "Computer", "semester": "Spring 2025"})

    assert first["id"] < second["id"]
    assert second["score"] == 0
    assert second["status"] == "Active"
    assert [row["name"] for row in store.list_all()] == ["Ruhan", "Zhang"]


def test_scores_come_back_integral_when_whole(temp_db):
    created = db.insert_student({"name": "Yu", "course": "SQL", "score": 56, "semester": "Summer 2025"})
    assert created["score"] == 56
    assert isinstance(created["score"], int)
    halves = db.insert_student({"name": "Ming", "course": "Mongo", "score": 69.5, "semester": "Summer 2025"})
    assert halves["score"] == 69.5


def test_partial_update_keeps_other_fields(temp_db):
    created = db.insert_student({"name": "Ahmed", "course": "Backend Basics", "score": 85, "semester": "Spring 2025", "status": "Inactive"})
    updated = db.update_student(created["id"], {"score": 90, "id": 500})
    assert updated == {**created, "score": 90}


def test_update_and_get_missing_student(temp_db):
    with pytest.raises(db.StudentNotFoundError):
        db.get_student(404)
    with pytest.raises(db.StudentNotFoundError):
        db.update_student(404, {"score": 1})


def test_delete_missing_student_is_noop(temp_db):
    db.delete_student(12345)
    assert db.list_students() == []


def test_delete_student(temp_db):
    created = db.insert_student({"name": "Ming", "course": "Mongo", "score": 69, "semester": "Summer 2025"})
    db.delete_student(created["id"])
    assert db.count_students() == 0


def test_status_check_constraint_raises_store_error(temp_db):
    with pytest.raises(db.StoreError):
        db.insert_student({"name": "Odd", "course": "X", "semester": "S", "status": "Graduated"})


def test_read_failure_raises_store_error(temp_db):
    with _conn() as con:
        con.execute("DROP TABLE students")
        con.commit()
    with pytest.raises(db.StoreError):
        db.list_students()


def test_seed_and_reset(temp_db):
    assert db.seed() == len(db.SEED_STUDENTS) == 40
    assert db.count_students() == 40
    db.reset()
    assert db.count_students() == 0


def test_configure_switches_database(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "_pool", db._pool)
    monkeypatch.setattr(db, "DB_PATH", db.DB_PATH)
    target = tmp_path / "other.db"
    db.configure(str(target))
    try:
        db.init()
        db.insert_student({"name": "A", "course": "B", "semester": "C"})
        assert db.DB_PATH == str(target)
        assert db.count_students() == 1
    finally:
        db.close()


def test_memory_store_assigns_next_id(memory_store):
    created = memory_store.insert({"name": "New", "course": "SQL", "semester": "Fall 2025"})
    assert created == {"id": 6, "name": "New", "course": "SQL", "score": 0, "semester": "Fall 2025", "status": "Active"}


def test_memory_store_returns_copies(memory_store):
    records = memory_store.list_all()
    records[0]["name"] = "changed"
    assert memory_store.get(1)["name"] == "Ruhan"


def test_memory_store_update_and_delete(memory_store):
    updated = memory_store.update(2, {"status": "Inactive"})
    assert updated["status"] == "Inactive"
    assert updated["score"] == 90
    memory_store.delete(2)
    with pytest.raises(db.StudentNotFoundError):
        memory_store.get(2)


def test_memory_store_from_seed():
    store = db.InMemoryStudentStore.from_seed()
    records = store.list_all()
    assert len(records) == 40
    assert records[0]["id"] == 1 and records[-1]["id"] == 40
