import logging
import os
import sqlite3
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from db_pool import SQLiteConnectionPool
from schemas import resolve_record_defaults

logger = logging.getLogger(__name__)

DB_PATH = os.getenv("DB_PATH", "students.db")

# Initialize connection pool
_pool = SQLiteConnectionPool(DB_PATH, max_connections=10)

_COLUMNS = ("id", "name", "course", "score", "semester", "status")
_WRITABLE_COLUMNS = ("name", "course", "score", "semester", "status")

SEED_STUDENTS: Sequence[tuple] = (
    ("Ruhan", "Vue 3 Lab", 95, "Spring 2025", "Active"),
    ("Rejuan", "Frontend Interaction", 90, "Fall 2024", "Active"),
    ("Ahmed", "Backend Basics", 85, "Spring 2025", "Inactive"),
    ("Alice Chen", "Vue 3 Lab", 88, "Spring 2025", "Active"),
    ("Bob Li", "Frontend Interaction", 76, "Spring 2025", "Active"),
    ("Carlos Wang", "Backend Basics", 82, "Fall 2024", "Inactive"),
    ("Diana Zhang", "Data Visualization", 91, "Spring 2024", "Active"),
    ("Eric Wu", "Data Visualization", 73, "Fall 2024", "Active"),
    ("Fatima Noor", "Algorithms", 89, "Spring 2024", "Active"),
    ("George Sun", "Algorithms", 67, "Fall 2024", "Inactive"),
    ("Hannah Park", "Database Systems", 92, "Spring 2025", "Active"),
    ("Ivan Lee", "Database Systems", 78, "Fall 2024", "Active"),
    ("Jenny Kim", "UI Design", 94, "Spring 2024", "Active"),
    ("Kevin Gu", "UI Design", 81, "Fall 2025", "Inactive"),
    ("Lily Zhao", "Networks", 87, "Spring 2025", "Active"),
    ("Mario Rossi", "Networks", 72, "Fall 2024", "Active"),
    ("Nadia Ali", "Cloud Computing", 90, "Spring 2025", "Active"),
    ("Oscar Liu", "Cloud Computing", 84, "Fall 2025", "Active"),
    ("Priya Singh", "Vue 3 Lab", 79, "Fall 2024", "Inactive"),
    ("Qi Zhang", "Frontend Interaction", 93, "Spring 2024", "Active"),
    ("Raj Patel", "Backend Basics", 88, "Fall 2025", "Active"),
    ("Sara Müller", "Data Visualization", 82, "Spring 2025", "Inactive"),
    ("Tom Brown", "Algorithms", 75, "Spring 2024", "Active"),
    ("Uma Devi", "Database Systems", 97, "Fall 2024", "Active"),
    ("Victor Chan", "UI Design", 69, "Spring 2025", "Inactive"),
    ("Wang Wei", "Networks", 83, "Fall 2024", "Active"),
    ("Xiao Ming", "Vue 3 Lab", 91, "Spring 2024", "Active"),
    ("Yuki Tanaka", "Frontend Interaction", 88, "Fall 2025", "Inactive"),
    ("Zara Khan", "Backend Basics", 80, "Spring 2024", "Active"),
    ("Ben Davis", "Cloud Computing", 71, "Fall 2024", "Active"),
    ("Chen Hao", "Data Visualization", 86, "Spring 2025", "Active"),
    ("David Lee", "Algorithms", 92, "Fall 2025", "Active"),
    ("Elena Petro", "Database Systems", 77, "Spring 2024", "Inactive"),
    ("Feng Yu", "UI Design", 90, "Fall 2024", "Active"),
    ("Grace Liu", "Networks", 85, "Spring 2025", "Active"),
    ("Henry Zhao", "Vue 3 Lab", 68, "Fall 2025", "Inactive"),
    ("Isabella Wu", "Frontend Interaction", 96, "Spring 2025", "Active"),
    ("Jack Ma", "Backend Basics", 74, "Fall 2024", "Active"),
    ("Katrin Koch", "Cloud Computing", 88, "Spring 2024", "Inactive"),
    ("Leo Martin", "Data Visualization", 81, "Fall 2025", "Active"),
)


class StoreError(Exception):
    """Raised when the record store cannot complete a read or write."""


class StudentNotFoundError(LookupError):
    """Raised when no student exists for the requested id."""

    def __init__(self, student_id: int):
        super().__init__(f"Student {student_id} not found")
        self.student_id = student_id


class StudentStore(Protocol):
    """Read/write operations the routes, analytics and assistant depend on."""

    def list_all(self) -> List[Dict[str, Any]]: ...

    def get(self, student_id: int) -> Dict[str, Any]: ...

    def insert(self, payload: Mapping[str, Any]) -> Dict[str, Any]: ...

    def update(self, student_id: int, changes: Mapping[str, Any]) -> Dict[str, Any]: ...

    def delete(self, student_id: int) -> None: ...


def configure(path: str, max_connections: int = 10) -> None:
    """Point the module pool at ``path``, closing idle connections to the old file."""
    global _pool, DB_PATH
    if path == _pool.database:
        return
    _pool.close_all()
    DB_PATH = path
    _pool = SQLiteConnectionPool(path, max_connections=max_connections)
    logger.info("Student store using %s", path)


def close() -> None:
    _pool.close_all()


def _conn():
    """Return a context manager for acquiring a pooled SQLite connection."""
    return _pool.get_connection()


def _exec(sql: str, params: Iterable = ()) -> sqlite3.Cursor:
    try:
        with _conn() as con:
            cur = con.execute(sql, tuple(params))
            con.commit()
            return cur
    except sqlite3.Error as exc:
        logger.error("Student store write failed: %s", exc)
        raise StoreError(str(exc)) from exc


def _query(sql: str, params: Iterable = ()) -> list[sqlite3.Row]:
    try:
        with _conn() as con:
            cur = con.execute(sql, tuple(params))
            return cur.fetchall()
    except sqlite3.Error as exc:
        logger.error("Student store read failed: %s", exc)
        raise StoreError(str(exc)) from exc


_CREATE_STUDENTS = """
    CREATE TABLE IF NOT EXISTS students (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        course TEXT NOT NULL,
        score REAL DEFAULT 0,
        semester TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'Active' CHECK (status IN ('Active', 'Inactive')),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
"""


def init() -> None:
    """Create the students table if it does not exist."""
    _exec(_CREATE_STUDENTS)


def reset() -> None:
    """Drop and recreate the students table (fresh start for setup scripts)."""
    _exec("DROP TABLE IF EXISTS students")
    _exec(_CREATE_STUDENTS)
    logger.info("Students table recreated at %s", _pool.database)


def seed(rows: Iterable[Sequence[Any]] = SEED_STUDENTS) -> int:
    """Insert ``(name, course, score, semester, status)`` tuples; returns the count."""
    payload = [tuple(row) for row in rows]
    try:
        with _conn() as con:
            con.executemany(
                "INSERT INTO students (name, course, score, semester, status) VALUES (?, ?, ?, ?, ?)",
                payload,
            )
            con.commit()
    except sqlite3.Error as exc:
        raise StoreError(str(exc)) from exc
    logger.info("Inserted %d seed students", len(payload))
    return len(payload)


def count_students() -> int:
    rows = _query("SELECT COUNT(*) AS count FROM students")
    return int(rows[0]["count"]) if rows else 0


def _row_to_record(row: sqlite3.Row) -> Dict[str, Any]:
    return resolve_record_defaults({column: row[column] for column in _COLUMNS})


def list_students() -> List[Dict[str, Any]]:
    rows = _query(f"SELECT {', '.join(_COLUMNS)} FROM students ORDER BY id")
    return [_row_to_record(row) for row in rows]


def get_student(student_id: int) -> Dict[str, Any]:
    rows = _query(f"SELECT {', '.join(_COLUMNS)} FROM students WHERE id = ?", [student_id])
    if not rows:
        raise StudentNotFoundError(student_id)
    return _row_to_record(rows[0])


def insert_student(payload: Mapping[str, Any]) -> Dict[str, Any]:
    record = resolve_record_defaults(payload)
    cur = _exec(
        "INSERT INTO students (name, course, score, semester, status) VALUES (?, ?, ?, ?, ?)",
        [record["name"], record["course"], record["score"], record["semester"], record["status"]],
    )
    return get_student(int(cur.lastrowid))


def update_student(student_id: int, changes: Mapping[str, Any]) -> Dict[str, Any]:
    fields = {key: value for key, value in changes.items() if key in _WRITABLE_COLUMNS}
    if not fields:
        return get_student(student_id)
    assignments = ", ".join(f"{column} = ?" for column in fields)
    cur = _exec(
        f"UPDATE students SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
        [*fields.values(), student_id],
    )
    if cur.rowcount == 0:
        raise StudentNotFoundError(student_id)
    return get_student(student_id)


def delete_student(student_id: int) -> None:
    _exec("DELETE FROM students WHERE id = ?", [student_id])


class SQLiteStudentStore:
    """Store backed by the module-level SQLite pool."""

    def list_all(self) -> List[Dict[str, Any]]:
        return list_students()

    def get(self, student_id: int) -> Dict[str, Any]:
        return get_student(student_id)

    def insert(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return insert_student(payload)

    def update(self, student_id: int, changes: Mapping[str, Any]) -> Dict[str, Any]:
        return update_student(student_id, changes)

    def delete(self, student_id: int) -> None:
        delete_student(student_id)


class InMemoryStudentStore:
    """Process-local store used for tests and the non-persistent server variant."""

    def __init__(self, records: Optional[Iterable[Mapping[str, Any]]] = None):
        self._lock = threading.Lock()
        self._records: List[Dict[str, Any]] = []
        for record in records or ():
            data = resolve_record_defaults(record)
            if "id" not in data:
                data["id"] = self._next_id()
            self._records.append(data)

    @classmethod
    def from_seed(cls, rows: Iterable[Sequence[Any]] = SEED_STUDENTS) -> "InMemoryStudentStore":
        return cls(
            {"name": name, "course": course, "score": score, "semester": semester, "status": status}
            for name, course, score, semester, status in rows
        )

    def _next_id(self) -> int:
        return max((int(record["id"]) for record in self._records), default=0) + 1

    def _index(self, student_id: int) -> int:
        for idx, record in enumerate(self._records):
            if record["id"] == student_id:
                return idx
        raise StudentNotFoundError(student_id)

    def list_all(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(record) for record in self._records]

    def get(self, student_id: int) -> Dict[str, Any]:
        with self._lock:
            return dict(self._records[self._index(student_id)])

    def insert(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        with self._lock:
            record = resolve_record_defaults(
                {key: payload.get(key) for key in _WRITABLE_COLUMNS}
            )
            record = {"id": self._next_id(), **record}
            self._records.append(record)
            return dict(record)

    def update(self, student_id: int, changes: Mapping[str, Any]) -> Dict[str, Any]:
        with self._lock:
            idx = self._index(student_id)
            merged = dict(self._records[idx])
            merged.update({key: value for key, value in changes.items() if key in _WRITABLE_COLUMNS})
            self._records[idx] = merged
            return dict(merged)

    def delete(self, student_id: int) -> None:
        with self._lock:
            self._records = [record for record in self._records if record["id"] != student_id]
