import sqlite3

import db
from scripts import setup_db


def test_setup_db_creates_and_seeds(monkeypatch, tmp_path, capsys):
    monkeypatch.setattr(db, "_pool", db._pool)
    monkeypatch.setattr(db, "DB_PATH", db.DB_PATH)
    target = tmp_path / "seeded.db"

    assert setup_db.main(["--db-path", str(target), "--sample", "2"]) == 0

    out = capsys.readouterr().out
    assert "Total students" in out and ": 40" in out
    with sqlite3.connect(target) as con:
        assert con.execute("SELECT COUNT(*) FROM students").fetchone()[0] == 40


def test_setup_db_reset_drops_existing_rows(monkeypatch, tmp_path):
    monkeypatch.setattr(db, "_pool", db._pool)
    monkeypatch.setattr(db, "DB_PATH", db.DB_PATH)
    target = tmp_path / "seeded.db"

    setup_db.main(["--db-path", str(target), "--sample", "0"])
    setup_db.main(["--db-path", str(target), "--sample", "0"])
    setup_db.main(["--db-path", str(target), "--keep", "--no-seed", "--sample", "0"])

    with sqlite3.connect(target) as con:
        assert con.execute("SELECT COUNT(*) FROM students").fetchone()[0] == 40
