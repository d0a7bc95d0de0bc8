"""Recreate the students table and load the seed records."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import db
from env_validation import load_env_file

logger = logging.getLogger("setup_db")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--db-path",
        type=str,
        default=None,
        help="SQLite file to initialise (default: $DB_PATH or students.db)",
    )
    parser.add_argument(
        "--keep",
        action="store_true",
        help="Keep existing rows instead of dropping the table first",
    )
    parser.add_argument(
        "--no-seed",
        action="store_true",
        help="Create the table without inserting the seed records",
    )
    parser.add_argument(
        "--sample",
        type=int,
        default=5,
        help="Number of rows to print after setup (default: 5)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = _build_parser().parse_args(argv)
    load_env_file()

    path = args.db_path or os.getenv("DB_PATH") or "students.db"
    db.configure(path)
    try:
        if args.keep:
            db.init()
        else:
            db.reset()
        if not args.no_seed:
            db.seed()
        total = db.count_students()
        sample = db.list_students()[: max(0, int(args.sample))]
    except db.StoreError as exc:
        logger.error("Setup failed: %s", exc)
        print("Check that the DB_PATH directory exists and is writable.", file=sys.stderr)
        return 1
    finally:
        db.close()

    print(f"Setup complete. Total students in {path}: {total}")
    if sample:
        print(json.dumps(sample, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
