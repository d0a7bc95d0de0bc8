"""Smoke-check create validation against a running server."""
from __future__ import annotations

import argparse
import json
from typing import Sequence

import requests

DEFAULT_BASE_URL = "http://127.0.0.1:3000"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL, help=f"Server URL (default: {DEFAULT_BASE_URL})")
    parser.add_argument("--timeout", type=float, default=10.0)
    return parser


def check_rejects_invalid_score(students_url: str, timeout: float) -> bool:
    r = requests.post(
        students_url,
        json={"name": "Bad Student", "course": "Test 101", "score": 150, "semester": "2025"},
        timeout=timeout,
    )
    if r.status_code == 400:
        print("PASSED: invalid score rejected")
        print("   detail:", json.dumps(r.json()))
        return True
    print(f"FAILED: expected 400 for score 150, got {r.status_code}")
    return False


def check_accepts_valid_student(students_url: str, timeout: float) -> bool:
    r = requests.post(
        students_url,
        json={"name": "Good Student", "course": "Test 101", "score": 95, "semester": "2025"},
        timeout=timeout,
    )
    if r.status_code != 200:
        print(f"FAILED: valid student rejected with {r.status_code}: {r.text[:300]}")
        return False
    student_id = r.json()["id"]
    print(f"PASSED: created student {student_id}")
    requests.delete(f"{students_url}/{student_id}", timeout=timeout)
    print("   (cleaned up test data)")
    return True


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    students_url = args.base_url.rstrip("/") + "/api/students"
    try:
        results = [
            check_rejects_invalid_score(students_url, args.timeout),
            check_accepts_valid_student(students_url, args.timeout),
        ]
    except requests.RequestException as exc:
        print(f"Server connection error: {exc}")
        return 2
    return 0 if all(results) else 1


if __name__ == "__main__":
    raise SystemExit(main())
