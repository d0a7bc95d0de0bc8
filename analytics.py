"""Aggregate views over a snapshot of student records.

Every function here is pure: it reads the records it is given and returns
plain dicts ready for JSON encoding. Records are expected to have passed
through :func:`schemas.resolve_record_defaults` already, so scores and
semesters are never missing at this point.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

STATUS_LABELS: Tuple[str, str] = ("Active", "Inactive")


def round_half_up(value: float) -> float:
    """Round to one decimal with ties going away from zero (80.25 -> 80.3)."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _round_avg(total: float, count: int) -> float:
    return round_half_up(total / count)


def _semester_label(record: Mapping[str, Any]) -> str:
    return str(record["semester"])


def _accumulate(records: Iterable[Mapping[str, Any]], key) -> Dict[str, List[float]]:
    """Group ``[score_sum, count]`` by ``key(record)``; dicts keep first-seen order."""
    groups: Dict[str, List[float]] = {}
    for record in records:
        bucket = groups.setdefault(key(record), [0.0, 0])
        bucket[0] += float(record["score"])
        bucket[1] += 1
    return groups


def course_averages(records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    groups = _accumulate(records, lambda record: str(record.get("course")))
    return [
        {"course": course, "avg": _round_avg(total, count)}
        for course, (total, count) in groups.items()
    ]


def course_participation(records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    groups = _accumulate(records, lambda record: str(record.get("course")))
    return [{"course": course, "count": int(count)} for course, (_, count) in groups.items()]


def semester_distribution(records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    groups = _accumulate(records, _semester_label)
    return [{"semester": semester, "count": int(count)} for semester, (_, count) in groups.items()]


def status_distribution(records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    # Exact matches only; any other status label is left out of both buckets.
    return [
        {"name": label, "value": sum(1 for record in records if record.get("status") == label)}
        for label in STATUS_LABELS
    ]


def semester_trend(records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Mean score per semester, ordered by the raw label string.

    The ordering is lexicographic, so "Fall 2024" comes before "Spring 2024".
    """
    groups = _accumulate(records, _semester_label)
    return [
        {"semester": semester, "avg": _round_avg(total, count)}
        for semester, (total, count) in sorted(groups.items(), key=lambda item: item[0])
    ]


def compute_stats(records: Sequence[Mapping[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Build the full ``/api/stats`` payload from one snapshot."""
    snapshot = list(records)
    return {
        "scoresByCourse": course_averages(snapshot),
        "courseParticipation": course_participation(snapshot),
        "semesterDistribution": semester_distribution(snapshot),
        "statusDist": status_distribution(snapshot),
        "avgTrend": semester_trend(snapshot),
    }
