"""Plain-text summary of the record snapshot for the assistant's system prompt."""

import logging
from typing import Any, Iterable, Mapping, Optional, Sequence

from analytics import round_half_up
from db import StoreError, StudentStore
from prompts.assistant import load_prompt

logger = logging.getLogger(__name__)

CONTEXT_UNAVAILABLE = "System data could not be loaded. Answer general questions only and say that student data is currently unavailable."


def _one_line(value: Any) -> str:
    return " ".join(str(value).split())


def _format_number(value: Any) -> str:
    number = float(value or 0)
    if number.is_integer():
        return str(int(number))
    return f"{number:g}"


def _average_text(records: Sequence[Mapping[str, Any]]) -> str:
    if not records:
        return "0"
    total = sum(float(record.get("score") or 0) for record in records)
    return f"{round_half_up(total / len(records)):.1f}"


def _distinct_courses(records: Iterable[Mapping[str, Any]]) -> list[str]:
    seen: dict[str, None] = {}
    for record in records:
        seen.setdefault(_one_line(record.get("course", "")), None)
    return list(seen)


def format_record(record: Mapping[str, Any]) -> str:
    return "{id}: {name} | {course} | {semester} | {score} | {status}".format(
        id=record.get("id"),
        name=_one_line(record.get("name", "")),
        course=_one_line(record.get("course", "")),
        semester=_one_line(record.get("semester", "")),
        score=_format_number(record.get("score")),
        status=_one_line(record.get("status", "")),
    )


def build_context(
    records: Sequence[Mapping[str, Any]],
    lab_descriptions: Optional[Sequence[str]] = None,
) -> str:
    """Summarise ``records`` as deterministic text.

    The block lists totals, the average score, the distinct courses in the
    order they first appear, the static lab descriptions and one line per
    record in the form ``id: name | course | semester | score | status``.
    """

    snapshot = list(records)
    labs = load_prompt().lab_descriptions if lab_descriptions is None else tuple(lab_descriptions)
    active = sum(1 for record in snapshot if record.get("status") == "Active")

    lines = [
        "System statistics:",
        f"- Total students: {len(snapshot)}",
        f"- Active students: {active}",
        f"- Average score: {_average_text(snapshot)}",
        f"- Courses: {', '.join(_distinct_courses(snapshot))}",
        "",
        "Labs:",
    ]
    lines.extend(f"- {_one_line(description)}" for description in labs)
    lines.append("")
    lines.append("Student records (id: name | course | semester | score | status):")
    lines.extend(format_record(record) for record in snapshot)
    return "\n".join(lines)


def load_context(store: StudentStore) -> str:
    """Read a snapshot from ``store`` and summarise it; never raises on store errors."""
    try:
        records = store.list_all()
    except StoreError as exc:
        logger.warning("Assistant context unavailable, continuing without data: %s", exc)
        return CONTEXT_UNAVAILABLE
    return build_context(records)
