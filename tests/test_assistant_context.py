import pytest

import assistant_context
import db
from assistant_context import CONTEXT_UNAVAILABLE, build_context, format_record, load_context


RECORDS = [
    {"id": 1, "name": "Ruhan", "course": "Vue 3 Lab", "semester": "Spring 2025", "score": 95, "status": "Active"},
    {"id": 2, "name": "Ahmed", "course": "Backend Basics", "semester": "Fall 2024", "score": 84, "status": "Inactive"},
]


class _BrokenStore:
    def list_all(self):
        raise db.StoreError("database is locked")


def test_build_context_layout():
    text = build_context(RECORDS, lab_descriptions=["Lab A: charts"])
    assert text.splitlines() == [
        "System statistics:",
        "- Total students: 2",
        "- Active students: 1",
        "- Average score: 89.5",
        "- Courses: Vue 3 Lab, Backend Basics",
        "",
        "Labs:",
        "- Lab A: charts",
        "",
        "Student records (id: name | course | semester | score | status):",
        "1: Ruhan | Vue 3 Lab | Spring 2025 | 95 | Active",
        "2: Ahmed | Backend Basics | Fall 2024 | 84 | Inactive",
    ]


def test_empty_snapshot_reports_zero_average():
    text = build_context([], lab_descriptions=[])
    assert "- Average score: 0\n" in text
    assert "- Total students: 0" in text


def test_courses_are_distinct_in_first_seen_order():
    records = RECORDS + [dict(RECORDS[0], id=3, name="Alice")]
    assert "- Courses: Vue 3 Lab, Backend Basics\n" in build_context(records, lab_descriptions=[])


def test_build_context_is_deterministic():
    assert build_context(RECORDS) == build_context(RECORDS)


def test_default_lab_descriptions_come_from_prompt_config():
    text = build_context(RECORDS)
    prompt = assistant_context.load_prompt()
    assert prompt.lab_descriptions
    for description in prompt.lab_descriptions:
        assert f"- {description}" in text


def test_record_line_collapses_embedded_newlines():
    line = format_record({"id": 7, "name": "Multi\nLine", "course": "SQL", "semester": "Fall 2025", "score": 72.5, "status": "Active"})
    assert line == "7: Multi Line | SQL | Fall 2025 | 72.5 | Active"


def test_load_context_falls_back_on_store_error():
    assert load_context(_BrokenStore()) == CONTEXT_UNAVAILABLE


def test_load_context_reads_store(memory_store):
    text = load_context(memory_store)
    assert "- Total students: 5" in text
    assert "5: Bob Li | Frontend Interaction | Spring 2024 | 76 | Graduated" in text


def test_average_score_rounds_ties_up():
    records = [
        dict(RECORDS[0], id=index, score=score)
        for index, score in enumerate((80, 81, 80, 80), start=1)
    ]
    # 321 / 4 = 80.25
    assert "- Average score: 80.3\n" in build_context(records, lab_descriptions=[])


def test_prompt_config_requires_context_placeholder():
    from prompts.assistant import parse_prompt

    payload = {"id": "x", "prompt_version": "v1", "system_template": "no slot", "lab_descriptions": []}
    with pytest.raises(ValueError):
        parse_prompt(payload)
    with pytest.raises(ValueError):
        parse_prompt({"id": "x"})
    assert parse_prompt(dict(payload, system_template="Data:\n{context}")).render_system("ctx") == "Data:\nctx"
