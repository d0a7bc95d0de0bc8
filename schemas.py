"""Pydantic schemas for student records, chat payloads and aggregate views."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "DEFAULT_SCORE",
    "DEFAULT_STATUS",
    "UNKNOWN_SEMESTER",
    "StudentCreate",
    "StudentUpdate",
    "StudentRecord",
    "ConversationTurn",
    "ChatRequest",
    "CourseAverage",
    "CourseParticipation",
    "SemesterDistribution",
    "StatusCount",
    "SemesterTrend",
    "StatsResponse",
    "resolve_record_defaults",
    "validation_details",
]

DEFAULT_SCORE = 0
DEFAULT_STATUS = "Active"
UNKNOWN_SEMESTER = "Unknown"

Score = Union[int, float]
Status = Literal["Active", "Inactive"]


def _coerce_score(value: Any) -> Any:
    """Accept numeric strings (form inputs) and keep whole numbers integral."""
    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return None
        try:
            value = float(cleaned)
        except ValueError:
            return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _check_score_range(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not 0 <= value <= 100:
            raise ValueError("score must be between 0 and 100")
    return value


def _require_text(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
    return value


class StudentCreate(BaseModel):
    name: str = Field(min_length=1, description="Student display name.")
    course: str = Field(min_length=1)
    semester: str = Field(min_length=1, description="Free-form label such as 'Spring 2025'.")
    score: Score | None = None
    status: Status = DEFAULT_STATUS

    @field_validator("name", "course", "semester", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return _require_text(value)

    @field_validator("score", mode="before")
    @classmethod
    def _parse_score(cls, value: Any) -> Any:
        return _check_score_range(_coerce_score(value))

    def to_row(self) -> Dict[str, Any]:
        return resolve_record_defaults(self.model_dump())


class StudentUpdate(BaseModel):
    """Partial update; fields left unset keep their stored value."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(default=None, min_length=1)
    course: str | None = Field(default=None, min_length=1)
    semester: str | None = Field(default=None, min_length=1)
    score: Score | None = None
    status: Status | None = None

    @field_validator("name", "course", "semester", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return _require_text(value)

    @field_validator("score", mode="before")
    @classmethod
    def _parse_score(cls, value: Any) -> Any:
        return _check_score_range(_coerce_score(value))

    def changes(self) -> Dict[str, Any]:
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class StudentRecord(BaseModel):
    id: int
    name: str
    course: str
    semester: str
    score: Score = DEFAULT_SCORE
    # Stored rows may carry legacy status labels; only create/update enforce the enum.
    status: str = DEFAULT_STATUS


class ConversationTurn(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    message: str | None = None
    # Malformed turns are dropped later, not rejected here.
    history: List[Any] | None = None


class CourseAverage(BaseModel):
    course: str
    avg: float


class CourseParticipation(BaseModel):
    course: str
    count: int


class SemesterDistribution(BaseModel):
    semester: str
    count: int


class StatusCount(BaseModel):
    name: Status
    value: int


class SemesterTrend(BaseModel):
    semester: str
    avg: float


class StatsResponse(BaseModel):
    scoresByCourse: List[CourseAverage]
    courseParticipation: List[CourseParticipation]
    semesterDistribution: List[SemesterDistribution]
    statusDist: List[StatusCount]
    avgTrend: List[SemesterTrend]


def resolve_record_defaults(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Fill the documented defaults on a raw record mapping.

    Missing or null scores become ``0``, a missing status becomes ``Active``
    and a blank semester is grouped under ``Unknown``. Every other key is
    passed through untouched.
    """

    record = dict(raw)
    score = record.get("score")
    record["score"] = DEFAULT_SCORE if score is None else _coerce_score(score)
    if not record.get("status"):
        record["status"] = DEFAULT_STATUS
    semester = record.get("semester")
    if semester is None or not str(semester).strip():
        record["semester"] = UNKNOWN_SEMESTER
    return record


def validation_details(exc: Any) -> List[Dict[str, str]]:
    """Flatten a pydantic or FastAPI request validation error into ``{field, message}`` pairs."""

    details: List[Dict[str, str]] = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        details.append(
            {
                "field": ".".join(location) or "body",
                "message": str(error.get("msg", "invalid value")),
            }
        )
    return details
