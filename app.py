# app.py: Student Records Service
# - CRUD for student records (SQLite or in-memory store)
# - /api/stats aggregate views for the dashboard charts
# - /api/chat assistant proxy with data context injected into the system prompt

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import requests
from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

import analytics
import db
from assistant import AssistantError, AssistantProxy, AssistantSettings
from env_validation import get_env_bool, validate_environment
from schemas import (
    ChatRequest,
    StatsResponse,
    StudentCreate,
    StudentRecord,
    StudentUpdate,
    validation_details,
)

logger = logging.getLogger(__name__)

CHAT_PATH = "/api/chat"


def _select_store() -> db.StudentStore:
    backend = (os.getenv("STORE_BACKEND") or "sqlite").lower()
    if backend == "memory":
        logger.info("Using in-memory student store (data is lost on restart)")
        return db.InMemoryStudentStore.from_seed()
    return db.SQLiteStudentStore()


STUDENT_STORE: db.StudentStore = db.SQLiteStudentStore()

# Outbound HTTP client for the assistant; tests swap in a fake with ``post``.
ASSISTANT_HTTP: Any = requests


def _bootstrap_sqlite() -> None:
    db.configure(os.environ["DB_PATH"])
    db.init()
    if get_env_bool("SEED_ON_EMPTY", True) and db.count_students() == 0:
        db.seed()


@asynccontextmanager
async def _lifespan(_: FastAPI):
    global STUDENT_STORE
    try:
        validate_environment()
        STUDENT_STORE = _select_store()
        if isinstance(STUDENT_STORE, db.SQLiteStudentStore):
            _bootstrap_sqlite()
        settings = AssistantSettings.from_env()
        logger.info(
            "Assistant model %s at %s | mock mode: %s",
            settings.model,
            settings.host,
            settings.mock_mode,
        )
    except Exception as e:
        logger.error("Failed to initialize application: %s", str(e), exc_info=True)
        raise
    yield
    db.close()


app = FastAPI(title="Student Records Service", version="1.0.0", lifespan=_lifespan)


# ---------- Error conversion ----------
def _error(status_code: int, error: str, detail: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "detail": detail})


@app.exception_handler(db.StoreError)
async def _store_error_handler(_: Request, exc: db.StoreError):
    return _error(500, "Database error", str(exc))


@app.exception_handler(db.StudentNotFoundError)
async def _not_found_handler(_: Request, exc: db.StudentNotFoundError):
    return JSONResponse(status_code=404, content={"message": "Student not found"})


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError):
    details = validation_details(exc)
    if request.url.path == CHAT_PATH:
        return _chat_validation_error(details)
    return _error(400, "Validation failed", details)


def _chat_validation_error(details: List[Dict[str, str]]) -> JSONResponse:
    first = details[0] if details else {"field": "body", "message": "invalid request"}
    return JSONResponse(
        status_code=400,
        content={"ok": False, "error": "Validation failed", "detail": f"{first['field']}: {first['message']}"},
    )


def _record(data: Dict[str, Any]) -> Dict[str, Any]:
    return StudentRecord.model_validate(data).model_dump()


# ---------- Routes ----------
@app.get("/")
def root():
    return {"service": "student-records", "status": "ok"}


@app.get("/api/students")
def list_students():
    return [_record(row) for row in STUDENT_STORE.list_all()]


@app.get("/api/students/{student_id}")
def get_student(student_id: int):
    return _record(STUDENT_STORE.get(student_id))


@app.post("/api/students")
def create_student(payload: Dict[str, Any] = Body(...)):
    try:
        body = StudentCreate.model_validate(payload)
    except ValidationError as e:
        return _error(400, "Validation failed", validation_details(e))
    created = STUDENT_STORE.insert(body.to_row())
    logger.info("Created student %s", created.get("id"))
    return _record(created)


@app.put("/api/students/{student_id}")
def update_student(student_id: int, payload: Dict[str, Any] = Body(...)):
    try:
        body = StudentUpdate.model_validate(payload)
    except ValidationError as e:
        return _error(400, "Validation failed", validation_details(e))
    return _record(STUDENT_STORE.update(student_id, body.changes()))


@app.delete("/api/students/{student_id}")
def delete_student(student_id: int):
    STUDENT_STORE.delete(student_id)
    return {"message": "Deleted"}


@app.get("/api/stats", response_model=StatsResponse)
def stats():
    return analytics.compute_stats(STUDENT_STORE.list_all())


@app.post(CHAT_PATH)
def chat(payload: Optional[Dict[str, Any]] = Body(None)):
    try:
        body = ChatRequest.model_validate(payload or {})
    except ValidationError as e:
        return _chat_validation_error(validation_details(e))
    proxy = AssistantProxy(
        STUDENT_STORE,
        AssistantSettings.from_env(),
        session=ASSISTANT_HTTP,
    )
    try:
        result = proxy.reply(body.message, body.history)
    except AssistantError as e:
        return JSONResponse(status_code=e.status_code, content=e.to_body())
    return result.to_body()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "3000")))
