"""Conversational assistant backed by an OpenAI-compatible completion API.

The proxy validates the request, embeds a summary of the current record
snapshot into the system prompt, forwards a single request to the provider
and turns whatever comes back into either an :class:`AssistantResult` or an
:class:`AssistantError` carrying the HTTP status to return.
"""

import json
import logging
import os
import re
import socket
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import requests
from pydantic import ValidationError

from assistant_context import load_context
from db import StudentStore
from env_validation import get_env_bool, safe_float, safe_int
from prompts.assistant import AssistantPrompt, load_prompt
from schemas import ConversationTurn

logger = logging.getLogger(__name__)

_CALL_LOGGER = logging.getLogger("students.assistant")

DEFAULT_API_URL = "https://api.deepseek.com/chat/completions"
DEFAULT_MODEL = "deepseek-chat"
HISTORY_LIMIT = 10

_PLACEHOLDER_KEYS = {"", "your_api_key_here", "your-api-key", "changeme", "replace_me"}

_THINK_RE = re.compile(r"<think>.*?</think>", flags=re.DOTALL)

_DNS_MARKERS = (
    "enotfound",
    "eai_again",
    "getaddrinfo",
    "name or service not known",
    "nodename nor servname",
    "failed to resolve",
    "temporary failure in name resolution",
    "no address associated with hostname",
)

DNS_FAILURE = "DNS resolution failed"
PROVIDER_ERROR = "Provider error"
LOCAL_FAILURE = "Assistant request failed"
MISSING_MESSAGE = "Missing message"
NOT_CONFIGURED = "Assistant not configured"


class AssistantError(Exception):
    """Failure that maps onto an ``{ok: false, error, detail}`` response."""

    def __init__(self, status_code: int, error: str, detail: str):
        super().__init__(f"{error}: {detail}")
        self.status_code = status_code
        self.error = error
        self.detail = detail

    def to_body(self) -> Dict[str, Any]:
        return {"ok": False, "error": self.error, "detail": self.detail}


@dataclass
class AssistantResult:
    response: str
    raw: Any

    def to_body(self) -> Dict[str, Any]:
        return {"ok": True, "response": self.response, "raw": self.raw}


@dataclass
class AssistantSettings:
    api_key: Optional[str] = None
    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL
    mock_mode: bool = False
    timeout: float = 30.0
    temperature: float = 0.7
    top_p: float = 0.9
    max_tokens: int = 1024

    @classmethod
    def from_env(cls) -> "AssistantSettings":
        return cls(
            api_key=os.getenv("ASSISTANT_API_KEY"),
            api_url=os.getenv("ASSISTANT_API_URL") or DEFAULT_API_URL,
            model=os.getenv("ASSISTANT_MODEL") or DEFAULT_MODEL,
            mock_mode=get_env_bool("ASSISTANT_MOCK_MODE", False),
            timeout=safe_float("ASSISTANT_TIMEOUT", 30.0),
            temperature=safe_float("ASSISTANT_TEMPERATURE", 0.7),
            top_p=safe_float("ASSISTANT_TOP_P", 0.9),
            max_tokens=safe_int("ASSISTANT_MAX_TOKENS", 1024),
        )

    @property
    def has_credentials(self) -> bool:
        key = (self.api_key or "").strip()
        if key.lower() in _PLACEHOLDER_KEYS:
            return False
        return not key.lower().startswith("sk-xxx")

    @property
    def host(self) -> str:
        return urlparse(self.api_url).hostname or self.api_url

    def generation_params(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "top_p": self.top_p,
            "max_tokens": self.max_tokens,
        }


# ---------- Response normalization ----------
Extractor = Callable[[Any], Optional[str]]


def _text_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _choice(body: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(body, dict):
        return None
    choices = body.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return None


def choice_message_content(body: Any) -> Optional[str]:
    choice = _choice(body)
    message = choice.get("message") if choice else None
    return _text_or_none(message.get("content")) if isinstance(message, dict) else None


def choice_text(body: Any) -> Optional[str]:
    choice = _choice(body)
    return _text_or_none(choice.get("text")) if choice else None


def top_level_field(name: str) -> Extractor:
    def _extract(body: Any) -> Optional[str]:
        if not isinstance(body, dict):
            return None
        return _text_or_none(body.get(name))

    _extract.__name__ = f"top_level_{name}"
    return _extract


DEFAULT_EXTRACTORS: Tuple[Extractor, ...] = (
    choice_message_content,
    choice_text,
    top_level_field("output_text"),
    top_level_field("response"),
    top_level_field("content"),
    top_level_field("text"),
    top_level_field("message"),
)


def strip_reasoning(text: str) -> str:
    return _THINK_RE.sub("", text or "").strip()


def extract_text(body: Any, extractors: Sequence[Extractor] = DEFAULT_EXTRACTORS) -> str:
    """Return the first extractor hit, else the raw body (JSON-dumped unless already text), minus ``<think>`` blocks."""
    for extractor in extractors:
        text = extractor(body)
        if text is not None:
            return strip_reasoning(text)
    if isinstance(body, str):
        return strip_reasoning(body)
    try:
        raw = json.dumps(body, ensure_ascii=False)
    except (TypeError, ValueError):
        raw = str(body)
    return strip_reasoning(raw)


# ---------- Error classification ----------
def _exception_chain(exc: BaseException) -> List[BaseException]:
    chain: List[BaseException] = []
    pending: List[BaseException] = [exc]
    while pending:
        current = pending.pop()
        if any(current is seen for seen in chain):
            continue
        chain.append(current)
        linked = [current.__cause__, current.__context__, getattr(current, "reason", None)]
        linked.extend(arg for arg in current.args if isinstance(arg, BaseException))
        pending.extend(item for item in linked if isinstance(item, BaseException))
    return chain


def is_dns_failure(exc: BaseException) -> bool:
    for item in _exception_chain(exc):
        if isinstance(item, socket.gaierror):
            return True
        message = str(item).lower()
        if any(marker in message for marker in _DNS_MARKERS):
            return True
    return False


def _provider_detail(response: Any) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        for candidate in (error, body.get("detail"), body.get("message")):
            if isinstance(candidate, str) and candidate:
                return candidate
    text = getattr(response, "text", "") or ""
    return text[:500] or f"HTTP {response.status_code}"


def classify_failure(exc: BaseException, host: str) -> AssistantError:
    """Map a forwarding failure onto DNS, provider-status or local categories."""
    if is_dns_failure(exc):
        return AssistantError(502, DNS_FAILURE, f"Could not resolve provider host {host}")
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    if response is not None and isinstance(status, int):
        return AssistantError(status, PROVIDER_ERROR, _provider_detail(response))
    return AssistantError(500, LOCAL_FAILURE, str(exc) or exc.__class__.__name__)


# ---------- Proxy ----------
def normalize_history(history: Optional[Sequence[Any]], limit: int = HISTORY_LIMIT) -> List[Dict[str, str]]:
    """Keep the last ``limit`` turns, dropping entries that are not valid turns."""
    if not history:
        return []
    turns: List[Dict[str, str]] = []
    for entry in list(history)[-limit:]:
        try:
            turn = ConversationTurn.model_validate(entry)
        except ValidationError:
            logger.debug("Dropping malformed history entry: %r", entry)
            continue
        turns.append({"role": turn.role, "content": turn.content})
    return turns


class AssistantProxy:
    def __init__(
        self,
        store: StudentStore,
        settings: Optional[AssistantSettings] = None,
        *,
        session: Any = None,
        extractors: Sequence[Extractor] = DEFAULT_EXTRACTORS,
        prompt: Optional[AssistantPrompt] = None,
    ):
        self.store = store
        self.settings = settings or AssistantSettings.from_env()
        self.session = session if session is not None else requests
        self.extractors = tuple(extractors)
        self.prompt = prompt or load_prompt()

    def build_messages(self, message: str, history: Optional[Sequence[Any]] = None) -> List[Dict[str, str]]:
        system = self.prompt.render_system(load_context(self.store))
        return [
            {"role": "system", "content": system},
            *normalize_history(history),
            {"role": "user", "content": message},
        ]

    def reply(self, message: Optional[str], history: Optional[Sequence[Any]] = None) -> AssistantResult:
        text = message.strip() if isinstance(message, str) else ""
        if not text:
            raise AssistantError(400, MISSING_MESSAGE, "message is required")

        if self.settings.mock_mode:
            return AssistantResult(response=f'Mock reply: "{text}"', raw={"mock": True})

        if not self.settings.has_credentials:
            raise AssistantError(500, NOT_CONFIGURED, "ASSISTANT_API_KEY is missing or a placeholder")

        messages = self.build_messages(text, history)
        body = self._forward(messages)
        return AssistantResult(response=extract_text(body, self.extractors), raw=body)

    def _forward(self, messages: List[Dict[str, str]]) -> Any:
        settings = self.settings
        payload = {"model": settings.model, "messages": messages, **settings.generation_params()}
        headers = {
            "Authorization": f"Bearer {settings.api_key.strip()}",
            "Content-Type": "application/json",
        }
        start = time.perf_counter()
        outcome = "ok"
        status_code: Optional[int] = None
        try:
            try:
                response = self.session.post(
                    settings.api_url,
                    json=payload,
                    headers=headers,
                    timeout=settings.timeout,
                )
                status_code = getattr(response, "status_code", None)
                response.raise_for_status()
                try:
                    return response.json()
                except ValueError:
                    # Successful reply that is not JSON; hand the text to the raw fallback.
                    return response.text
            except (requests.RequestException, ValueError, OSError) as exc:
                error = classify_failure(exc, settings.host)
                outcome = error.error
                status_code = error.status_code
                logger.warning("Assistant call failed (%s): %s", error.error, exc)
                raise error from exc
        finally:
            log_record = {
                "event": "assistant_call",
                "model": settings.model,
                "host": settings.host,
                "history_used": max(len(messages) - 2, 0),
                "latency_ms": int((time.perf_counter() - start) * 1000),
                "status_code": status_code,
                "outcome": outcome,
            }
            _CALL_LOGGER.info(json.dumps(log_record, ensure_ascii=False))
