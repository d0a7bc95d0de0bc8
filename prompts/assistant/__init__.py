"""Loading of the assistant's system prompt and static lab descriptions."""
from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Tuple

_PROMPT_FILE = Path(__file__).resolve().parent / "default.json"
_REQUIRED_KEYS = {"id", "prompt_version", "system_template", "lab_descriptions"}


@dataclass(frozen=True)
class AssistantPrompt:
    """System template plus the reference text injected into every context."""

    id: str
    prompt_version: str
    system_template: str
    lab_descriptions: Tuple[str, ...]

    def render_system(self, context: str) -> str:
        return self.system_template.replace("{context}", context)


def parse_prompt(payload: dict, source: str = "prompt") -> AssistantPrompt:
    missing = sorted(_REQUIRED_KEYS - payload.keys())
    if missing:
        raise ValueError(f"{source} missing keys: {', '.join(missing)}")
    if "{context}" not in payload["system_template"]:
        raise ValueError(f"{source} has no {{context}} placeholder")
    return AssistantPrompt(
        id=str(payload["id"]),
        prompt_version=str(payload["prompt_version"]),
        system_template=str(payload["system_template"]),
        lab_descriptions=tuple(str(line) for line in payload["lab_descriptions"]),
    )


@lru_cache(maxsize=1)
def load_prompt() -> AssistantPrompt:
    payload = json.loads(_PROMPT_FILE.read_text(encoding="utf-8"))
    return parse_prompt(payload, source=_PROMPT_FILE.name)


__all__ = ["AssistantPrompt", "load_prompt", "parse_prompt"]
