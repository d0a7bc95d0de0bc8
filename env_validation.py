"""Environment variable loading, validation and typed accessors."""

import os
import logging
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_ENV_FILE = Path(__file__).resolve().parent / ".env"


class EnvironmentConfigError(Exception):
    """Raised when environment variables are present but invalid."""
    pass


def load_env_file(path: Optional[Path] = None) -> bool:
    """Load ``.env`` without overriding variables already set in the process."""
    env_path = Path(path) if path else _ENV_FILE
    if not env_path.is_file():
        return False
    loaded = load_dotenv(env_path, override=False)
    logger.info("Loaded environment from %s", env_path)
    return loaded


def validate_environment() -> None:
    """Validate critical environment variables.

    Raises EnvironmentConfigError if validation fails. A missing assistant
    credential is only a warning: the chat route reports it per request so the
    rest of the service keeps working.
    """
    load_env_file()

    defaults = {
        "DB_PATH": "students.db",
    }

    # Apply defaults before validation so dependent modules see consistent values.
    for var, value in defaults.items():
        if not os.getenv(var):
            os.environ[var] = value
            logger.info("Environment variable %s not set; using default '%s'", var, value)

    optional_vars: Dict[str, str] = {
        "ASSISTANT_API_KEY": "Language-model API credential",
        "ASSISTANT_API_URL": "Override for the chat completions endpoint",
    }

    url_vars = {"ASSISTANT_API_URL"}
    for var in url_vars:
        value = os.getenv(var)
        if value and not (value.startswith("http://") or value.startswith("https://")):
            raise EnvironmentConfigError(f"Invalid URL format for {var}: {value}")

    numeric_vars = {
        "ASSISTANT_TIMEOUT": float,
        "ASSISTANT_TEMPERATURE": float,
        "ASSISTANT_TOP_P": float,
        "ASSISTANT_MAX_TOKENS": int,
    }
    for var, kind in numeric_vars.items():
        value = os.getenv(var)
        if not value:
            continue
        try:
            kind(value)
        except ValueError as exc:
            raise EnvironmentConfigError(f"Invalid numeric value for {var}: {value}") from exc

    for var, description in optional_vars.items():
        if not os.getenv(var):
            logger.warning(f"Optional environment variable not set: {var} ({description})")


def get_env_bool(name: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on", "enabled"}


def safe_float(env_name: str, default: float) -> float:
    raw = os.getenv(env_name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def safe_int(env_name: str, default: int) -> int:
    raw = os.getenv(env_name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default
