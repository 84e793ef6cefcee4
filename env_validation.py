"""Environment variable validation and typed accessors."""

import os
import logging
from typing import Dict

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when environment variables are present but malformed."""
    pass


def validate_environment() -> None:
    """Validate the provider settings once at startup.

    Raises ConfigurationError if validation fails.
    """
    # Provider credentials are optional: endpoints that need a missing key
    # answer with a "not configured" error instead of failing startup.
    defaults = {
        "DB_PATH": os.getenv("DB_PATH") or "data.db",
    }

    for var, value in defaults.items():
        if not os.getenv(var):
            os.environ[var] = value
            logger.info("Environment variable %s not set; using default '%s'", var, value)

    optional_vars: Dict[str, str] = {
        "OPENAI_API_KEY": "OpenAI credential for /api/ai-coach",
        "GEMINI_API_KEY": "Gemini credential for /api/ai-coach-gemini",
        "OLLAMA_URL": "Local Ollama chat endpoint",
    }

    url_vars = {"OLLAMA_URL"}
    for var in url_vars:
        value = os.getenv(var)
        if value and not (value.startswith("http://") or value.startswith("https://")):
            raise ConfigurationError(f"Invalid URL format for {var}: {value}")

    for var in ("LLM_TIMEOUT", "LLM_TEMPERATURE"):
        raw = os.getenv(var)
        if not raw:
            continue
        try:
            number = float(raw)
        except ValueError as exc:
            raise ConfigurationError(f"{var} must be numeric, got {raw!r}") from exc
        if var == "LLM_TIMEOUT" and number <= 0:
            raise ConfigurationError(f"LLM_TIMEOUT must be positive, got {raw!r}")

    for var, description in optional_vars.items():
        if not os.getenv(var):
            logger.warning("Optional environment variable not set: %s (%s)", var, description)


def get_env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        return default
