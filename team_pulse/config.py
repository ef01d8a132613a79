"""
Configuration management for Team Pulse.

Settings are resolved in this order:
1. Values set explicitly via the set_*() functions (CLI flags use these)
2. Environment variables (a .env file is loaded first)
3. [tool.team-pulse] in .team-pulse.toml (local config)
4. [tool.team-pulse] in pyproject.toml (project-level config)
5. Built-in defaults
"""

import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()

# project_root is the parent directory of team_pulse/
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Global configuration for SSL verification
# Default: True (verify SSL certificates)
# Can be set to False by CLI --insecure flag
VERIFY_SSL = True

DEFAULT_DATA_DIR = Path.home() / ".cache" / "team-pulse"
DEFAULT_DATABASE_URL = f"sqlite:///{DEFAULT_DATA_DIR / 'team-pulse.db'}"
DEFAULT_AI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_AI_MODEL = "gpt-4o-mini"
DEFAULT_AI_TEMPERATURE = 0.3
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_MAX_CONCURRENCY = 3

# Explicit overrides (None means "not set")
_DATABASE_URL: str | None = None
_HTTP_TIMEOUT: float | None = None
_MAX_CONCURRENCY: int | None = None


def load_config_file(config_path: Path) -> dict:
    """Load a TOML configuration file."""
    if not config_path.exists():
        return {}
    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except Exception as e:
        raise ValueError(f"Failed to load config from {config_path}: {e}") from e


def get_file_settings() -> dict[str, Any]:
    """
    Return the [tool.team-pulse] table.

    .team-pulse.toml wins over pyproject.toml; the two are not merged.
    """
    for filename in (".team-pulse.toml", "pyproject.toml"):
        config = load_config_file(PROJECT_ROOT / filename)
        settings = config.get("tool", {}).get("team-pulse", {})
        if settings:
            return settings
    return {}


def _resolve(env_var: str, file_key: str, default: Any) -> Any:
    env_value = os.getenv(env_var)
    if env_value:
        return env_value
    settings = get_file_settings()
    if file_key in settings:
        return settings[file_key]
    return default


def set_verify_ssl(verify: bool) -> None:
    """
    Set the SSL verification setting globally.

    Args:
        verify: Whether to verify SSL certificates.
    """
    global VERIFY_SSL
    VERIFY_SSL = verify


def get_verify_ssl() -> bool:
    """Get the current SSL verification setting."""
    return VERIFY_SSL


def get_database_url() -> str:
    """
    Get the SQLAlchemy database URL.

    Priority:
    1. Explicitly set value via set_database_url()
    2. TEAM_PULSE_DATABASE_URL environment variable
    3. "database_url" in config files
    4. Default: SQLite file under ~/.cache/team-pulse
    """
    if _DATABASE_URL is not None:
        return _DATABASE_URL
    return str(_resolve("TEAM_PULSE_DATABASE_URL", "database_url", DEFAULT_DATABASE_URL))


def set_database_url(url: str) -> None:
    global _DATABASE_URL
    _DATABASE_URL = url


def get_github_token() -> str | None:
    """Get the default GitHub token (GITHUB_TOKEN)."""
    return os.getenv("GITHUB_TOKEN") or None


def get_secret_key() -> str | None:
    """Get the Fernet key used to encrypt stored repository tokens."""
    return os.getenv("TEAM_PULSE_SECRET_KEY") or None


def get_ai_settings() -> dict[str, Any]:
    """
    Get scoring-service settings.

    Returns:
        Dictionary with base_url, api_key, model and temperature.

    Raises:
        ValueError: If temperature is not a number.
    """
    settings = get_file_settings().get("ai", {})
    temperature = os.getenv("TEAM_PULSE_AI_TEMPERATURE") or settings.get(
        "temperature", DEFAULT_AI_TEMPERATURE
    )
    try:
        temperature = float(temperature)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid AI temperature: {temperature!r}") from e

    return {
        "base_url": os.getenv("TEAM_PULSE_AI_BASE_URL")
        or settings.get("base_url", DEFAULT_AI_BASE_URL),
        "api_key": os.getenv("TEAM_PULSE_AI_API_KEY") or settings.get("api_key"),
        "model": os.getenv("TEAM_PULSE_AI_MODEL")
        or settings.get("model", DEFAULT_AI_MODEL),
        "temperature": temperature,
    }


def get_http_timeout() -> float:
    """
    Get the per-call timeout in seconds for GitHub and scoring-service calls.
    """
    if _HTTP_TIMEOUT is not None:
        return _HTTP_TIMEOUT
    value = _resolve("TEAM_PULSE_HTTP_TIMEOUT", "http_timeout", DEFAULT_HTTP_TIMEOUT)
    try:
        return float(value)
    except (TypeError, ValueError):
        return DEFAULT_HTTP_TIMEOUT


def set_http_timeout(seconds: float) -> None:
    global _HTTP_TIMEOUT
    _HTTP_TIMEOUT = seconds


def get_max_concurrency() -> int:
    """
    Get the fan-out limit for batch evaluation and PR linking.

    Values below 1 fall back to 1.
    """
    if _MAX_CONCURRENCY is not None:
        return _MAX_CONCURRENCY
    value = _resolve(
        "TEAM_PULSE_MAX_CONCURRENCY", "max_concurrency", DEFAULT_MAX_CONCURRENCY
    )
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        return DEFAULT_MAX_CONCURRENCY


def set_max_concurrency(limit: int) -> None:
    global _MAX_CONCURRENCY
    _MAX_CONCURRENCY = max(1, limit)


def reset_overrides() -> None:
    """Forget all explicitly set values."""
    global _DATABASE_URL, _HTTP_TIMEOUT, _MAX_CONCURRENCY, VERIFY_SSL
    _DATABASE_URL = None
    _HTTP_TIMEOUT = None
    _MAX_CONCURRENCY = None
    VERIFY_SSL = True
