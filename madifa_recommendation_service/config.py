"""Application configuration"""

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def _get_config_value(key: str, default: str | None = None) -> str | None:
    """
    Get configuration value from environment or local.settings.json.

    Priority:
    1. Environment variable
    2. local.settings.json (Values.key)
    3. Default value

    Args:
        key: Configuration key name
        default: Default value if not found

    Returns:
        Configuration value or default
    """
    # Try environment variable first
    value = os.getenv(key)
    if value:
        return value

    # Try local.settings.json
    project_root = Path(__file__).resolve().parent.parent
    local_settings_path = project_root / "local.settings.json"

    if local_settings_path.exists():
        try:
            with open(local_settings_path) as f:
                settings = json.load(f)
                value = settings.get("Values", {}).get(key)
                if value:
                    return str(value)
        except (json.JSONDecodeError, KeyError):
            pass

    return default


def _get_float(key: str, default: float) -> float:
    """Read a float setting, falling back to the default on bad input."""
    raw = _get_config_value(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {key}: {raw!r}, using {default}")
        return default


def _get_int(key: str, default: int) -> int:
    """Read an int setting, falling back to the default on bad input."""
    raw = _get_config_value(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid value for {key}: {raw!r}, using {default}")
        return default


def get_content_api_url() -> str | None:
    """
    Get the base URL of the application's content API.

    Returns:
        Content API URL (catalog, history and ratings endpoints live under it)
    """
    return _get_config_value("CONTENT_API_URL", default="http://localhost:5000/api")


def get_http_timeout() -> float:
    """Timeout in seconds for calls to the content API."""
    return _get_float("HTTP_TIMEOUT_SECONDS", 10.0)


def get_recency_half_life_days() -> float:
    """
    Get the half-life used to decay old watch history entries.

    Returns:
        Half-life in days (default: 30)
    """
    return _get_float("RECENCY_HALF_LIFE_DAYS", 30.0)


def get_release_half_life_days() -> float:
    """Half-life in days applied to release dates when ranking trending content."""
    return _get_float("RELEASE_HALF_LIFE_DAYS", 365.0)


def get_trending_weights() -> dict[str, float]:
    """
    Get the component weights of the trending score.

    Returns:
        Dict with popularity, watch_count and release_recency weights
    """
    return {
        "popularity": _get_float("TRENDING_POPULARITY_WEIGHT", 0.5),
        "watch_count": _get_float("TRENDING_WATCH_COUNT_WEIGHT", 0.3),
        "release_recency": _get_float("TRENDING_RECENCY_WEIGHT", 0.2),
    }


def get_default_recommendations() -> int:
    """Number of results returned when the caller does not ask for a count."""
    return _get_int("DEFAULT_RECOMMENDATIONS", 10)


def get_max_recommendations() -> int:
    """Upper bound accepted for the requested number of results."""
    return _get_int("MAX_RECOMMENDATIONS", 50)
