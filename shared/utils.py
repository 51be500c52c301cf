import logging
from datetime import datetime, timezone
from typing import Any

from shared.config import config


def setup_logging(service_name: str, log_level: str | None = None) -> logging.Logger:
    """Setup logging configuration for a service"""
    level = log_level or config.get("log_level", "INFO")
    logger = logging.getLogger(service_name)
    logger.setLevel(getattr(logging, level.upper()))

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(f"%(asctime)s - {service_name} - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def utcnow() -> datetime:
    """Timezone-aware current time used for all persisted timestamps."""
    return datetime.now(timezone.utc)


def ensure_string_list(value: Any) -> list[str]:
    """Coerce a loosely-typed value into a list of strings, dropping non-strings."""
    if not value:
        return []
    if isinstance(value, list):
        return [item for item in value if isinstance(item, str)]
    return []


def ensure_data_object(value: Any) -> dict[str, Any]:
    """Coerce a loosely-typed value into a JSON object."""
    if isinstance(value, dict):
        return value
    return {}


def default_slide_title(title: str | None, position: int | None = None) -> str:
    """
    Return a usable slide title.

    Args:
        title: Title as supplied by the caller
        position: 0-based position in the deck when known

    Returns:
        The stripped title, or a placeholder when it is blank
    """
    if title and title.strip():
        return title.strip()
    if position == 0:
        return config.get_collab_value("slides.first_title", "Presentation title")
    if position is not None:
        return f"Slide {position + 1}"
    return config.get_collab_value("slides.default_title", "Untitled slide")
