"""
Service configuration: environment settings plus the collaboration YAML overlay.
"""

import json
import os
from typing import Any

import yaml

from dotenv import load_dotenv

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


class ServiceConfig:
    """Environment-backed settings and dotted-path collaboration tuning values."""

    def __init__(self) -> None:
        load_dotenv(dotenv_path=os.path.join(BASE_DIR, ".env"), override=False)
        self.config: dict[str, Any] = self._from_env()
        self.collab_config: dict[str, Any] = self._read_overlay(
            os.getenv("COLLAB_CONFIG_PATH", os.path.join(BASE_DIR, "config", "collaboration.yaml"))
        )

    @staticmethod
    def _from_env() -> dict[str, Any]:
        return {
            "database_url": os.getenv("DATABASE_URL", "sqlite:///./collab_slides.db"),
            "secret_key": os.getenv("SECRET_KEY", "supersecret"),
            "jwt_algorithm": os.getenv("JWT_ALGORITHM", "HS256"),
            "access_token_expire_minutes": int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440")),
            "debug": os.getenv("DEBUG", "false").lower() == "true",
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "allowed_origins": json.loads(os.getenv("ALLOWED_ORIGINS", '["*"]')),
            "collab_require_auth": os.getenv("COLLAB_REQUIRE_AUTH", "true").lower() == "true",
            "refresh_interval_seconds": float(os.getenv("REFRESH_INTERVAL_SECONDS", "5")),
        }

    @staticmethod
    def _read_overlay(path: str) -> dict[str, Any]:
        if not os.path.exists(path):
            return {}
        with open(path, "r", encoding="utf-8") as stream:
            return yaml.safe_load(stream) or {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.config[key] = value

    def get_collab_value(self, path: str, default: Any = None) -> Any:
        """
        Look up a collaboration value such as ``refresh.interval_seconds``.

        ``COLLAB_FLAG_REFRESH_INTERVAL_SECONDS`` in the environment takes
        precedence over the YAML file.
        """
        raw = os.getenv("COLLAB_FLAG_" + path.replace(".", "_").upper())
        if raw is not None:
            return _coerce(raw, default)

        node: Any = self.collab_config
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return default if node is None else node

    def set_collab_config(self, collab_config: dict[str, Any]) -> None:
        self.collab_config = collab_config


def _coerce(raw: str, default: Any) -> Any:
    """Environment strings to bool, int or float where they look like one."""
    lowered = raw.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(lowered)
        except ValueError:
            pass
    return raw or default


config = ServiceConfig()
