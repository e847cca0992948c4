"""
Environment-backed settings.

Values are layered, later sources winning:
1) `env.example` (committed placeholders)
2) `env.local` (operator overrides, never committed)
3) process environment
"""

import os
from pathlib import Path

from dotenv import dotenv_values
from loguru import logger

_DEFAULT_POOL_SIZE = 5


class EnvironConfig:
    """Process-wide settings loaded once from env files and the environment."""

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._values: dict[str, str | None] = {}
            self._load()
            EnvironConfig._initialized = True

    def _load(self) -> None:
        root = Path(__file__).resolve().parents[2]
        for name in ("env.example", "env.local"):
            path = root / name
            if path.exists():
                self._values.update(dotenv_values(path))
                logger.info("Loaded settings from {}", path)
        self._values.update(os.environ)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._values.get(key, default)

    def get_redis_url(self, label: str = "default") -> str:
        """`REDIS_URL_<LABEL>`; the default label also accepts `REDIS_URL`."""
        if label == "default":
            return self.get("REDIS_URL_DEFAULT") or self.get("REDIS_URL") or "redis://localhost:6379"
        return self.get(f"REDIS_URL_{label.upper()}") or ""

    def get_mongo_url(self, label: str = "default") -> str:
        """`MONGO_URL_<LABEL>`; the default label also accepts `MONGO_URL`."""
        if label == "default":
            return self.get("MONGO_URL_DEFAULT") or self.get("MONGO_URL") or "mongodb://localhost:27017/streamctl"
        return self.get(f"MONGO_URL_{label.upper()}") or ""

    def get_mongo_max_pool_size(self) -> int:
        raw = self.get("MONGO_MAX_POOL_SIZE", str(_DEFAULT_POOL_SIZE))
        try:
            size = int(raw)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            logger.warning("Invalid MONGO_MAX_POOL_SIZE {!r}, using {}", raw, _DEFAULT_POOL_SIZE)
            return _DEFAULT_POOL_SIZE

        if not 1 <= size <= 100:
            logger.warning("MONGO_MAX_POOL_SIZE {} outside 1-100, using {}", size, _DEFAULT_POOL_SIZE)
            return _DEFAULT_POOL_SIZE
        return size


config = EnvironConfig()
