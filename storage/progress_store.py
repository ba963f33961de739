"""Key/value progress store backed by Redis or process memory."""

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple
import redis
from redis.exceptions import RedisError, ConnectionError as RedisConnectionError

from models.errors import WatermarkPipelineError


logger = logging.getLogger(__name__)


class ProgressStoreError(WatermarkPipelineError):
    """Base exception for progress store operations."""
    pass


class ProgressStore(ABC):
    """
    Minimal store contract used by the job runner and detection cache.

    Values are JSON-compatible dictionaries. Writes overwrite the whole
    value; there is no compare-and-set.
    """

    @abstractmethod
    def put(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds."""

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the value for ``key`` or None when absent or expired."""


class RedisProgressStore(ProgressStore):
    """Redis-based progress store with per-key expiry."""

    def __init__(self, redis_url: str = "redis://localhost:6379/0"):
        """
        Initialize the store with a Redis connection.

        Args:
            redis_url: Redis connection URL
        """
        self.redis_client = None
        self._connect(redis_url)

    def _connect(self, redis_url: str) -> None:
        """Establish Redis connection with error handling."""
        try:
            self.redis_client = redis.from_url(redis_url, decode_responses=True)
            # Test connection
            self.redis_client.ping()
            logger.info("Successfully connected to Redis")
        except RedisConnectionError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise ProgressStoreError(f"Redis connection failed: {e}")

    def put(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        """
        Store a JSON value with an expiry.

        Raises:
            ProgressStoreError: If the write fails
        """
        try:
            self.redis_client.set(key, json.dumps(value), ex=ttl)
        except RedisError as e:
            logger.error(f"Failed to write {key}: {e}")
            raise ProgressStoreError(f"Failed to write {key}: {e}")

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Read a JSON value.

        Raises:
            ProgressStoreError: If the read fails or the stored value is not valid JSON
        """
        try:
            data = self.redis_client.get(key)
        except RedisError as e:
            logger.error(f"Failed to read {key}: {e}")
            raise ProgressStoreError(f"Failed to read {key}: {e}")

        if not data:
            return None

        try:
            return json.loads(data)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid data stored under {key}: {e}")
            raise ProgressStoreError(f"Invalid data format for {key}: {e}")


class MemoryProgressStore(ProgressStore):
    """Thread-safe in-process store used for development and tests."""

    def __init__(self):
        self._data: Dict[str, Tuple[float, str]] = {}
        self._lock = threading.Lock()

    def put(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        # Values are stored serialized so callers never share mutable state
        with self._lock:
            self._data[key] = (time.monotonic() + ttl, json.dumps(value))

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            expires_at, payload = entry
            if time.monotonic() >= expires_at:
                del self._data[key]
                return None
        return json.loads(payload)


def create_progress_store(settings: Any) -> ProgressStore:
    """
    Build the store selected by the ``PROGRESS_STORE`` setting.

    Args:
        settings: Configuration object exposing PROGRESS_STORE and REDIS_URL

    Returns:
        RedisProgressStore or MemoryProgressStore
    """
    if settings.PROGRESS_STORE == "redis":
        return RedisProgressStore(settings.REDIS_URL)
    logger.info("Using in-memory progress store")
    return MemoryProgressStore()
