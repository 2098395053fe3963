"""Read-through response cache keyed by request signature."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from hashlib import sha256
from pathlib import Path
from typing import Any, Protocol

from redis import Redis

from wrapped.core.config import settings

_logger = logging.getLogger(__name__)


def cache_key(path: str, params: dict[str, Any] | None = None) -> str:
    """Deterministic hash of the endpoint path and its key-sorted parameters."""
    ordered = {key: (params or {})[key] for key in sorted(params or {})}
    blob = json.dumps({"url": path, "params": ordered}, separators=(",", ":"), default=str)
    return sha256(blob.encode("utf-8")).hexdigest()


def _envelope(path: str, params: dict[str, Any] | None, payload: Any) -> dict:
    return {
        "url": path,
        "params": params or {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": payload,
    }


class ResponseCache(Protocol):
    """Cache contract consulted by the platform client."""

    def get(self, path: str, params: dict[str, Any] | None) -> Any | None:  # pragma: no cover - interface
        ...

    def set(self, path: str, params: dict[str, Any] | None, payload: Any) -> None:  # pragma: no cover - interface
        ...


class NullResponseCache:
    """Always misses."""

    def get(self, path: str, params: dict[str, Any] | None) -> Any | None:
        return None

    def set(self, path: str, params: dict[str, Any] | None, payload: Any) -> None:
        return None


class InMemoryResponseCache:
    """Process-local cache, mostly for development and tests."""

    def __init__(self) -> None:
        self._entries: dict[str, dict] = {}
        self._lock = threading.Lock()

    def get(self, path: str, params: dict[str, Any] | None) -> Any | None:
        with self._lock:
            entry = self._entries.get(cache_key(path, params))
        return entry["data"] if entry else None

    def set(self, path: str, params: dict[str, Any] | None, payload: Any) -> None:
        with self._lock:
            self._entries[cache_key(path, params)] = _envelope(path, params, payload)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {"entries": len(self._entries), "total_size": 0, "location": "memory"}

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count


class FileResponseCache:
    """One JSON envelope per request signature under a directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def _entry_path(self, path: str, params: dict[str, Any] | None) -> Path:
        return self.directory / f"{cache_key(path, params)}.json"

    def get(self, path: str, params: dict[str, Any] | None) -> Any | None:
        entry_path = self._entry_path(path, params)
        if not entry_path.exists():
            _logger.debug("Cache miss for %s", path)
            return None
        try:
            cached = json.loads(entry_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            _logger.warning("Unreadable cache entry %s; ignoring", entry_path.name)
            return None
        _logger.debug("Cache hit for %s (cached %s)", path, cached.get("timestamp"))
        return cached.get("data")

    def set(self, path: str, params: dict[str, Any] | None, payload: Any) -> None:
        entry = json.dumps(_envelope(path, params, payload), indent=2)
        try:
            with self._lock:
                self.directory.mkdir(parents=True, exist_ok=True)
                self._entry_path(path, params).write_text(entry, encoding="utf-8")
        except OSError:
            _logger.exception("Cache write failed for %s", path)
            return
        _logger.debug("Cache write for %s (%.2f KB)", path, len(entry) / 1024)

    def stats(self) -> dict[str, Any]:
        if not self.directory.exists():
            return {"entries": 0, "total_size": 0, "location": str(self.directory)}
        files = list(self.directory.glob("*.json"))
        return {
            "entries": len(files),
            "total_size": sum(item.stat().st_size for item in files),
            "location": str(self.directory),
        }

    def clear(self) -> int:
        if not self.directory.exists():
            return 0
        removed = 0
        with self._lock:
            for item in self.directory.glob("*.json"):
                item.unlink()
                removed += 1
        return removed


class RedisResponseCache:
    """Stores the same envelopes in Redis under a key prefix."""

    def __init__(self, client: Redis, prefix: str = "ado-cache:") -> None:
        self._client = client
        self._prefix = prefix

    def _key(self, path: str, params: dict[str, Any] | None) -> str:
        return f"{self._prefix}{cache_key(path, params)}"

    def get(self, path: str, params: dict[str, Any] | None) -> Any | None:
        blob = self._client.get(self._key(path, params))
        if not blob:
            return None
        return json.loads(blob).get("data")

    def set(self, path: str, params: dict[str, Any] | None, payload: Any) -> None:
        self._client.set(self._key(path, params), json.dumps(_envelope(path, params, payload)))

    def stats(self) -> dict[str, Any]:
        keys = list(self._client.scan_iter(match=f"{self._prefix}*"))
        total_size = 0
        for key in keys:
            total_size += int(self._client.strlen(key) or 0)
        return {"entries": len(keys), "total_size": total_size, "location": self._prefix}

    def clear(self) -> int:
        keys = list(self._client.scan_iter(match=f"{self._prefix}*"))
        if not keys:
            return 0
        return int(self._client.delete(*keys))


def cache_from_settings() -> ResponseCache:
    """Factory to construct a response cache based on app settings."""

    backend = settings.cache_backend.lower().strip()
    if backend in {"off", "none", "disabled"}:
        return NullResponseCache()
    if backend == "memory":
        return InMemoryResponseCache()
    if backend == "file":
        return FileResponseCache(settings.cache_path)
    if backend == "redis":
        return RedisResponseCache(Redis.from_url(settings.redis_url, decode_responses=True))
    raise ValueError(f"Unsupported cache backend: {settings.cache_backend}")
