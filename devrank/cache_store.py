"""Durable response cache keyed by canonical request URL."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from threading import Lock
from typing import Any, Callable
from urllib.parse import parse_qsl, urlsplit

from .config import UTC

LOGGER = logging.getLogger(__name__)

CACHE_FILE_NAME = "api_cache.json"
TIMESTAMPS_FILE_NAME = "api_timestamps.json"


@dataclass(slots=True, frozen=True)
class CacheEntry:
    key: str
    payload: Any
    stored_at: datetime


def canonical_cache_key(url: str) -> str:
    """Return ``scheme://host/path`` plus the query parameters in sorted order."""

    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url
    key = f"{parts.scheme}://{parts.netloc}{parts.path}"
    params = sorted(param for param in parts.query.split("&") if param)
    if params:
        key += "?" + "&".join(params)
    return key


def is_cacheable(url: str) -> bool:
    """Search results, later pages and statistics are too volatile to cache."""

    parts = urlsplit(url)
    if "/search/" in parts.path:
        return False
    if "/stats/" in parts.path:
        return False
    for name, value in parse_qsl(parts.query, keep_blank_values=True):
        if name == "page" and value != "1":
            return False
    return True


class CacheStore:
    """In-memory response cache with TTL eviction and JSON persistence.

    Payloads and their timestamps live in two flat ``key -> value`` JSON maps
    inside ``directory`` so that either file can be inspected or pruned by hand.
    """

    def __init__(
        self,
        directory: Path | None,
        ttl: timedelta,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._directory = Path(directory) if directory is not None else None
        self._ttl = ttl
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._lock = Lock()
        self._payloads: dict[str, Any] = {}
        self._timestamps: dict[str, datetime] = {}
        self.hits = 0
        self.misses = 0
        self.writes = 0

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._payloads)

    def get(self, key: str, now: datetime | None = None) -> CacheEntry | None:
        now = now or self._clock()
        with self._lock:
            stored_at = self._timestamps.get(key)
            if stored_at is None or key not in self._payloads:
                self.misses += 1
                return None
            if now - stored_at > self._ttl:
                self._payloads.pop(key, None)
                self._timestamps.pop(key, None)
                self.misses += 1
                return None
            self.hits += 1
            return CacheEntry(key=key, payload=self._payloads[key], stored_at=stored_at)

    def put(self, key: str, payload: Any, now: datetime | None = None) -> None:
        stored_at = now or self._clock()
        with self._lock:
            self._payloads[key] = payload
            self._timestamps[key] = stored_at
            self.writes += 1
        LOGGER.debug("Cached response for %s", key)

    def sweep(self, now: datetime | None = None) -> int:
        """Drop every expired entry and return how many were removed."""

        now = now or self._clock()
        with self._lock:
            expired = [key for key, stored_at in self._timestamps.items() if now - stored_at > self._ttl]
            orphans = [key for key in self._payloads if key not in self._timestamps]
            for key in expired + orphans:
                self._payloads.pop(key, None)
                self._timestamps.pop(key, None)
        if expired:
            LOGGER.info("Removed %s expired cache entries", len(expired))
        return len(expired)

    def counts(self, now: datetime | None = None) -> tuple[int, int]:
        """Return ``(valid, expired)`` entry counts."""

        now = now or self._clock()
        with self._lock:
            expired = sum(1 for stored_at in self._timestamps.values() if now - stored_at > self._ttl)
            return len(self._timestamps) - expired, expired

    def load(self) -> int:
        """Read both cache files from disk, returning the number of entries loaded."""

        if self._directory is None:
            return 0
        self._directory.mkdir(parents=True, exist_ok=True)
        payloads = _read_json_map(self._directory / CACHE_FILE_NAME)
        raw_timestamps = _read_json_map(self._directory / TIMESTAMPS_FILE_NAME)

        timestamps: dict[str, datetime] = {}
        for key, value in raw_timestamps.items():
            parsed = _parse_timestamp(value)
            if parsed is not None:
                timestamps[key] = parsed

        with self._lock:
            self._payloads.update(payloads)
            self._timestamps.update(timestamps)
            loaded = len(self._payloads)
        LOGGER.info("Loaded %s cached API responses from %s", loaded, self._directory)
        return loaded

    def save(self) -> None:
        if self._directory is None:
            return
        self._directory.mkdir(parents=True, exist_ok=True)
        with self._lock:
            payloads = dict(self._payloads)
            timestamps = {key: value.isoformat() for key, value in self._timestamps.items()}
        _write_json(self._directory / CACHE_FILE_NAME, payloads)
        _write_json(self._directory / TIMESTAMPS_FILE_NAME, timestamps)
        LOGGER.info("Saved %s cached API responses to %s", len(payloads), self._directory)


def _read_json_map(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        LOGGER.warning("Ignoring unreadable cache file %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        LOGGER.warning("Ignoring cache file %s: expected a JSON object", path)
        return {}
    return data


def _write_json(path: Path, data: dict[str, Any]) -> None:
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    os.replace(tmp_path, path)


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


__all__ = ["CacheEntry", "CacheStore", "canonical_cache_key", "is_cacheable"]
