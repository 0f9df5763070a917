"""Helpers for interpreting GitHub REST rate limit headers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Mapping

from .config import UTC


@dataclass(slots=True, frozen=True)
class RateLimitSnapshot:
    """Rate limit state reported with a single response."""

    remaining: int | None = None
    reset_at: datetime | None = None
    retry_after: float | None = None

    @property
    def exhausted(self) -> bool:
        return self.remaining is not None and self.remaining <= 0

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], now: datetime | None = None) -> "RateLimitSnapshot":
        return cls(
            remaining=_parse_int(headers.get("X-RateLimit-Remaining")),
            reset_at=_parse_reset(headers.get("X-RateLimit-Reset")),
            retry_after=_retry_after_seconds(headers.get("Retry-After"), now),
        )


def rate_limit_wait(
    snapshot: RateLimitSnapshot,
    now: datetime | None = None,
    *,
    buffer: float = 10.0,
    fallback: float = 300.0,
) -> float:
    """Seconds to sleep before retrying a rate limited request.

    ``Retry-After`` wins when GitHub sends it. Otherwise the wait lasts until
    the reset time plus ``buffer``; without a usable reset header the flat
    ``fallback`` is used.
    """

    if snapshot.retry_after is not None:
        return snapshot.retry_after
    if snapshot.reset_at is None:
        return fallback
    now = now or datetime.now(tz=UTC)
    delta = (snapshot.reset_at - now).total_seconds()
    return max(delta, 0.0) + buffer


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except (TypeError, ValueError):
        return None


def _parse_reset(value: str | None) -> datetime | None:
    seconds = _parse_int(value)
    if seconds is None or seconds <= 0:
        return None
    return datetime.fromtimestamp(seconds, tz=UTC)


def _retry_after_seconds(value: str | None, now: datetime | None) -> float | None:
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except (TypeError, ValueError):
        pass

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at is None:
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max((retry_at - now).total_seconds(), 0.0)


__all__ = ["RateLimitSnapshot", "rate_limit_wait"]
