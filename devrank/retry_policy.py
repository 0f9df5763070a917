"""Response classification and the retry state machine of the REST client.

Both functions here are pure: they look at a status code, a body and the
current :class:`RetryState` and decide what happens next. The client only
executes the resulting step (call again, sleep, rebuild the HTTP client or
stop), which keeps every retry path testable without a network.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Union

from .rate_limiter import RateLimitSnapshot


TOO_LARGE_MARKERS = ("too large to list contributors", "contributor list is too large")
UNAVAILABLE_MARKERS = ("no server is currently available", "service your request")
RATE_LIMIT_MARKERS = ("rate limit", "abuse detection")
TRANSIENT_STATUSES = {500, 502, 503}


class Classification(Enum):
    SUCCESS = "success"
    ACCEPTED = "accepted"
    RATE_LIMITED = "rate_limited"
    SERVER_TRANSIENT = "server_transient"
    NETWORK_TRANSIENT = "network_transient"
    CLIENT_FATAL = "client_fatal"
    LIST_TOO_LARGE = "list_too_large"
    TERMINAL = "terminal"

    @property
    def is_transient(self) -> bool:
        return self in (Classification.SERVER_TRANSIENT, Classification.NETWORK_TRANSIENT)


@dataclass(slots=True, frozen=True)
class ResponseOutcome:
    classification: Classification
    data: Any = None
    message: str = ""
    empty_body: bool = False


@dataclass(slots=True, frozen=True)
class Calling:
    pass


@dataclass(slots=True, frozen=True)
class Waiting:
    duration: float
    reason: str = ""


@dataclass(slots=True, frozen=True)
class RebuildingClient:
    duration: float


@dataclass(slots=True, frozen=True)
class Terminal:
    success: bool
    gave_up: bool = False


Step = Union[Calling, Waiting, RebuildingClient, Terminal]


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    empty_body_delay: float = 2.0
    error_body_delay: float = 5.0
    long_wait: float = 600.0

    @classmethod
    def from_settings(cls, settings: Any) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_transient_attempts,
            empty_body_delay=settings.empty_body_delay,
            error_body_delay=settings.error_body_delay,
            long_wait=settings.long_wait,
        )


@dataclass(slots=True, frozen=True)
class RetryState:
    attempt: int = 0
    retries: int = 0
    long_waits: int = 0


def classify_response(
    status_code: int,
    body: str,
    rate_limit: RateLimitSnapshot,
    *,
    expect: type = dict,
) -> ResponseOutcome:
    """Map one HTTP response onto a :class:`Classification`."""

    text = body.strip()
    lowered = text.lower()

    if status_code == 202:
        if expect is list:
            return ResponseOutcome(Classification.ACCEPTED, data=[])
        return ResponseOutcome(Classification.TERMINAL, message="GitHub is still computing this resource")

    if 200 <= status_code < 300:
        if not text:
            return ResponseOutcome(Classification.SERVER_TRANSIENT, message="empty response body", empty_body=True)
        return _normalize_body(text, expect)

    if status_code == 401:
        return ResponseOutcome(Classification.CLIENT_FATAL, message=text or "Bad credentials")

    if status_code == 403:
        if any(marker in lowered for marker in TOO_LARGE_MARKERS):
            return ResponseOutcome(Classification.LIST_TOO_LARGE, message=text)
        if rate_limit.exhausted or any(marker in lowered for marker in RATE_LIMIT_MARKERS):
            return ResponseOutcome(Classification.RATE_LIMITED, message=text)
        return ResponseOutcome(Classification.TERMINAL, message=f"HTTP 403: {text}")

    if status_code == 429:
        return ResponseOutcome(Classification.RATE_LIMITED, message=text)

    if status_code in TRANSIENT_STATUSES:
        return ResponseOutcome(
            Classification.SERVER_TRANSIENT,
            message=f"HTTP {status_code}: {text[:200]}",
            empty_body=not text,
        )

    if not text or any(marker in lowered for marker in UNAVAILABLE_MARKERS):
        return ResponseOutcome(
            Classification.SERVER_TRANSIENT,
            message=f"HTTP {status_code}: service unavailable",
            empty_body=not text,
        )

    return ResponseOutcome(Classification.TERMINAL, message=f"HTTP {status_code}: {text}")


def next_step(
    state: RetryState,
    outcome: ResponseOutcome,
    policy: RetryPolicy,
    *,
    rate_limit_delay: float = 0.0,
    give_up_transient: bool = False,
) -> tuple[RetryState, Step]:
    """Transition function of the retry state machine."""

    classification = outcome.classification

    if classification in (Classification.SUCCESS, Classification.ACCEPTED):
        return state, Terminal(success=True)

    if classification is Classification.RATE_LIMITED:
        return replace(state, retries=state.retries + 1), Waiting(rate_limit_delay, "rate limited")

    if classification.is_transient:
        attempt = state.attempt + 1
        retries = state.retries + 1
        if attempt >= policy.max_attempts:
            if give_up_transient:
                return RetryState(attempt, retries, state.long_waits), Terminal(success=True, gave_up=True)
            return RetryState(0, retries, state.long_waits + 1), RebuildingClient(policy.long_wait)
        base = policy.empty_body_delay if outcome.empty_body else policy.error_body_delay
        return RetryState(attempt, retries, state.long_waits), Waiting(base * attempt, classification.value)

    return state, Terminal(success=False)


def coerce_payload(data: Any, expect: type) -> Any | None:
    """Fit a decoded body to ``expect``, or return ``None`` when its shape is wrong.

    An object where a list was expected is GitHub's "no data yet" and becomes
    ``[]``; an empty list where an object was expected becomes ``{}``.
    """

    if expect is list:
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return []
        return None
    if isinstance(data, dict):
        return data
    if data == []:
        return {}
    return None


def _normalize_body(text: str, expect: type) -> ResponseOutcome:
    try:
        data = json.loads(text)
    except ValueError:
        # Outages sometimes come back as 200 with an HTML or plain text page.
        return ResponseOutcome(Classification.SERVER_TRANSIENT, message=f"Unparseable response body: {text[:200]}")

    coerced = coerce_payload(data, expect)
    if coerced is None:
        expected = "array" if expect is list else "object"
        return ResponseOutcome(Classification.TERMINAL, message=f"Expected a JSON {expected}")
    return ResponseOutcome(Classification.SUCCESS, data=coerced)


__all__ = [
    "Calling",
    "Classification",
    "RebuildingClient",
    "ResponseOutcome",
    "RetryPolicy",
    "RetryState",
    "Step",
    "Terminal",
    "Waiting",
    "classify_response",
    "coerce_payload",
    "next_step",
]
