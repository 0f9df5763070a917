"""Per-endpoint call counts and latency of the REST client."""

from __future__ import annotations

import logging
from threading import Lock
from urllib.parse import parse_qsl, urlsplit

LOGGER = logging.getLogger(__name__)


def endpoint_name(url: str) -> str:
    """Name a request for statistics, keeping the concrete path parameters.

    ``https://api.github.com/repos/a/b/stats/contributors`` becomes
    ``repos/a/b/stats/contributors``; searches keep the first 50 characters of
    their query.
    """

    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    path = parts.path.lstrip("/")
    segments = path.split("/")

    if segments[0] == "search" and len(segments) >= 2:
        for name, value in parse_qsl(parts.query, keep_blank_values=True):
            if name == "q":
                display = value if len(value) <= 50 else value[:50] + "..."
                return f"search/{segments[1]}?q={display}"
        return f"search/{segments[1]}"
    return path


class ApiStats:
    """Thread-safe counters for calls, latencies, errors and retries."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.call_counts: dict[str, int] = {}
        self.call_times_ms: dict[str, float] = {}
        self.error_counts: dict[str, int] = {}
        self.total_retries = 0
        self.long_waits = 0
        self.cache_hits = 0

    def record_call(self, endpoint: str, elapsed_ms: float) -> None:
        with self._lock:
            self.call_counts[endpoint] = self.call_counts.get(endpoint, 0) + 1
            self.call_times_ms[endpoint] = self.call_times_ms.get(endpoint, 0.0) + elapsed_ms
            count = self.call_counts[endpoint]
            total = self.call_times_ms[endpoint]
        LOGGER.debug("%s: call #%s took %.0fms (%.0fms total)", endpoint, count, elapsed_ms, total)

    def record_error(self, kind: str) -> None:
        with self._lock:
            self.error_counts[kind] = self.error_counts.get(kind, 0) + 1

    def record_retry(self) -> None:
        with self._lock:
            self.total_retries += 1

    def record_long_wait(self) -> None:
        with self._lock:
            self.long_waits += 1

    def record_cache_hit(self) -> None:
        with self._lock:
            self.cache_hits += 1

    @property
    def total_calls(self) -> int:
        with self._lock:
            return sum(self.call_counts.values())

    def summary_lines(self) -> list[str]:
        with self._lock:
            lines = [f"{'Endpoint':<50} {'Calls':>8} {'Total ms':>12} {'Avg ms':>10}", "-" * 83]
            total_calls = 0
            total_time = 0.0
            for endpoint in sorted(self.call_counts):
                count = self.call_counts[endpoint]
                elapsed = self.call_times_ms[endpoint]
                lines.append(f"{endpoint:<50} {count:>8} {elapsed:>12.0f} {elapsed / count:>10.0f}")
                total_calls += count
                total_time += elapsed
            lines.append("-" * 83)
            average = total_time / total_calls if total_calls else 0.0
            lines.append(f"{'Total':<50} {total_calls:>8} {total_time:>12.0f} {average:>10.0f}")
            lines.append(f"Cache hits: {self.cache_hits}")
            if self.error_counts or self.total_retries or self.long_waits:
                lines.append(f"Retries: {self.total_retries}, long waits: {self.long_waits}")
                for kind, count in sorted(self.error_counts.items(), key=lambda item: item[1], reverse=True):
                    lines.append(f"  {kind}: {count}")
            return lines

    def log_summary(self) -> None:
        for line in self.summary_lines():
            LOGGER.info(line)


__all__ = ["ApiStats", "endpoint_name"]
