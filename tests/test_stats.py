from __future__ import annotations

import logging

from devrank.stats import ApiStats, endpoint_name


def test_endpoint_name_keeps_path_without_host():
    assert endpoint_name("https://api.github.com/repos/a/b/stats/contributors") == "repos/a/b/stats/contributors"
    assert endpoint_name("https://api.github.com/users/octocat/repos?page=2") == "users/octocat/repos"


def test_endpoint_name_truncates_search_queries():
    query = "followers:>100+location:" + "x" * 60
    name = endpoint_name(f"https://api.github.com/search/users?q={query}&page=1")

    assert name.startswith("search/users?q=followers:>100")
    assert name.endswith("...")
    assert len(name) == len("search/users?q=") + 53


def test_stats_aggregate_calls_and_errors(caplog):
    stats = ApiStats()
    stats.record_call("users/octocat", 120.0)
    stats.record_call("users/octocat", 80.0)
    stats.record_call("users/octocat/orgs", 10.0)
    stats.record_error("server_transient_502")
    stats.record_retry()
    stats.record_long_wait()
    stats.record_cache_hit()

    assert stats.total_calls == 3
    assert stats.call_times_ms["users/octocat"] == 200.0

    with caplog.at_level(logging.INFO, logger="devrank.stats"):
        stats.log_summary()

    assert "users/octocat" in caplog.text
    assert "Cache hits: 1" in caplog.text
    assert "Retries: 1, long waits: 1" in caplog.text
    assert "server_transient_502: 1" in caplog.text
