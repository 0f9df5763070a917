from __future__ import annotations

import json
from datetime import datetime, timezone

from devrank.models import GitHubUser, Repository
from devrank.snapshot import UserSnapshotStore


def test_save_orders_by_score_and_load_restores_users(tmp_path):
    store = UserSnapshotStore(tmp_path / "Taiwan" / "Users.json")
    scored_at = datetime(2024, 5, 1, tzinfo=timezone.utc)
    users = [
        GitHubUser(login="second", score=10.0, accepted=True, scored_at=scored_at),
        GitHubUser(
            login="first",
            score=99.0,
            accepted=True,
            scored_at=scored_at,
            top_repositories=[Repository(full_name="first/tool", stars=30, contributor_rank=1, total_contributors=2)],
        ),
    ]

    store.save(users, generated_at=scored_at)

    document = json.loads(store.path.read_text(encoding="utf-8"))
    assert document["total_users"] == 2
    assert [entry["login"] for entry in document["users"]] == ["first", "second"]
    assert document["generated_at"] == scored_at.isoformat()

    restored = store.load()
    assert [user.login for user in restored] == ["first", "second"]
    assert restored[0].scored_at == scored_at
    assert restored[0].top_repositories[0].rank_display == "(rank 1/2)"


def test_load_excludes_organizations_and_malformed_entries(tmp_path):
    path = tmp_path / "Users.json"
    path.write_text(
        json.dumps(
            {
                "users": [
                    {"login": "dev", "followers": 10},
                    {"login": "acme", "type": "Organization"},
                    {"followers": "lots"},
                ]
            }
        ),
        encoding="utf-8",
    )

    users = UserSnapshotStore(path).load()

    assert [user.login for user in users] == ["dev"]


def test_missing_or_corrupt_snapshot_is_empty(tmp_path, caplog):
    missing = UserSnapshotStore(tmp_path / "missing.json")
    assert missing.exists() is False
    assert missing.load() == []

    corrupt = tmp_path / "Users.json"
    corrupt.write_text("{oops", encoding="utf-8")
    assert UserSnapshotStore(corrupt).load() == []
    assert "Could not read" in caplog.text
