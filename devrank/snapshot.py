"""Persistence of crawled developers in ``Users.json``."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Sequence

from pydantic import ValidationError

from .config import UTC
from .models import GitHubUser

LOGGER = logging.getLogger(__name__)

SNAPSHOT_FILE_NAME = "Users.json"


class UserSnapshotStore:
    """Reads and writes the per-region user snapshot.

    The snapshot is rewritten after every processed user so an interrupted run
    can resume without fetching already scored developers again.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> list[GitHubUser]:
        if not self._path.exists():
            return []
        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning("Could not read %s: %s", self._path, exc)
            return []

        users: list[GitHubUser] = []
        skipped = 0
        for payload in (document or {}).get("users") or []:
            try:
                user = GitHubUser.model_validate(payload)
            except ValidationError as exc:
                LOGGER.warning("Skipping malformed user entry in %s: %s", self._path, exc)
                continue
            if user.is_organization:
                skipped += 1
                continue
            users.append(user)
        if skipped:
            LOGGER.info("Dropped %s organizations from %s", skipped, self._path)
        LOGGER.info("Loaded %s users from %s", len(users), self._path)
        return users

    def save(self, users: Sequence[GitHubUser], generated_at: datetime | None = None) -> None:
        ordered = sorted(users, key=lambda user: user.score, reverse=True)
        document = {
            "generated_at": (generated_at or datetime.now(tz=UTC)).isoformat(),
            "total_users": len(ordered),
            "users": [user.model_dump(mode="json") for user in ordered],
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_text(json.dumps(document, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp_path, self._path)


__all__ = ["SNAPSHOT_FILE_NAME", "UserSnapshotStore"]
