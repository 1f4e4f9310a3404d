"""Versioned profile store.

Profiles are never deleted. Every write bumps ``version`` and appends the new
snapshot to ``profile_history``; an optional ``expected_version`` turns the
write into an optimistic compare-and-set.
"""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Any

from adaptive_router.errors import MissingProfile, ProfileVersionConflict
from adaptive_router.logging_config import get_logger
from adaptive_router.models import UserProfile
from adaptive_router.storage.database import Database

log = get_logger(__name__)


class ProfileStore:
    """SQLite-backed profile aggregate."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.db.ensure_tables()

    def create_profile(self, profile: UserProfile) -> UserProfile:
        """Store a new profile at version 1.

        Raises:
            ValueError: if the user already has a profile
        """
        stored = replace(profile, version=1)
        data = json.dumps(stored.to_dict())
        with self.db.connect() as conn:
            exists = conn.execute(
                "SELECT 1 FROM profiles WHERE user_id = ?", (profile.user_id,)
            ).fetchone()
            if exists:
                raise ValueError(f"profile for {profile.user_id!r} already exists")
            conn.execute(
                "INSERT INTO profiles (user_id, version, data) VALUES (?, 1, ?)",
                (profile.user_id, data),
            )
            conn.execute(
                "INSERT INTO profile_history (user_id, version, setting_path, data) "
                "VALUES (?, 1, NULL, ?)",
                (profile.user_id, data),
            )
        log.info("profile_created", user_id=profile.user_id)
        return stored

    def get_profile(self, user_id: str) -> UserProfile:
        rows = self.db.execute(
            "SELECT version, data FROM profiles WHERE user_id = ?", (user_id,)
        )
        if not rows:
            raise MissingProfile(user_id)
        profile = UserProfile.from_dict(json.loads(rows[0]["data"]))
        return replace(profile, version=int(rows[0]["version"]))

    def exists(self, user_id: str) -> bool:
        return bool(self.db.execute("SELECT 1 FROM profiles WHERE user_id = ?", (user_id,)))

    def update_profile_field(
        self,
        user_id: str,
        path: str,
        value: Any,
        expected_version: int | None = None,
    ) -> UserProfile:
        """Set one dotted setting and bump the version.

        Args:
            user_id: Profile owner
            path: Dotted setting path, e.g. ``preferences.write``
            value: New value
            expected_version: If given, fail unless the stored version matches

        Returns:
            The updated profile

        Raises:
            MissingProfile: if the user has no profile
            ProfileVersionConflict: if the stored version moved underneath us
        """
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT version, data FROM profiles WHERE user_id = ?", (user_id,)
            ).fetchone()
            if row is None:
                raise MissingProfile(user_id)
            stored_version = int(row["version"])
            if expected_version is not None and expected_version != stored_version:
                raise ProfileVersionConflict(user_id, expected_version, stored_version)

            current = replace(
                UserProfile.from_dict(json.loads(row["data"])), version=stored_version
            )
            updated = replace(current.with_setting(path, value), version=stored_version + 1)
            data = json.dumps(updated.to_dict())
            cursor = conn.execute(
                "UPDATE profiles SET version = ?, data = ?, updated_at = datetime('now') "
                "WHERE user_id = ? AND version = ?",
                (updated.version, data, user_id, stored_version),
            )
            if cursor.rowcount != 1:
                raise ProfileVersionConflict(user_id, stored_version, -1)
            conn.execute(
                "INSERT INTO profile_history (user_id, version, setting_path, data) "
                "VALUES (?, ?, ?, ?)",
                (user_id, updated.version, path, data),
            )

        log.info(
            "profile_updated",
            user_id=user_id,
            path=path,
            version=updated.version,
        )
        return updated

    def history(self, user_id: str) -> list[dict[str, Any]]:
        """Version history, oldest first."""
        rows = self.db.execute(
            "SELECT version, setting_path, changed_at FROM profile_history "
            "WHERE user_id = ? ORDER BY version",
            (user_id,),
        )
        return [dict(row) for row in rows]
