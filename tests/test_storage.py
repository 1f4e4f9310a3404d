"""Tests for the SQLite storage layer."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from adaptive_router.classification import classify
from adaptive_router.cognition import estimate_cognitive_state
from adaptive_router.errors import DecisionNotFound, MissingProfile, ProfileVersionConflict
from adaptive_router.models import Outcome, TimeWindow, UserProfile
from adaptive_router.routing import RoutingDecision, TrailEntry
from adaptive_router.storage import Database, DecisionLog, ProfileStore

BASE = datetime(2026, 3, 1, 12, 0)


@pytest.fixture
def db(tmp_path: Path) -> Database:
    database = Database(data_dir=tmp_path / "router")
    database.ensure_tables()
    return database


def make_decision(
    user_id: str = "u1",
    text: str = "Write an essay about dogs",
    worker: str = "gpt-4",
    created_at: datetime = BASE,
) -> RoutingDecision:
    profile = UserProfile(user_id=user_id)
    classification = classify(text)
    return RoutingDecision(
        user_id=user_id,
        task_excerpt=text,
        classification=classification,
        cognitive_state=estimate_cognitive_state(profile, created_at, classification),
        worker_id=worker,
        confidence=0.7,
        trail=(TrailEntry("baseline", "baseline", "default worker for write", None, worker),),
        fallback_chain=("claude-3.5-sonnet", "smollm3"),
        created_at=created_at,
    )


class TestDatabase:
    def test_ensure_tables(self, db: Database) -> None:
        assert db.db_path.exists()

    def test_wal_mode(self, db: Database) -> None:
        with db.connect() as conn:
            result = conn.execute("PRAGMA journal_mode").fetchone()
            assert result[0] == "wal"

    def test_schema_version(self, db: Database) -> None:
        rows = db.execute("SELECT version FROM schema_version")
        assert [row["version"] for row in rows] == [1]

    def test_rollback_on_error(self, db: Database) -> None:
        with pytest.raises(RuntimeError):
            with db.connect() as conn:
                conn.execute(
                    "INSERT INTO profiles (user_id, data) VALUES (?, ?)", ("ghost", "{}")
                )
                raise RuntimeError("boom")
        assert db.execute("SELECT * FROM profiles WHERE user_id = 'ghost'") == []


class TestProfileStore:
    def test_create_and_get(self, db: Database) -> None:
        store = ProfileStore(db)
        store.create_profile(UserProfile(user_id="u1", cognitive_tags=("adhd",)))
        profile = store.get_profile("u1")
        assert profile.version == 1
        assert profile.attention_variability
        assert store.exists("u1")

    def test_missing_profile(self, db: Database) -> None:
        with pytest.raises(MissingProfile):
            ProfileStore(db).get_profile("nobody")

    def test_duplicate_create_rejected(self, db: Database) -> None:
        store = ProfileStore(db)
        store.create_profile(UserProfile(user_id="u1"))
        with pytest.raises(ValueError):
            store.create_profile(UserProfile(user_id="u1"))

    def test_update_bumps_version(self, db: Database) -> None:
        store = ProfileStore(db)
        store.create_profile(UserProfile(user_id="u1"))
        updated = store.update_profile_field("u1", "preferences.write", "claude-3.5-sonnet")
        assert updated.version == 2
        assert store.get_profile("u1").preferred_worker("write") == "claude-3.5-sonnet"
        history = store.history("u1")
        assert [h["version"] for h in history] == [1, 2]
        assert history[1]["setting_path"] == "preferences.write"

    def test_stale_version_conflicts(self, db: Database) -> None:
        store = ProfileStore(db)
        store.create_profile(UserProfile(user_id="u1"))
        store.update_profile_field("u1", "preferences.write", "claude-3.5-sonnet")
        with pytest.raises(ProfileVersionConflict):
            store.update_profile_field("u1", "preferences.write", "gpt-4", expected_version=1)
        assert store.get_profile("u1").preferred_worker("write") == "claude-3.5-sonnet"

    def test_update_missing_profile(self, db: Database) -> None:
        with pytest.raises(MissingProfile):
            ProfileStore(db).update_profile_field("nobody", "preferences.write", "gpt-4")


class TestDecisionLog:
    def test_append_and_get(self, db: Database) -> None:
        log = DecisionLog(db)
        decision = make_decision()
        log.append(decision)
        assert log.get(decision.decision_id) == decision

    def test_get_unknown(self, db: Database) -> None:
        with pytest.raises(DecisionNotFound):
            DecisionLog(db).get("dec-missing")

    def test_query_window_and_filters(self, db: Database) -> None:
        log = DecisionLog(db)
        for i in range(3):
            log.append(make_decision(created_at=BASE + timedelta(days=i)))
        log.append(make_decision(user_id="u2"))
        log.append(make_decision(text="Fix this bug", worker="codellama"))

        window = TimeWindow(start=BASE, end=BASE + timedelta(days=2))
        in_window = log.query(window, {"user_id": "u1"})
        assert len(in_window) == 3
        assert [d.created_at for d in in_window] == sorted(d.created_at for d in in_window)

        writes = log.query(window, {"user_id": "u1", "category": "write"})
        assert len(writes) == 2
        assert log.query(window, {"worker_id": "codellama"})[0].category == "debug"

    def test_unknown_filter_rejected(self, db: Database) -> None:
        with pytest.raises(ValueError):
            DecisionLog(db).query(TimeWindow.last(days=1), {"mood": "happy"})

    def test_recent_newest_first(self, db: Database) -> None:
        log = DecisionLog(db)
        for i in range(3):
            log.append(make_decision(created_at=BASE + timedelta(hours=i)))
        recent = log.recent(limit=2)
        assert len(recent) == 2
        assert recent[0].created_at > recent[1].created_at

    def test_outcome_recorded_once(self, db: Database) -> None:
        log = DecisionLog(db)
        decision = make_decision()
        log.append(decision)
        log.record_outcome(decision.decision_id, Outcome(success=True, latency_ms=800, rating=4))
        stored = log.get(decision.decision_id)
        assert stored.outcome is not None
        assert stored.outcome.rating == 4
        with pytest.raises(ValueError):
            log.record_outcome(decision.decision_id, Outcome(success=False))
