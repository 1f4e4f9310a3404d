"""Append-only routing decision log."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Mapping
from datetime import datetime
from typing import Final

from adaptive_router.errors import DecisionNotFound, UpstreamDataUnavailable
from adaptive_router.models import Outcome, TimeWindow
from adaptive_router.routing import RoutingDecision
from adaptive_router.storage.database import Database

FILTER_COLUMNS: Final = ("user_id", "category", "worker_id")


def _ts(moment: datetime) -> str:
    return moment.isoformat(timespec="seconds")


class DecisionLog:
    """One row per routed request; outcomes are filled in later."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.db.ensure_tables()

    def append(self, decision: RoutingDecision) -> str:
        self.db.execute_insert(
            """INSERT INTO routing_decisions
               (decision_id, user_id, created_at, category, worker_id,
                confidence, privacy_enforced, task_excerpt, payload)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                decision.decision_id,
                decision.user_id,
                _ts(decision.created_at),
                decision.category,
                decision.worker_id,
                decision.confidence,
                int(decision.privacy_enforced),
                decision.task_excerpt,
                json.dumps(decision.to_dict()),
            ),
        )
        return decision.decision_id

    def get(self, decision_id: str) -> RoutingDecision:
        rows = self.db.execute(
            "SELECT payload FROM routing_decisions WHERE decision_id = ?", (decision_id,)
        )
        if not rows:
            raise DecisionNotFound(decision_id)
        return RoutingDecision.from_dict(json.loads(rows[0]["payload"]))

    def query(
        self, window: TimeWindow, filters: Mapping[str, str] | None = None
    ) -> list[RoutingDecision]:
        """Decisions created inside ``window``, oldest first.

        Raises:
            ValueError: for an unsupported filter key
            UpstreamDataUnavailable: if the log cannot be read
        """
        clauses = ["created_at >= ?", "created_at < ?"]
        params: list[object] = [_ts(window.start), _ts(window.end)]
        for key, value in (filters or {}).items():
            if key not in FILTER_COLUMNS:
                raise ValueError(f"unsupported filter {key!r}; use one of {FILTER_COLUMNS}")
            clauses.append(f"{key} = ?")
            params.append(value)

        sql = (
            "SELECT payload FROM routing_decisions WHERE "
            + " AND ".join(clauses)
            + " ORDER BY created_at, decision_id"
        )
        try:
            rows = self.db.execute(sql, tuple(params))
        except sqlite3.Error as exc:
            raise UpstreamDataUnavailable(f"decision log unreadable: {exc}") from exc
        return [RoutingDecision.from_dict(json.loads(row["payload"])) for row in rows]

    def recent(self, limit: int = 20, user_id: str | None = None) -> list[RoutingDecision]:
        if user_id is None:
            rows = self.db.execute(
                "SELECT payload FROM routing_decisions ORDER BY created_at DESC LIMIT ?",
                (limit,),
            )
        else:
            rows = self.db.execute(
                "SELECT payload FROM routing_decisions WHERE user_id = ? "
                "ORDER BY created_at DESC LIMIT ?",
                (user_id, limit),
            )
        return [RoutingDecision.from_dict(json.loads(row["payload"])) for row in rows]

    def record_outcome(self, decision_id: str, outcome: Outcome) -> RoutingDecision:
        """Attach the execution outcome to a logged decision.

        Raises:
            DecisionNotFound: if the decision does not exist
            ValueError: if an outcome was already recorded
        """
        decision = self.get(decision_id)
        if decision.outcome is not None:
            raise ValueError(f"decision {decision_id!r} already has an outcome")
        updated = decision.with_outcome(outcome)
        self.db.execute_update(
            """UPDATE routing_decisions
               SET payload = ?, outcome_success = ?, outcome_latency_ms = ?,
                   outcome_rating = ?, outcome_at = ?
               WHERE decision_id = ? AND outcome_at IS NULL""",
            (
                json.dumps(updated.to_dict()),
                int(outcome.success),
                outcome.latency_ms,
                outcome.rating,
                _ts(outcome.recorded_at),
                decision_id,
            ),
        )
        return updated
