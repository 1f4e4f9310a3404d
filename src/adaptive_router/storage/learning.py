"""Persistence for drift analysis runs and suggestions."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Sequence
from datetime import datetime

from adaptive_router.errors import SuggestionNotFound, SuggestionStateError
from adaptive_router.learning.records import (
    DriftRecord,
    Suggestion,
    SuggestionStats,
    SuggestionStatus,
)
from adaptive_router.storage.database import Database


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class DriftStore:
    """Drift records grouped by analysis run. Later runs supersede earlier ones."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.db.ensure_tables()

    def save_run(self, user_id: str, run_id: str, records: Sequence[DriftRecord]) -> None:
        with self.db.connect() as conn:
            conn.execute(
                "UPDATE drift_records SET superseded = 1 WHERE user_id = ? AND superseded = 0",
                (user_id,),
            )
            conn.executemany(
                "INSERT INTO drift_records (run_id, user_id, category, payload) "
                "VALUES (?, ?, ?, ?)",
                [(run_id, user_id, r.category, json.dumps(r.to_dict())) for r in records],
            )

    def latest(self, user_id: str) -> list[DriftRecord]:
        rows = self.db.execute(
            "SELECT payload FROM drift_records WHERE user_id = ? AND superseded = 0 "
            "ORDER BY id",
            (user_id,),
        )
        return [DriftRecord.from_dict(json.loads(row["payload"])) for row in rows]


class SuggestionStore:
    """Suggestion rows with an atomic pending → accepted/rejected transition."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.db.ensure_tables()

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Suggestion:
        return Suggestion(
            id=int(row["id"]),
            user_id=row["user_id"],
            setting_path=row["setting_path"],
            current_value=row["current_value"],
            suggested_value=row["suggested_value"],
            reasoning=row["reasoning"],
            confidence=float(row["confidence"]),
            priority=float(row["priority"]),
            risk_level=row["risk_level"],
            urgency=row["urgency"],
            estimated_improvement=row["estimated_improvement"],
            evidence=json.loads(row["evidence"]),
            status=SuggestionStatus(row["status"]),
            rejection_reason=row["rejection_reason"],
            created_at=_parse(row["created_at"]),
            decided_at=_parse(row["decided_at"]),
            applied_at=_parse(row["applied_at"]),
        )

    def add(self, suggestion: Suggestion) -> Suggestion:
        created = suggestion.created_at or datetime.now()
        new_id = self.db.execute_insert(
            """INSERT INTO suggestions
               (user_id, setting_path, current_value, suggested_value, reasoning,
                confidence, priority, risk_level, urgency, estimated_improvement,
                evidence, status, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                suggestion.user_id,
                suggestion.setting_path,
                suggestion.current_value,
                suggestion.suggested_value,
                suggestion.reasoning,
                suggestion.confidence,
                suggestion.priority,
                suggestion.risk_level,
                suggestion.urgency,
                suggestion.estimated_improvement,
                json.dumps(dict(suggestion.evidence)),
                str(suggestion.status),
                created.isoformat(timespec="seconds"),
            ),
        )
        return self.get(new_id)

    def get(self, suggestion_id: int) -> Suggestion:
        rows = self.db.execute("SELECT * FROM suggestions WHERE id = ?", (suggestion_id,))
        if not rows:
            raise SuggestionNotFound(suggestion_id)
        return self._from_row(rows[0])

    def find_pending(
        self, user_id: str, setting_path: str, suggested_value: str
    ) -> Suggestion | None:
        rows = self.db.execute(
            "SELECT * FROM suggestions WHERE user_id = ? AND setting_path = ? "
            "AND suggested_value = ? AND status = 'pending' ORDER BY id LIMIT 1",
            (user_id, setting_path, suggested_value),
        )
        return self._from_row(rows[0]) if rows else None

    def query(
        self, user_id: str | None = None, status: SuggestionStatus | None = None
    ) -> list[Suggestion]:
        clauses = []
        params: list[str] = []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(str(status))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.db.execute(
            f"SELECT * FROM suggestions {where} ORDER BY priority DESC, id", tuple(params)
        )
        return [self._from_row(row) for row in rows]

    def transition(
        self,
        suggestion_id: int,
        status: SuggestionStatus,
        rejection_reason: str | None = None,
    ) -> None:
        """Move a pending suggestion to ``status``.

        Raises:
            SuggestionStateError: if the suggestion is no longer pending
        """
        if status == SuggestionStatus.PENDING:
            raise ValueError("cannot transition back to pending")
        changed = self.db.execute_update(
            "UPDATE suggestions SET status = ?, rejection_reason = ?, decided_at = ? "
            "WHERE id = ? AND status = 'pending'",
            (
                str(status),
                rejection_reason,
                datetime.now().isoformat(timespec="seconds"),
                suggestion_id,
            ),
        )
        if changed != 1:
            current = self.get(suggestion_id)
            raise SuggestionStateError(
                f"suggestion {suggestion_id} is already {current.status}"
            )

    def mark_applied(self, suggestion_id: int) -> None:
        self.db.execute_update(
            "UPDATE suggestions SET applied_at = ? WHERE id = ?",
            (datetime.now().isoformat(timespec="seconds"), suggestion_id),
        )

    def stats(self, user_id: str | None = None) -> SuggestionStats:
        """Counts by status, for one user or everyone."""
        where = ""
        params: tuple[str, ...] = ()
        if user_id is not None:
            where, params = "WHERE user_id = ?", (user_id,)
        rows = self.db.execute(
            f"""SELECT COUNT(*) AS generated,
                       SUM(status = 'pending') AS pending,
                       SUM(status = 'accepted') AS accepted,
                       SUM(status = 'rejected') AS rejected,
                       SUM(applied_at IS NOT NULL) AS applied
                FROM suggestions {where}""",
            params,
        )
        row = rows[0]
        return SuggestionStats(
            generated=int(row["generated"]),
            pending=int(row["pending"] or 0),
            accepted=int(row["accepted"] or 0),
            rejected=int(row["rejected"] or 0),
            applied=int(row["applied"] or 0),
        )
