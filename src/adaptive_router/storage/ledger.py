"""
Performance Ledger: per-worker outcome history with windowed summaries.

Every reported outcome is one row keyed by (worker, category, time). The
summary for a category is an aggregate over a time window:

- sample_size = number of outcomes
- success_rate = mean(success)
- avg_latency_ms, avg_rating = means over the rows that report them

The composite score lives on ``WorkerPerformance``.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import aiosqlite

from adaptive_router.errors import UpstreamDataUnavailable
from adaptive_router.models import PerformanceSummary, TimeWindow, WorkerPerformance
from adaptive_router.storage.database import DEFAULT_DATA_DIR


class PerformanceLedger:
    """Async outcome ledger backed by aiosqlite."""

    DB_PATH = DEFAULT_DATA_DIR / "data" / "performance.db"

    def __init__(self, db_path: str | Path | None = None) -> None:
        self.db_path = Path(db_path) if db_path else self.DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db: aiosqlite.Connection | None = None

    async def __aenter__(self) -> PerformanceLedger:
        await self._init_db()
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        await self.close()

    async def _init_db(self) -> None:
        self._db = await aiosqlite.connect(str(self.db_path))
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS worker_outcomes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                worker_id TEXT NOT NULL,
                category TEXT NOT NULL,
                success INTEGER NOT NULL,
                latency_ms REAL,
                rating INTEGER,
                decision_id TEXT,
                recorded_at TEXT NOT NULL,
                CHECK (success IN (0, 1)),
                CHECK (latency_ms IS NULL OR latency_ms >= 0.0),
                CHECK (rating IS NULL OR rating BETWEEN 1 AND 5)
            )
        """)
        await self._db.execute("""
            CREATE INDEX IF NOT EXISTS idx_outcomes_category_time
            ON worker_outcomes(category, recorded_at)
        """)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def record_outcome(
        self,
        worker_id: str,
        category: str,
        success: bool,
        latency_ms: float | None = None,
        rating: int | None = None,
        decision_id: str | None = None,
        recorded_at: datetime | None = None,
    ) -> None:
        """Append one execution outcome.

        Raises:
            UpstreamDataUnavailable: if the ledger is closed or cannot be written
        """
        if latency_ms is not None and latency_ms < 0.0:
            raise ValueError(f"latency_ms must be >= 0.0, got {latency_ms}")
        if rating is not None and not 1 <= rating <= 5:
            raise ValueError(f"rating must be in [1, 5], got {rating}")

        if self._db is None:
            raise UpstreamDataUnavailable("performance ledger is not open")
        moment = (recorded_at or datetime.now()).isoformat(timespec="seconds")
        try:
            await self._db.execute(
                """INSERT INTO worker_outcomes
                   (worker_id, category, success, latency_ms, rating, decision_id, recorded_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (worker_id, category, int(success), latency_ms, rating, decision_id, moment),
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise UpstreamDataUnavailable(f"performance ledger unwritable: {exc}") from exc

    async def get_summary(self, category: str, window: TimeWindow) -> PerformanceSummary:
        """Aggregate outcomes per worker for one category inside ``window``.

        Raises:
            UpstreamDataUnavailable: if the ledger cannot be read
        """
        if self._db is None:
            raise UpstreamDataUnavailable("performance ledger is not open")
        try:
            cursor = await self._db.execute(
                """SELECT worker_id, COUNT(*), AVG(success), AVG(latency_ms), AVG(rating)
                   FROM worker_outcomes
                   WHERE category = ? AND recorded_at >= ? AND recorded_at < ?
                   GROUP BY worker_id
                   ORDER BY worker_id""",
                (
                    category,
                    window.start.isoformat(timespec="seconds"),
                    window.end.isoformat(timespec="seconds"),
                ),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise UpstreamDataUnavailable(f"performance ledger unreadable: {exc}") from exc

        return {
            worker_id: WorkerPerformance(
                sample_size=int(count),
                success_rate=round(float(success_rate), 4),
                avg_latency_ms=None if latency is None else round(float(latency), 1),
                avg_rating=None if rating is None else round(float(rating), 2),
            )
            for worker_id, count, success_rate, latency, rating in rows
        }

    async def get_top_workers(
        self, category: str, window: TimeWindow, limit: int = 5
    ) -> list[tuple[str, WorkerPerformance]]:
        """Workers ranked by composite score for one category."""
        summary = await self.get_summary(category, window)
        ranked = sorted(summary.items(), key=lambda item: (-item[1].score, item[0]))
        return ranked[:limit]
