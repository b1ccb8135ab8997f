"""ViolationStorage — persists recorded sector passes to SQLite.

Timestamps are stored as UTC ``YYYY-MM-DDTHH:MM:SSZ`` text so lexical order
equals chronological order and date-range filters are plain comparisons.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

from sector_tracker.recording.models import ViolationRecord

_DDL = """
PRAGMA journal_mode = WAL;
PRAGMA synchronous  = NORMAL;

CREATE TABLE IF NOT EXISTS violations (
    id             INTEGER PRIMARY KEY,
    device_id      TEXT    NOT NULL,
    sector_id      TEXT    NOT NULL,
    sector_name    TEXT    NOT NULL,
    speed_limit    REAL    NOT NULL,
    current_speed  REAL    NOT NULL,
    violation_type TEXT    NOT NULL CHECK (violation_type IN ('speeding', 'normal')),
    latitude       REAL    NOT NULL,
    longitude      REAL    NOT NULL,
    timestamp      TEXT    NOT NULL,
    created_at     TEXT    NOT NULL
                   DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_violations_device_time
    ON violations (device_id, timestamp);
"""

_INSERT = """
INSERT INTO violations (
    device_id, sector_id, sector_name, speed_limit, current_speed,
    violation_type, latitude, longitude, timestamp
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_PERIOD_FORMATS = {
    "daily": "%Y-%m-%d",
    "weekly": "%Y-W%W",
    "monthly": "%Y-%m",
}


def to_utc_text(value: datetime) -> str:
    """Format *value* as UTC text; naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class ViolationStorage:
    """Stores and queries :class:`ViolationRecord` rows.

    Parameters
    ----------
    db_path:
        Path to the SQLite file.  Pass ``":memory:"`` for in-process testing.
    """

    def __init__(self, db_path: str = "violations.db") -> None:
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        for stmt in _DDL.strip().split(";"):
            stmt = stmt.strip()
            if stmt:
                self._conn.execute(stmt)
        self._conn.commit()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def save(self, record: ViolationRecord) -> int:
        """Persist *record* and return the new row id."""
        cursor = self._conn.execute(
            _INSERT,
            (
                record.device_id,
                record.sector_id,
                record.sector_name,
                record.speed_limit,
                record.current_speed,
                record.violation_type,
                record.location.latitude,
                record.location.longitude,
                to_utc_text(record.timestamp),
            ),
        )
        self._conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    def history(
        self,
        device_id: str,
        limit: int = 50,
        offset: int = 0,
        violation_type: str = "all",
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> tuple[list[dict], int]:
        """Return ``(rows, total)`` for *device_id*, newest first.

        *total* counts every matching row, ignoring *limit*/*offset*.
        """
        where, params = self._filters(device_id, violation_type, date_from, date_to)
        total = self._conn.execute(
            f"SELECT COUNT(*) FROM violations WHERE {where}", params
        ).fetchone()[0]
        rows = self._conn.execute(
            f"""
            SELECT * FROM violations
            WHERE  {where}
            ORDER  BY timestamp DESC, id DESC
            LIMIT  ? OFFSET ?
            """,
            (*params, limit, offset),
        ).fetchall()
        return [dict(r) for r in rows], int(total)

    def stats(
        self,
        device_id: str,
        period: str = "daily",
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> dict:
        """Aggregate statistics for *device_id*.

        Raises:
            ValueError: If *period* is not daily, weekly or monthly.
        """
        if period not in _PERIOD_FORMATS:
            raise ValueError(f"Unknown period: {period!r}")
        where, params = self._filters(device_id, "all", date_from, date_to)

        totals = self._conn.execute(
            f"""
            SELECT COUNT(*)                                            AS total,
                   COALESCE(SUM(violation_type = 'speeding'), 0)       AS speeding,
                   COALESCE(SUM(violation_type = 'normal'), 0)         AS normal,
                   COALESCE(AVG(current_speed), 0.0)                   AS average_speed,
                   COALESCE(MAX(current_speed), 0.0)                   AS max_speed
            FROM   violations
            WHERE  {where}
            """,
            params,
        ).fetchone()

        worst = self._conn.execute(
            f"""
            SELECT sector_id, sector_name, COUNT(*) AS violations
            FROM   violations
            WHERE  {where} AND violation_type = 'speeding'
            GROUP  BY sector_id
            ORDER  BY violations DESC, sector_id
            LIMIT  1
            """,
            params,
        ).fetchone()

        buckets = self._conn.execute(
            f"""
            SELECT strftime(?, timestamp)                        AS bucket,
                   SUM(violation_type = 'speeding')              AS violations,
                   SUM(violation_type = 'normal')                AS normal
            FROM   violations
            WHERE  {where}
            GROUP  BY bucket
            ORDER  BY bucket
            """,
            (_PERIOD_FORMATS[period], *params),
        ).fetchall()
        breakdown = [
            {"date": b["bucket"], "violations": int(b["violations"]), "normal": int(b["normal"])}
            for b in buckets
        ]

        return {
            "total_violations": int(totals["total"]),
            "speeding_violations": int(totals["speeding"]),
            "normal_passages": int(totals["normal"]),
            "average_speed": float(totals["average_speed"]),
            "max_speed": float(totals["max_speed"]),
            "most_violated_sector": (
                {
                    "id": worst["sector_id"],
                    "name": worst["sector_name"],
                    "violations": int(worst["violations"]),
                }
                if worst is not None
                else None
            ),
            "daily_breakdown": breakdown,
            "period_summary": {"period": period, **_trend(breakdown)},
        }

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _filters(
        device_id: str,
        violation_type: str,
        date_from: datetime | None,
        date_to: datetime | None,
    ) -> tuple[str, tuple]:
        clauses = ["device_id = ?"]
        params: list = [device_id]
        if violation_type != "all":
            clauses.append("violation_type = ?")
            params.append(violation_type)
        if date_from is not None:
            clauses.append("timestamp >= ?")
            params.append(to_utc_text(date_from))
        if date_to is not None:
            clauses.append("timestamp <= ?")
            params.append(to_utc_text(date_to))
        return " AND ".join(clauses), tuple(params)


def _trend(breakdown: list[dict]) -> dict:
    """Compare speeding counts of the last two buckets."""
    if len(breakdown) < 2:
        return {"violations_trend": "stable", "improvement_percentage": 0.0}
    previous = breakdown[-2]["violations"]
    last = breakdown[-1]["violations"]
    if last > previous:
        trend = "increasing"
    elif last < previous:
        trend = "decreasing"
    else:
        trend = "stable"
    improvement = (previous - last) / previous * 100.0 if previous else (0.0 if not last else -100.0)
    return {"violations_trend": trend, "improvement_percentage": round(improvement, 1)}
