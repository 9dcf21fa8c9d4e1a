"""SQLite storage for threshold rules and breach events."""
import sqlite3
import logging
import threading
from contextlib import contextmanager
from pathlib import Path

from models.alerts import Rule, Event
from utils.errors import PersistenceError
from utils.formatters import to_iso

logger = logging.getLogger("alertmon.db")


class Database:
    def __init__(self, db_path="data/alertmon.db"):
        self.db_path = db_path
        self.conn = None
        self._lock = threading.RLock()

    def connect(self):
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._create_tables()
        return self

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *args):
        self.close()

    def _create_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS rules (
                id TEXT PRIMARY KEY,
                metric_name TEXT NOT NULL,
                threshold REAL NOT NULL,
                comparator TEXT NOT NULL
                    CHECK (comparator IN ('GT', 'GTE', 'LT', 'LTE', 'EQ')),
                message TEXT NOT NULL,
                cooldown_seconds REAL NOT NULL DEFAULT 0 CHECK (cooldown_seconds >= 0),
                last_triggered TEXT,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_rules_metric
                ON rules(metric_name);

            CREATE TABLE IF NOT EXISTS alert_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                alert_id TEXT NOT NULL,
                metric_name TEXT NOT NULL,
                metric_value REAL NOT NULL,
                timestamp TEXT NOT NULL,
                message TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_timestamp
                ON alert_events(timestamp);
            CREATE INDEX IF NOT EXISTS idx_events_metric_timestamp
                ON alert_events(metric_name, timestamp);
            CREATE INDEX IF NOT EXISTS idx_events_alert
                ON alert_events(alert_id);
        """)
        self.conn.commit()

    @contextmanager
    def _guard(self, action):
        """Serialize access to the shared connection and wrap sqlite errors."""
        with self._lock:
            if self.conn is None:
                raise PersistenceError(f"{action}: database is not connected")
            try:
                yield self.conn
            except sqlite3.Error as e:
                self.conn.rollback()
                raise PersistenceError(f"{action}: {e}") from e

    # --- Rules ---

    def create_rule(self, rule: Rule) -> Rule:
        with self._guard("create rule") as conn:
            conn.execute("""
                INSERT INTO rules
                (id, metric_name, threshold, comparator, message, cooldown_seconds,
                 last_triggered, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                rule.id, rule.metric_name, rule.threshold, rule.comparator.value,
                rule.message, rule.cooldown_seconds, to_iso(rule.last_triggered),
                to_iso(rule.created_at),
            ))
            conn.commit()
        logger.debug(f"Created rule {rule.id} ({rule.describe()})")
        return rule

    def get_rule(self, rule_id):
        with self._guard("get rule") as conn:
            row = conn.execute("SELECT * FROM rules WHERE id = ?", (rule_id,)).fetchone()
        return Rule.from_row(row) if row else None

    def list_rules(self):
        with self._guard("list rules") as conn:
            rows = conn.execute("SELECT * FROM rules ORDER BY created_at ASC").fetchall()
        return [Rule.from_row(r) for r in rows]

    def delete_rule(self, rule_id) -> bool:
        with self._guard("delete rule") as conn:
            cur = conn.execute("DELETE FROM rules WHERE id = ?", (rule_id,))
            conn.commit()
        return cur.rowcount > 0

    def find_by_metric_name(self, metric_name):
        with self._guard("find rules") as conn:
            rows = conn.execute(
                "SELECT * FROM rules WHERE metric_name = ? ORDER BY created_at ASC",
                (metric_name,)
            ).fetchall()
        return [Rule.from_row(r) for r in rows]

    def update_last_triggered(self, rule_id, timestamp) -> bool:
        """Move a rule's last_triggered forward to `timestamp`.

        Returns False if the rule no longer exists or already holds a later time.
        """
        ts = to_iso(timestamp)
        with self._guard("update last_triggered") as conn:
            cur = conn.execute("""
                UPDATE rules SET last_triggered = ?
                WHERE id = ? AND (last_triggered IS NULL OR last_triggered <= ?)
            """, (ts, rule_id, ts))
            conn.commit()
        return cur.rowcount > 0

    # --- Alert Events ---

    def append_event(self, event: Event) -> Event:
        with self._guard("append event") as conn:
            cur = conn.execute("""
                INSERT INTO alert_events
                (alert_id, metric_name, metric_value, timestamp, message, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                event.alert_id, event.metric_name, event.metric_value,
                to_iso(event.timestamp), event.message, to_iso(event.created_at),
            ))
            conn.commit()
        return event.with_id(cur.lastrowid)

    def get_events(self, metric_name=None, start=None, end=None, page=1, limit=20):
        """Return (events, total) newest first, filtered by metric and time range."""
        where = " WHERE 1=1"
        params = []
        if metric_name:
            where += " AND metric_name = ?"
            params.append(metric_name)
        if start:
            where += " AND timestamp >= ?"
            params.append(to_iso(start))
        if end:
            where += " AND timestamp <= ?"
            params.append(to_iso(end))

        offset = (max(1, page) - 1) * limit
        with self._guard("get events") as conn:
            total = conn.execute(
                "SELECT COUNT(*) AS cnt FROM alert_events" + where, params
            ).fetchone()["cnt"]
            rows = conn.execute(
                "SELECT * FROM alert_events" + where
                + " ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?",
                params + [limit, offset]
            ).fetchall()
        return [Event.from_row(r) for r in rows], total

    def get_recent_events(self, limit=50):
        events, _ = self.get_events(limit=limit)
        return events

    def count_events(self, alert_id=None):
        query = "SELECT COUNT(*) AS cnt FROM alert_events"
        params = []
        if alert_id:
            query += " WHERE alert_id = ?"
            params.append(alert_id)
        with self._guard("count events") as conn:
            return conn.execute(query, params).fetchone()["cnt"]
