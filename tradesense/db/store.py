"""SQLite data store for TradeSense."""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from tradesense.db.repositories import AlertsRepository, SignalsRepository
from tradesense.errors import PersistenceError
from tradesense.models import Alert, AlertCondition, AlertHistoryEntry, TradeSignal

logger = logging.getLogger(__name__)

ALERT_COLUMNS = {
    "is_active",
    "is_triggered",
    "is_recurring",
    "expires_at",
    "notification_channels",
    "last_checked_at",
    "triggered_at",
    "triggered_value",
}

SIGNAL_COLUMNS = {
    "status",
    "exit_price",
    "exit_date",
    "return_pct",
}


def _to_db(value: Any) -> Any:
    """Convert a Python value to its SQLite column representation."""
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return json.dumps(value)
    return value


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class DataStore(AlertsRepository, SignalsRepository):
    """SQLite-based store for alerts, alert history and trade signals."""

    REQUIRED_TABLES = [
        "alerts",
        "alert_history",
        "trade_signals",
    ]

    def __init__(self, db_path: Path):
        """Initialize the data store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._ensure_db_dir()
        self._init_schema()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Run a single write statement and commit it.

        Raises:
            PersistenceError: If the statement fails.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            conn.commit()
            return cursor
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e
        finally:
            conn.close()

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        """Run a read statement and return all rows."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            return cursor.fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()

            # Alerts table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS alerts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    alert_type TEXT NOT NULL DEFAULT 'price',
                    condition TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    is_triggered INTEGER NOT NULL DEFAULT 0,
                    is_recurring INTEGER NOT NULL DEFAULT 0,
                    expires_at TEXT,
                    notification_channels TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    last_checked_at TEXT,
                    triggered_at TEXT,
                    triggered_value REAL
                )
            """)

            # Alert history table (append-only)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS alert_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    alert_id INTEGER NOT NULL,
                    user_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    alert_type TEXT NOT NULL,
                    condition TEXT NOT NULL,
                    triggered_value REAL NOT NULL,
                    message TEXT NOT NULL,
                    notification_sent_to TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL
                )
            """)

            # Trade signals table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS trade_signals (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    stock_name TEXT,
                    signal_type TEXT NOT NULL CHECK (signal_type IN ('BUY', 'SELL')),
                    entry_price REAL NOT NULL,
                    target_price REAL NOT NULL,
                    stop_loss REAL NOT NULL,
                    score REAL,
                    confidence REAL,
                    reasons TEXT NOT NULL DEFAULT '[]',
                    risk_reward REAL,
                    timeframe TEXT,
                    status TEXT NOT NULL DEFAULT 'ACTIVE' CHECK (status IN
                        ('ACTIVE', 'TARGET_HIT', 'STOP_LOSS', 'EXPIRED', 'CANCELLED')),
                    exit_price REAL,
                    exit_date TEXT,
                    return_pct REAL,
                    created_at TEXT NOT NULL,
                    expires_at TEXT
                )
            """)

            # One ACTIVE signal per user and symbol
            cursor.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_trade_signals_one_active
                ON trade_signals(user_id, symbol) WHERE status = 'ACTIVE'
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_alerts_user ON alerts(user_id, is_active)"
            )

            conn.commit()
        finally:
            conn.close()

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        rows = self._query(
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
        )
        return [row["name"] for row in rows]

    # ==================== Alerts ====================

    @staticmethod
    def _row_to_alert(row: sqlite3.Row) -> Alert:
        return Alert(
            id=row["id"],
            user_id=row["user_id"],
            symbol=row["symbol"],
            alert_type=row["alert_type"],
            condition=AlertCondition.model_validate(json.loads(row["condition"])),
            is_active=bool(row["is_active"]),
            is_triggered=bool(row["is_triggered"]),
            is_recurring=bool(row["is_recurring"]),
            expires_at=_parse_dt(row["expires_at"]),
            notification_channels=json.loads(row["notification_channels"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            last_checked_at=_parse_dt(row["last_checked_at"]),
            triggered_at=_parse_dt(row["triggered_at"]),
            triggered_value=row["triggered_value"],
        )

    def save_alert(self, alert: Alert) -> int:
        """Save an alert to the database.

        Args:
            alert: Alert to save.

        Returns:
            The ID of the saved alert.
        """
        cursor = self._execute(
            """
            INSERT INTO alerts
            (user_id, symbol, alert_type, condition, is_active, is_triggered,
             is_recurring, expires_at, notification_channels, created_at,
             last_checked_at, triggered_at, triggered_value)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                alert.user_id,
                alert.symbol,
                alert.alert_type,
                alert.condition.model_dump_json(),
                _to_db(alert.is_active),
                _to_db(alert.is_triggered),
                _to_db(alert.is_recurring),
                _to_db(alert.expires_at),
                _to_db(alert.notification_channels),
                _to_db(alert.created_at),
                _to_db(alert.last_checked_at),
                _to_db(alert.triggered_at),
                alert.triggered_value,
            ),
        )
        return cursor.lastrowid or 0

    def get_alert(self, alert_id: int) -> Optional[Alert]:
        """Get an alert by ID.

        Args:
            alert_id: Alert ID.

        Returns:
            Alert if found, None otherwise.
        """
        rows = self._query("SELECT * FROM alerts WHERE id = ?", (alert_id,))
        return self._row_to_alert(rows[0]) if rows else None

    def get_active_alerts(
        self,
        user_id: str,
        on_invalid: Optional[Callable[[int, str, Exception], None]] = None,
    ) -> list[Alert]:
        """Get a user's active, non-triggered alerts.

        Rows that fail to decode (bad JSON, an unknown indicator) are
        logged and skipped so the remaining alerts still load.

        Args:
            user_id: Owning user.
            on_invalid: Called with (alert ID, symbol, error) per bad row.

        Returns:
            List of alerts, oldest first.
        """
        rows = self._query(
            """
            SELECT * FROM alerts
            WHERE user_id = ? AND is_active = 1 AND is_triggered = 0
            ORDER BY id
            """,
            (user_id,),
        )

        alerts = []
        for row in rows:
            try:
                alerts.append(self._row_to_alert(row))
            except (ValueError, TypeError, KeyError) as e:
                logger.warning("Skipping undecodable alert %s: %s", row["id"], e)
                if on_invalid is not None:
                    on_invalid(row["id"], row["symbol"], e)
        return alerts

    def update_alert(self, alert_id: int, user_id: str, **fields: Any) -> None:
        """Update alert fields.

        Args:
            alert_id: Alert ID.
            user_id: Owning user.
            **fields: Column values to set.

        Raises:
            ValueError: If a field is not an updatable alert column.
            PersistenceError: If the write fails.
        """
        unknown = set(fields) - ALERT_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update alert columns: {sorted(unknown)}")
        if not fields:
            return

        assignments = ", ".join(f"{name} = ?" for name in fields)
        self._execute(
            f"UPDATE alerts SET {assignments} WHERE id = ? AND user_id = ?",
            tuple(_to_db(v) for v in fields.values()) + (alert_id, user_id),
        )

    # ==================== Alert History ====================

    def add_history(self, entry: AlertHistoryEntry) -> int:
        """Append a trigger record.

        Args:
            entry: History entry to store.

        Returns:
            The ID of the stored entry.
        """
        cursor = self._execute(
            """
            INSERT INTO alert_history
            (alert_id, user_id, symbol, alert_type, condition, triggered_value,
             message, notification_sent_to, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.alert_id,
                entry.user_id,
                entry.symbol,
                entry.alert_type,
                entry.condition.model_dump_json(),
                entry.triggered_value,
                entry.message,
                _to_db(entry.notification_sent_to),
                _to_db(entry.created_at),
            ),
        )
        return cursor.lastrowid or 0

    def get_history(self, user_id: str, limit: int = 50) -> list[AlertHistoryEntry]:
        """Get a user's trigger history, newest first.

        Args:
            user_id: Owning user.
            limit: Maximum entries to return.

        Returns:
            List of history entries.
        """
        rows = self._query(
            """
            SELECT * FROM alert_history
            WHERE user_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            (user_id, limit),
        )
        return [
            AlertHistoryEntry(
                id=row["id"],
                alert_id=row["alert_id"],
                user_id=row["user_id"],
                symbol=row["symbol"],
                alert_type=row["alert_type"],
                condition=AlertCondition.model_validate(json.loads(row["condition"])),
                triggered_value=row["triggered_value"],
                message=row["message"],
                notification_sent_to=json.loads(row["notification_sent_to"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    # ==================== Trade Signals ====================

    @staticmethod
    def _row_to_signal(row: sqlite3.Row) -> TradeSignal:
        return TradeSignal(
            id=row["id"],
            user_id=row["user_id"],
            symbol=row["symbol"],
            stock_name=row["stock_name"],
            signal_type=row["signal_type"],
            entry_price=row["entry_price"],
            target_price=row["target_price"],
            stop_loss=row["stop_loss"],
            score=row["score"],
            confidence=row["confidence"],
            reasons=json.loads(row["reasons"]),
            risk_reward=row["risk_reward"],
            timeframe=row["timeframe"] or "1M",
            status=row["status"],
            exit_price=row["exit_price"],
            exit_date=_parse_dt(row["exit_date"]),
            return_pct=row["return_pct"],
            created_at=datetime.fromisoformat(row["created_at"]),
            expires_at=_parse_dt(row["expires_at"]),
        )

    def insert_signal(self, signal: TradeSignal) -> TradeSignal:
        """Insert a trade signal.

        Args:
            signal: Signal to store.

        Returns:
            The stored signal with its ID.

        Raises:
            PersistenceError: If an ACTIVE signal already exists for the
                same user and symbol.
        """
        cursor = self._execute(
            """
            INSERT INTO trade_signals
            (user_id, symbol, stock_name, signal_type, entry_price, target_price,
             stop_loss, score, confidence, reasons, risk_reward, timeframe,
             status, exit_price, exit_date, return_pct, created_at, expires_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                signal.user_id,
                signal.symbol,
                signal.stock_name,
                signal.signal_type,
                signal.entry_price,
                signal.target_price,
                signal.stop_loss,
                signal.score,
                signal.confidence,
                _to_db(signal.reasons),
                signal.risk_reward,
                signal.timeframe,
                signal.status,
                signal.exit_price,
                _to_db(signal.exit_date),
                signal.return_pct,
                _to_db(signal.created_at),
                _to_db(signal.expires_at),
            ),
        )
        return signal.model_copy(update={"id": cursor.lastrowid})

    def get_signal(self, signal_id: int) -> Optional[TradeSignal]:
        """Get a signal by ID."""
        rows = self._query("SELECT * FROM trade_signals WHERE id = ?", (signal_id,))
        return self._row_to_signal(rows[0]) if rows else None

    def get_active_signal(self, user_id: str, symbol: str) -> Optional[TradeSignal]:
        """Get the ACTIVE signal for a user and symbol."""
        rows = self._query(
            """
            SELECT * FROM trade_signals
            WHERE user_id = ? AND symbol = ? AND status = 'ACTIVE'
            """,
            (user_id, symbol),
        )
        return self._row_to_signal(rows[0]) if rows else None

    def get_signals(
        self, user_id: str, status: Optional[str] = None, limit: int = 50
    ) -> list[TradeSignal]:
        """Get a user's signals, newest first.

        Args:
            user_id: Owning user.
            status: Status filter; "CLOSED" matches every non-ACTIVE status.
            limit: Maximum signals to return.

        Returns:
            List of signals.
        """
        sql = "SELECT * FROM trade_signals WHERE user_id = ?"
        params: tuple = (user_id,)
        if status == "CLOSED":
            sql += " AND status != 'ACTIVE'"
        elif status:
            sql += " AND status = ?"
            params += (status,)
        sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params += (limit,)

        return [self._row_to_signal(row) for row in self._query(sql, params)]

    def update_signal(self, signal_id: int, user_id: str, **fields: Any) -> bool:
        """Update an ACTIVE signal.

        Args:
            signal_id: Signal ID.
            user_id: Owning user.
            **fields: Column values to set.

        Returns:
            True if an ACTIVE row was updated.

        Raises:
            ValueError: If a field is not an updatable signal column.
        """
        unknown = set(fields) - SIGNAL_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update signal columns: {sorted(unknown)}")
        if not fields:
            return False

        assignments = ", ".join(f"{name} = ?" for name in fields)
        cursor = self._execute(
            f"""
            UPDATE trade_signals SET {assignments}
            WHERE id = ? AND user_id = ? AND status = 'ACTIVE'
            """,
            tuple(_to_db(v) for v in fields.values()) + (signal_id, user_id),
        )
        return cursor.rowcount > 0
