import logging
import os
import sqlite3
from contextlib import contextmanager

from utils.constants import DB_FILE

logger = logging.getLogger(__name__)


class DatabaseManager:
    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or DB_FILE
        self._conn: sqlite3.Connection | None = None
        self._tx_depth = 0

    def get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            if self.db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def initialize(self):
        """Create schema and seed defaults."""
        conn = self.get_connection()
        self._create_schema(conn)
        self._migrate_schema(conn)
        self._seed_defaults(conn)
        conn.commit()

    def _migrate_schema(self, conn: sqlite3.Connection):
        """Idempotent ALTER TABLE for columns added after initial release."""
        cols = {row[1] for row in conn.execute("PRAGMA table_info(recurring_templates)").fetchall()}
        if "total_generated" not in cols:
            conn.execute(
                "ALTER TABLE recurring_templates ADD COLUMN total_generated INTEGER NOT NULL DEFAULT 0"
            )

    def _create_schema(self, conn: sqlite3.Connection):
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS recurring_templates (
                id               INTEGER PRIMARY KEY AUTOINCREMENT,
                owner_id         INTEGER NOT NULL,
                name             TEXT NOT NULL,
                description      TEXT NOT NULL DEFAULT '',
                kind             TEXT NOT NULL CHECK(kind IN ('invoice','expense')),
                client_id        INTEGER,
                concept          TEXT NOT NULL DEFAULT '',
                base_amount      REAL NOT NULL DEFAULT 0,
                vat_rate         REAL NOT NULL DEFAULT 21,
                withholding_rate REAL NOT NULL DEFAULT 0,
                frequency        TEXT NOT NULL CHECK(frequency IN
                                     ('MONTHLY','QUARTERLY','SEMIANNUAL','ANNUAL')),
                day_policy       TEXT NOT NULL,
                specific_day     INTEGER,
                start_date       TEXT NOT NULL,
                end_date         TEXT,
                is_active        INTEGER NOT NULL DEFAULT 1,
                last_generated   TEXT,
                total_generated  INTEGER NOT NULL DEFAULT 0,
                created_at       TEXT NOT NULL DEFAULT (datetime('now')),
                updated_at       TEXT NOT NULL DEFAULT (datetime('now'))
            );

            CREATE TABLE IF NOT EXISTS occurrences (
                id                 INTEGER PRIMARY KEY AUTOINCREMENT,
                owner_id           INTEGER NOT NULL,
                kind               TEXT NOT NULL CHECK(kind IN ('invoice','expense')),
                series_id          INTEGER REFERENCES recurring_templates(id) ON DELETE SET NULL,
                due_date           TEXT NOT NULL,
                client_id          INTEGER,
                concept            TEXT NOT NULL DEFAULT '',
                description        TEXT NOT NULL DEFAULT '',
                base_amount        REAL NOT NULL DEFAULT 0,
                vat_rate           REAL NOT NULL DEFAULT 0,
                vat_amount         REAL NOT NULL DEFAULT 0,
                withholding_rate   REAL NOT NULL DEFAULT 0,
                withholding_amount REAL NOT NULL DEFAULT 0,
                total              REAL NOT NULL DEFAULT 0,
                status             TEXT NOT NULL DEFAULT 'PENDIENTE',
                created_at         TEXT NOT NULL DEFAULT (datetime('now')),
                updated_at         TEXT NOT NULL DEFAULT (datetime('now')),
                UNIQUE(series_id, due_date)
            );

            CREATE INDEX IF NOT EXISTS idx_occurrences_series_id ON occurrences(series_id);
            CREATE INDEX IF NOT EXISTS idx_occurrences_due_date  ON occurrences(due_date);

            CREATE TABLE IF NOT EXISTS app_settings (
                key   TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
        """)

    def _seed_defaults(self, conn: sqlite3.Connection):
        defaults = [
            ("currency_symbol", "€"),
            ("date_format", "DD/MM/YYYY"),
        ]
        for key, value in defaults:
            conn.execute(
                "INSERT OR IGNORE INTO app_settings(key, value) VALUES (?, ?)",
                (key, value),
            )

    def get_setting(self, key: str, default: str = "") -> str:
        conn = self.get_connection()
        row = conn.execute(
            "SELECT value FROM app_settings WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else default

    def set_setting(self, key: str, value: str):
        conn = self.get_connection()
        conn.execute(
            "INSERT OR REPLACE INTO app_settings(key, value) VALUES (?, ?)",
            (key, value),
        )
        self.commit()

    def commit(self):
        """Commit now, unless a transaction() block will commit later."""
        if not self._tx_depth:
            self.get_connection().commit()

    @contextmanager
    def transaction(self):
        """Group DAO writes into one commit. Nested blocks join the outer one;
        any error rolls the whole group back."""
        conn = self.get_connection()
        self._tx_depth += 1
        try:
            yield conn
        except BaseException:
            self._tx_depth -= 1
            if not self._tx_depth:
                conn.rollback()
            raise
        self._tx_depth -= 1
        if not self._tx_depth:
            conn.commit()

    @staticmethod
    def open(db_folder: str | None = None) -> "DatabaseManager":
        """Startup factory: opens (and creates if needed) the application DB.

        db_folder: if provided, the DB file is stored in that directory instead of CWD.
        """
        if db_folder:
            os.makedirs(db_folder, exist_ok=True)
            path = os.path.join(db_folder, DB_FILE)
        else:
            path = DB_FILE
        logger.info("Opening database %s", path)
        db = DatabaseManager(path)
        db.initialize()
        return db

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None
