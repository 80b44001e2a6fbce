import logging
import shutil
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace
from typing import Iterator, Optional

from infrastructure.database.ops.content import ContentOperations
from signage.domain.exceptions import StorageError

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"


class SQLiteDatabaseHandler(ContentOperations):
    """Thread-safe SQLite handler.

    File databases get one connection per thread. An in-memory database is a
    single shared connection, since every new connection would open an empty
    database of its own.
    """

    def __init__(self, database_path: str) -> None:
        self._database_path = database_path
        self._in_memory = database_path == MEMORY_DATABASE
        self._local = SimpleNamespace() if self._in_memory else threading.local()

        if not self._in_memory:
            # Ensure the directory for the database file exists
            db_path = Path(database_path)
            if not db_path.parent.exists():
                db_path.parent.mkdir(parents=True, exist_ok=True)
                logger.info("Created database directory: %s", db_path.parent)

    @property
    def database_path(self) -> str:
        return self._database_path

    # --- Lifecycle ------------------------------------------------------------
    def init(self) -> None:
        self.create_tables()

    def get_db(self) -> sqlite3.Connection:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is None:
            try:
                connection = self._open_connection()
            except sqlite3.DatabaseError as exc:
                if self._is_corruption_error(exc):
                    logger.error("Database appears corrupt (%s). Recreating a fresh database.", exc)
                    self._quarantine_corrupt_db()
                    connection = self._open_connection()
                else:
                    raise StorageError(f"Cannot open database: {exc}", detail={"path": self._database_path}) from exc
            self._local.connection = connection
            self._local.depth = 0
        return connection

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._database_path, check_same_thread=False)
        try:
            connection.row_factory = sqlite3.Row
            self._configure_connection(connection)
            return connection
        except Exception:
            connection.close()
            raise

    def _is_corruption_error(self, exc: sqlite3.Error) -> bool:
        message = str(exc).lower()
        return (
            "database disk image is malformed" in message
            or "file is not a database" in message
            or "file is encrypted or is not a database" in message
            or "malformed" in message
        )

    def _quarantine_corrupt_db(self) -> Optional[Path]:
        if self._in_memory:
            return None
        db_path = Path(self._database_path)
        if not db_path.exists():
            return None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        quarantine_dir = db_path.parent / "corrupt"
        quarantine_dir.mkdir(parents=True, exist_ok=True)

        suffix = db_path.suffix or ".db"
        quarantined = quarantine_dir / f"{db_path.stem}_corrupt_{timestamp}{suffix}"
        try:
            shutil.move(str(db_path), str(quarantined))
            for sidecar_suffix in ("-wal", "-shm"):
                sidecar = Path(f"{db_path}{sidecar_suffix}")
                if sidecar.exists():
                    sidecar_target = quarantine_dir / f"{sidecar.name}_{timestamp}"
                    shutil.move(str(sidecar), str(sidecar_target))
            logger.warning("Quarantined corrupt database to %s", quarantined)
            return quarantined
        except OSError as exc:
            logger.error("Failed to quarantine corrupt database %s: %s", db_path, exc)
            return None

    def _configure_connection(self, connection: sqlite3.Connection) -> None:
        """Configure the SQLite connection.

        - WAL mode: concurrent readers alongside the sweep writer
        - NORMAL synchronous: still safe with WAL
        - foreign_keys: windows and targets cascade with their item
        """
        connection.execute("PRAGMA journal_mode=WAL")
        connection.execute("PRAGMA synchronous=NORMAL")
        connection.execute("PRAGMA temp_store=MEMORY")
        connection.execute("PRAGMA foreign_keys=ON")
        connection.commit()

    def close_db(self, _e: Optional[BaseException] = None) -> None:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            delattr(self._local, "connection")
            self._local.depth = 0

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.get_db()
        try:
            yield conn
        finally:
            self._commit()

    # --- Transactions ----------------------------------------------------------
    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, "depth", 0) > 0

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Group writes; only the outermost scope commits or rolls back."""
        conn = self.get_db()
        self._local.depth += 1
        try:
            yield conn
        except BaseException:
            self._local.depth -= 1
            if self._local.depth == 0:
                conn.rollback()
                logger.debug("Transaction rolled back")
            raise
        else:
            self._local.depth -= 1
            if self._local.depth == 0:
                try:
                    conn.commit()
                except sqlite3.Error as exc:
                    conn.rollback()
                    raise StorageError(f"Commit failed: {exc}") from exc

    def _commit(self) -> None:
        """Commit unless an enclosing transaction() owns the commit."""
        if not self.in_transaction:
            self.get_db().commit()

    # --- Schema ----------------------------------------------------------------
    def create_tables(self) -> None:
        """Creates the necessary tables in the database if they do not already exist."""
        try:
            with self.connection() as db:
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS ContentItems (
                        item_id INTEGER PRIMARY KEY AUTOINCREMENT,
                        title TEXT NOT NULL,
                        description TEXT,
                        content_kind TEXT NOT NULL,
                        content TEXT,
                        image_urls TEXT NOT NULL DEFAULT '[]',
                        video_urls TEXT NOT NULL DEFAULT '[]',
                        active BOOLEAN NOT NULL DEFAULT 1,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS ContentItemDevices (
                        item_id INTEGER NOT NULL,
                        device_id TEXT NOT NULL,
                        PRIMARY KEY (item_id, device_id),
                        FOREIGN KEY (item_id) REFERENCES ContentItems(item_id) ON DELETE CASCADE
                    )
                    """
                )
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS ContentWindows (
                        window_id INTEGER PRIMARY KEY AUTOINCREMENT,
                        item_id INTEGER NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        active BOOLEAN NOT NULL DEFAULT 1,
                        suppressed_item_ids TEXT NOT NULL DEFAULT '[]',
                        FOREIGN KEY (item_id) REFERENCES ContentItems(item_id) ON DELETE CASCADE
                    )
                    """
                )
                # One row per (paused window, window that paused it)
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS ContentWindowPauses (
                        window_id INTEGER NOT NULL,
                        paused_by INTEGER NOT NULL,
                        PRIMARY KEY (window_id, paused_by),
                        FOREIGN KEY (window_id) REFERENCES ContentWindows(window_id) ON DELETE CASCADE
                    )
                    """
                )
                db.execute("CREATE INDEX IF NOT EXISTS idx_content_devices_device ON ContentItemDevices(device_id)")
                db.execute("CREATE INDEX IF NOT EXISTS idx_content_windows_item ON ContentWindows(item_id)")
                db.execute(
                    "CREATE INDEX IF NOT EXISTS idx_content_windows_active_end ON ContentWindows(active, end_time)"
                )
                db.execute("CREATE INDEX IF NOT EXISTS idx_content_window_pauses_by ON ContentWindowPauses(paused_by)")
            logger.info("Content tables ready (%s)", self._database_path)
        except sqlite3.Error as exc:
            logger.error("Error creating tables: %s", exc)
            raise StorageError(f"Error creating tables: {exc}") from exc
