"""
SQLite Database Connection and Schema Management.
"""
import sqlite3
import logging
from pathlib import Path
from threading import Lock
from typing import Optional, Union
from contextlib import contextmanager

logger = logging.getLogger(__name__)

_connection_lock = Lock()
_connection: Optional[sqlite3.Connection] = None


def get_database_path() -> Path:
    """Get database path from configuration."""
    from ..config import config
    return config.paths.database_path


def connect(db_path: Union[str, Path]) -> sqlite3.Connection:
    """Open a connection with the pragmas and schema this app expects."""
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(
        str(db_path),
        check_same_thread=False,
        isolation_level=None,
    )
    conn.row_factory = sqlite3.Row

    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute("PRAGMA busy_timeout=5000")

    init_schema(conn)
    return conn


def get_connection() -> sqlite3.Connection:
    """
    Get or create SQLite connection.
    Thread-safe singleton pattern.
    """
    global _connection

    with _connection_lock:
        if _connection is None:
            db_path = get_database_path()
            _connection = connect(db_path)
            logger.info(f"SQLite connection established: {db_path}")

        return _connection


@contextmanager
def transaction(conn: Optional[sqlite3.Connection] = None):
    """
    Context manager for database transactions.
    Auto-commits on success, rolls back on exception.
    """
    conn = conn or get_connection()

    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
        conn.execute("COMMIT")
    except Exception:
        conn.execute("ROLLBACK")
        raise


def init_schema(conn: sqlite3.Connection) -> None:
    """
    Initialize database schema.
    Creates tables if they don't exist.
    """
    conn.executescript("""
        -- Stories: indexed columns plus the full record as JSON
        CREATE TABLE IF NOT EXISTS stories (
            story_id TEXT PRIMARY KEY,
            title TEXT NOT NULL DEFAULT 'Untitled',
            stage TEXT NOT NULL DEFAULT 'uploaded',
            progress_percent INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            payload_json TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_stories_created_at
            ON stories(created_at DESC);
        CREATE INDEX IF NOT EXISTS idx_stories_stage
            ON stories(stage);
    """)

    logger.debug("Database schema initialized")


def close_connection() -> None:
    """Close database connection."""
    global _connection

    with _connection_lock:
        if _connection is not None:
            _connection.close()
            _connection = None
            logger.info("SQLite connection closed")
