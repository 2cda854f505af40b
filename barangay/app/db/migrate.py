"""
Database migration utilities.

Uses Alembic as the authoritative schema manager.  The runtime chain store
talks to SQLite through the standard sqlite3 driver; Alembic (via
SQLAlchemy) owns table creation so the schema lives in exactly one place.

DB path resolution:
  1. DATABASE_URL env var      (sqlite:/// URL; migrations and runtime)
  2. BARANGAY_DB_PATH env var  (SQLite file path)
  3. Default: /tmp/barangay_audit.db (SQLite)

The runtime store is SQLite only, so a non-SQLite DATABASE_URL is rejected
rather than migrating a database the store never reads.
"""

import logging
import os
import sqlite3
import stat
from pathlib import Path
from typing import Optional

from sqlalchemy.engine import make_url

logger = logging.getLogger(__name__)


def _sqlite_path_from_url(database_url: str) -> Optional[Path]:
    """File path of a sqlite:/// URL, or None for any other backend."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database:
        return None
    return Path(url.database)


def get_db_path() -> Path:
    """
    Get the path to the SQLite database file.

    Returns the file named by a sqlite DATABASE_URL, else the path from
    BARANGAY_DB_PATH, else /tmp/barangay_audit.db.
    """
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        url_path = _sqlite_path_from_url(database_url)
        if url_path is not None:
            return url_path

    db_path_env = os.getenv("BARANGAY_DB_PATH")
    if db_path_env:
        return Path(db_path_env)

    # Default to /tmp so the DB is never written inside the source tree.
    return Path("/tmp/barangay_audit.db")


def get_database_url() -> str:
    """
    Return the SQLAlchemy database URL for Alembic.

    Always the same SQLite file the runtime store opens.

    Raises:
        ValueError: If DATABASE_URL names a non-SQLite database
    """
    database_url = os.getenv("DATABASE_URL")
    if database_url and _sqlite_path_from_url(database_url) is None:
        raise ValueError(
            "DATABASE_URL must be a sqlite:/// URL; the audit chain store is SQLite only"
        )

    return f"sqlite:///{get_db_path()}"


def ensure_db_permissions_secure(db_path: Path):
    """
    Ensure database file has secure permissions (0600, owner only).

    Raises:
        PermissionError: If unable to set secure permissions
    """
    if not db_path.exists():
        return

    try:
        os.chmod(db_path, stat.S_IRUSR | stat.S_IWUSR)
    except OSError as e:
        raise PermissionError(f"Failed to set secure permissions on database: {e}")


def enable_wal_mode(conn: sqlite3.Connection):
    """
    Enable Write-Ahead Logging (WAL) mode.

    WAL lets the verifier read while an append holds the write lock.
    """
    conn.execute("PRAGMA journal_mode=WAL")
    conn.commit()


def ensure_schema():
    """
    Ensure the database schema is at the latest Alembic revision.

    Runs ``alembic upgrade head`` programmatically against the file the
    runtime store opens, then applies WAL mode and secure file permissions.

    Idempotent - safe to call multiple times.
    """
    database_url = get_database_url()

    # __file__ is barangay/app/db/migrate.py -> repo root is 3 levels up.
    repo_root = Path(__file__).parent.parent.parent.parent
    alembic_ini = repo_root / "alembic.ini"

    from alembic.config import Config
    from alembic import command as alembic_command

    alembic_cfg = Config(str(alembic_ini))
    alembic_cfg.set_main_option("script_location", str(repo_root / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    alembic_cfg.attributes["configure_logger"] = False

    alembic_command.upgrade(alembic_cfg, "head")

    db_path = get_db_path()
    conn = sqlite3.connect(db_path)
    try:
        enable_wal_mode(conn)
    finally:
        conn.close()
    ensure_db_permissions_secure(db_path)

    logger.debug("Audit schema at head for %s", db_path)


def get_connection() -> sqlite3.Connection:
    """
    Get a SQLite database connection.

    Returns:
        SQLite connection with Row factory enabled and autocommit-style
        transaction control (isolation_level=None), so callers issue
        BEGIN IMMEDIATE explicitly around read-then-write units.
    """
    db_path = get_db_path()
    conn = sqlite3.connect(db_path, timeout=30, isolation_level=None)
    conn.row_factory = sqlite3.Row
    return conn


def check_db_security() -> dict:
    """
    Check database security configuration.

    Returns:
        Dictionary with security check results
    """
    db_path = get_db_path()

    results = {
        "db_exists": db_path.exists(),
        "permissions_secure": False,
        "wal_enabled": False,
    }

    if not db_path.exists():
        return results

    try:
        mode = stat.S_IMODE(os.stat(db_path).st_mode)
        results["permissions_secure"] = (mode & (stat.S_IRGRP | stat.S_IROTH)) == 0
    except OSError as e:
        logger.warning("Could not stat database file: %s", e)

    try:
        conn = get_connection()
        try:
            journal_mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
            results["wal_enabled"] = journal_mode.upper() == "WAL"
        finally:
            conn.close()
    except sqlite3.Error as e:
        logger.warning("Could not read journal mode: %s", e)

    return results
