"""
Pytest configuration for the audit chain tests.

Environment variables are set at module level (not in pytest_configure)
because they must be in place before any barangay module is imported
during collection: rate limiting is disabled in test mode.
"""

import os

os.environ["ENV"] = "TEST"
os.environ["DISABLE_RATE_LIMITS"] = "1"
os.environ.pop("DATABASE_URL", None)
os.environ.pop("AUDIT_STRICT_MODE", None)

import shutil
import sqlite3
import tempfile
from pathlib import Path

import pytest


@pytest.fixture(scope="function")
def test_db():
    """Create a temporary migrated database and point the app at it."""
    import barangay.app.db.migrate as migrate_module

    original_get_db_path = migrate_module.get_db_path

    temp_dir = tempfile.mkdtemp()
    temp_db_path = Path(temp_dir) / "audit.db"

    migrate_module.get_db_path = lambda: temp_db_path
    migrate_module.ensure_schema()

    yield temp_db_path

    migrate_module.get_db_path = original_get_db_path
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def store(test_db):
    from barangay.app.db.chain_store import ChainStore

    return ChainStore()


@pytest.fixture
def service(store):
    from barangay.app.services.audit_log import AuditLogService

    return AuditLogService(store=store, strict=False, max_retries=5)


@pytest.fixture
def raw_db(test_db):
    """Direct sqlite3 connection for simulating out-of-band edits."""
    conn = sqlite3.connect(test_db)
    conn.row_factory = sqlite3.Row
    yield conn
    conn.close()
