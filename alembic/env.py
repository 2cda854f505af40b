"""
Alembic migration environment for the barangay audit chain.

DATABASE_URL takes precedence; otherwise BARANGAY_DB_PATH is used as a
SQLite file path, then /tmp/barangay_audit.db.
"""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

config = context.config

# ensure_schema() runs inside the app and leaves its logging setup alone.
if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def _get_database_url() -> str:
    """Resolve database URL from Alembic config or environment.

    Priority:
    1. sqlalchemy.url already set in the Alembic Config object
       (injected programmatically by ensure_schema())
    2. DATABASE_URL environment variable
    3. BARANGAY_DB_PATH environment variable (SQLite file path)
    4. Default /tmp/barangay_audit.db (SQLite)
    """
    configured_url = config.get_main_option("sqlalchemy.url")
    if configured_url:
        return configured_url

    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    db_path = os.getenv("BARANGAY_DB_PATH")
    if db_path:
        return f"sqlite:///{db_path}"

    return "sqlite:////tmp/barangay_audit.db"


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (emit SQL without a live connection)."""
    url = _get_database_url()
    context.configure(
        url=url,
        target_metadata=None,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode (with a live DB connection)."""
    url = _get_database_url()

    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    connectable = create_engine(
        url,
        poolclass=pool.NullPool,
        connect_args=connect_args,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=None,
            render_as_batch=url.startswith("sqlite"),
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
