"""Alembic environment — barkrep reputation tables, URL from DATABASE_URL."""

from __future__ import annotations

import os
from logging.config import fileConfig

from dotenv import load_dotenv
from sqlalchemy.engine import make_url

from alembic import context

# DATABASE_URL usually lives in .env next to alembic.ini
load_dotenv()

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from barkrep.database.engine import create_db_engine  # noqa: E402
from barkrep.database.models import Base  # noqa: E402

DB_URL = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
if not DB_URL:
    raise RuntimeError(
        "DATABASE_URL is not set.  "
        "Copy .env.example → .env before running alembic."
    )


def _migration_options() -> dict[str, object]:
    # SQLite cannot ALTER most columns in place
    return {
        "target_metadata": Base.metadata,
        "compare_type": True,
        "render_as_batch": make_url(DB_URL).get_backend_name() == "sqlite",
    }


def migrate_offline() -> None:
    """Write the reputation schema DDL as SQL instead of executing it."""
    context.configure(
        url=DB_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_migration_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def migrate_online() -> None:
    """Upgrade the live database through barkrep's own engine factory."""
    engine = create_db_engine(DB_URL)
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, **_migration_options())
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    migrate_offline()
else:
    migrate_online()
