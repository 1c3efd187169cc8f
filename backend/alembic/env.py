"""
Alembic environment for the Skoolife schema.

Migrations always run with a sync driver (psycopg2 for PostgreSQL); the
URL comes from the same Settings the app uses.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from skoolife.config import get_settings
from skoolife.db.base import Base
from skoolife.db import models  # noqa: F401 - Import models to register them

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

settings = get_settings()


def get_url() -> str:
    """Sync database URL for migrations."""
    return settings.database_url_sync


def _configure_options(url: str) -> dict:
    # SQLite cannot ALTER constraints in place; batch mode recreates the table
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit migration SQL to the script output without connecting."""
    url = get_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live database."""
    url = get_url()
    connectable = create_engine(url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_options(url))

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
