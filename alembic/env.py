"""Alembic environment configuration."""
from __future__ import annotations

import os
import sys
from logging.config import fileConfig
from pathlib import Path

# Make the project root importable when alembic runs from elsewhere.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from alembic import context
from sqlalchemy import engine_from_config, pool

from freightpay.config import get_settings
from freightpay.models import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def get_url() -> str:
    # An explicit DATABASE_URL wins over the application settings.
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url
    return get_settings().database_url


target_metadata = Base.metadata


def _configure_common_kwargs() -> dict:
    """Options shared by offline and online runs (no literal_binds)."""
    return dict(
        target_metadata=target_metadata,
        render_as_batch=True,  # SQLite needs batch mode for ALTER TABLE
        compare_type=True,
        compare_server_default=True,
        dialect_opts={"paramstyle": "named"},
    )


def run_migrations_offline() -> None:
    context.configure(
        url=get_url(),
        **_configure_common_kwargs(),
        literal_binds=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    configuration = config.get_section(config.config_ini_section, {}) or {}
    configuration["sqlalchemy.url"] = get_url()

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            **_configure_common_kwargs(),
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
