from logging.config import fileConfig
import os

from sqlalchemy import engine_from_config
from sqlalchemy import pool

from alembic import context

# Importing the models registers every inspection table on Base.metadata
from VistoriaAPI.database import Base, load_environment, normalize_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _migration_url() -> str:
    """DATABASE_URL wins over alembic.ini; dynos are forced onto SSL."""
    load_environment()
    url = (os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url", "")).strip()
    # alembic.ini ships a bare "driver://" placeholder
    if not url or url.endswith("://"):
        raise RuntimeError(
            "No database URL configured: export DATABASE_URL or fill sqlalchemy.url in alembic.ini"
        )
    url = normalize_url(url, driver="postgresql+psycopg2")
    if os.getenv("DYNO") and "sslmode=" not in url:
        url += ("&" if "?" in url else "?") + "sslmode=require"
    return url


def run_migrations_offline() -> None:
    """Emit SQL for the migrations without a live connection."""
    context.configure(
        url=_migration_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against the configured database."""
    section = dict(config.get_section(config.config_ini_section) or {})
    section["sqlalchemy.url"] = _migration_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        # batch mode keeps ALTERs working on SQLite
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
