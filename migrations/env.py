from __future__ import annotations

import asyncio
from logging.config import fileConfig
from typing import Any, Dict

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from hotspot_billing.core.config import settings
from hotspot_billing.models import Base

config = context.config

# Migrations run on psycopg v3 (async capable) whatever driver the app URL names
_PG_PREFIXES = ("postgresql+asyncpg://", "postgresql+psycopg2://", "postgresql://", "postgres://")


def _migration_url() -> str:
	url = settings.DATABASE_URL
	if not url:
		raise RuntimeError("DATABASE_URL is not configured; cannot migrate the billing schema.")
	for prefix in _PG_PREFIXES:
		if url.startswith(prefix):
			return "postgresql+psycopg://" + url[len(prefix):]
	if url.startswith("sqlite://") and not url.startswith("sqlite+aiosqlite://"):
		return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
	return url


if config.config_file_name is not None:
	fileConfig(config.config_file_name)

target_metadata = Base.metadata
database_url = _migration_url()
config.set_main_option("sqlalchemy.url", database_url)

# SQLite cannot ALTER most columns in place
_batch = database_url.startswith("sqlite")


def run_migrations_offline() -> None:
	context.configure(
		url=database_url,
		target_metadata=target_metadata,
		literal_binds=True,
		dialect_opts={"paramstyle": "named"},
		compare_type=True,
		render_as_batch=_batch,
	)
	with context.begin_transaction():
		context.run_migrations()


def _migrate(connection: Connection) -> None:
	context.configure(
		connection=connection,
		target_metadata=target_metadata,
		compare_type=True,
		render_as_batch=_batch,
	)
	with context.begin_transaction():
		context.run_migrations()


async def run_migrations_online() -> None:
	section: Dict[str, Any] = config.get_section(config.config_ini_section, {})
	section["sqlalchemy.url"] = database_url
	engine = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
	try:
		async with engine.connect() as connection:
			await connection.run_sync(_migrate)
	finally:
		await engine.dispose()


if context.is_offline_mode():
	run_migrations_offline()
else:
	asyncio.run(run_migrations_online())
