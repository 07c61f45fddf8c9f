from __future__ import annotations

from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from hotspot_billing.core.config import settings

_engine: Optional[AsyncEngine] = None
_SessionLocal: Optional[async_sessionmaker[AsyncSession]] = None


# Scheme prefixes providers hand out, mapped to the async driver the app runs on
_ASYNC_SCHEMES = (
	("postgres://", "postgresql+asyncpg://"),
	("postgresql://", "postgresql+asyncpg://"),
	("postgresql+psycopg2://", "postgresql+asyncpg://"),
	("postgresql+psycopg://", "postgresql+asyncpg://"),
	("sqlite://", "sqlite+aiosqlite://"),
)


def _ensure_async_url(url: str) -> str:
	"""Rewrite a database URL to use asyncpg (PostgreSQL) or aiosqlite (SQLite).

	URLs that already name one of those drivers are returned unchanged.
	"""
	for prefix, async_prefix in _ASYNC_SCHEMES:
		if url.startswith(prefix):
			return async_prefix + url[len(prefix):]
	return url


def init_engine_and_session() -> None:
	global _engine, _SessionLocal
	if _engine is not None:
		return
	if not settings.DATABASE_URL:
		raise RuntimeError("DATABASE_URL is not configured. Set it in the environment or .env file.")
	database_url = _ensure_async_url(settings.DATABASE_URL)
	_engine = create_async_engine(database_url, pool_pre_ping=True, future=True)
	_SessionLocal = async_sessionmaker(bind=_engine, expire_on_commit=False)


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
	"""Session factory for code running outside a request (background jobs)."""
	if _SessionLocal is None:
		init_engine_and_session()
	assert _SessionLocal is not None
	return _SessionLocal


async def dispose_engine() -> None:
	global _engine, _SessionLocal
	if _engine is not None:
		await _engine.dispose()
	_engine = None
	_SessionLocal = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
	async with get_sessionmaker()() as session:
		yield session
