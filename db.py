# db.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config import DB_ECHO


def make_async_url(url: str) -> str:
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def make_engine(url: str, **options: Any) -> AsyncEngine:
    """
    Пул з'єднань для одного URL.
    options йдуть прямо в create_async_engine (pool_size, max_overflow, ...).
    """
    if not url:
        raise RuntimeError("DATABASE_URL is not set")

    options.setdefault("echo", DB_ECHO)
    options.setdefault("pool_pre_ping", True)
    return create_async_engine(make_async_url(url), **options)


def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


class Base(DeclarativeBase):
    pass


@asynccontextmanager
async def session_scope(sessions: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """
    Єдиний правильний спосіб працювати з AsyncSession:
    - yield session
    - commit якщо все ок
    - rollback якщо помилка
    """
    async with sessions() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
