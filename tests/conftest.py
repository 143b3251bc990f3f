"""
Спільні фікстури для тестів сховища.

Сховище працює з тимчасовим SQLite файлом через aiosqlite; модель і upsert
ті самі, що й на Postgres.
"""

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from db import session_scope
from models import KVStore
from store import KeyValueStore


@pytest.fixture
def db_url(tmp_path):
    """URL порожньої SQLite бази."""
    return f"sqlite+aiosqlite:///{tmp_path / 'store.db'}"


@pytest.fixture
def unreachable_url(tmp_path):
    """URL у неіснуючу папку: кожне підключення падає."""
    return f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'store.db'}"


@pytest_asyncio.fixture
async def store(db_url):
    """Ініціалізоване сховище над порожньою таблицею."""
    s = KeyValueStore(db_url, retry_delay=0)
    await s.initialize()
    yield s
    await s.close()


async def fetch_rows(store: KeyValueStore) -> dict:
    """Читає таблицю напряму, повз дзеркало."""
    async with session_scope(store.sessions) as session:
        result = await session.execute(select(KVStore.key, KVStore.value))
        return {key: value for key, value in result.all()}


async def count_rows(store: KeyValueStore, key: str) -> int:
    async with session_scope(store.sessions) as session:
        return await session.scalar(
            select(func.count()).select_from(KVStore).where(KVStore.key == key)
        )
