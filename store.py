# store.py
"""
Key-value сховище в Postgres з копією в пам'яті.

На старті всі рядки таблиці ``data`` читаються в ``KeyValueStore.data``;
читання йде з цього dict, запис спершу в базу, а в dict потрапляє
тільки після commit.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from config import DB_CONNECT_DELAY, DB_CONNECT_RETRIES
from db import make_engine, make_sessionmaker, session_scope
from errors import (
    ConnectionExhaustedError,
    InvalidArgumentError,
    SchemaError,
    StoreClosedError,
)
from init_db import init_db
from models import KVStore

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACES: Tuple[str, ...] = ("users", "chats", "stats", "msgs", "sticker", "settings")


class ConnectionState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    RETRYING = "retrying"
    CONNECTED = "connected"
    FAILED = "failed"
    CLOSED = "closed"


def _insert_for(dialect_name: str):
    if dialect_name == "sqlite":
        return sqlite.insert
    return postgresql.insert


class KeyValueStore:
    """
    Одна таблиця + dict-дзеркало.

    Дзеркало повністю замінює тільки ``load()``; ``write()`` і ``update()``
    доливають у нього ключі після commit. Lock не дає load і запису
    перемішатися.
    """

    def __init__(
        self,
        url: str,
        options: Optional[Mapping[str, Any]] = None,
        *,
        retries: int = DB_CONNECT_RETRIES,
        retry_delay: float = DB_CONNECT_DELAY,
        defaults: Tuple[str, ...] = DEFAULT_NAMESPACES,
    ):
        self.url = url
        self.options = dict(options or {})
        self.retries = retries
        self.retry_delay = retry_delay
        self.defaults = tuple(defaults)

        self.engine = make_engine(url, **self.options)
        self.sessions = make_sessionmaker(self.engine)

        self.data: Dict[str, Any] = self._default_data()
        self.state = ConnectionState.IDLE
        self.attempts = 0
        self.ready = False

        self._lock = asyncio.Lock()
        self._loading: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "KeyValueStore":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _default_data(self) -> Dict[str, Any]:
        return {name: {} for name in self.defaults}

    def _ensure_open(self) -> None:
        if self.state is ConnectionState.CLOSED:
            raise StoreClosedError()

    # ===================== LIFECYCLE =====================

    async def initialize(self) -> None:
        self._ensure_open()
        self.ready = False

        await self.connect_with_retry()

        try:
            await init_db(self.engine)
        except SQLAlchemyError as e:
            logger.error("Failed to ensure table %s: %s", KVStore.__tablename__, e)
            raise SchemaError(str(e)) from e
        logger.info("Table %s ensured", KVStore.__tablename__)

        await self.load()
        self.ready = True

    async def connect_with_retry(self) -> None:
        """
        Беремо одне з'єднання з пулу, між спробами фіксована пауза.

        Після ``retries`` невдалих спроб кидає ConnectionExhaustedError.
        """
        self._ensure_open()
        self.attempts = 0
        self.state = ConnectionState.CONNECTING

        while True:
            self.attempts += 1
            try:
                async with self.engine.connect():
                    pass
            except Exception as e:
                # драйвер може кинути що завгодно (TimeoutError від asyncpg і т.п.)
                left = self.retries - self.attempts
                logger.warning("Database connection failed, retries left: %d (%s)", left, e)
                if left <= 0:
                    self.state = ConnectionState.FAILED
                    raise ConnectionExhaustedError(self.attempts, str(e)) from e
                self.state = ConnectionState.RETRYING
                await asyncio.sleep(self.retry_delay)
                self.state = ConnectionState.CONNECTING
                continue

            self.state = ConnectionState.CONNECTED
            logger.info("Database connected after %d attempt(s)", self.attempts)
            return

    async def close(self) -> None:
        if self.state is ConnectionState.CLOSED:
            return

        self.ready = False
        self.state = ConnectionState.CLOSED
        try:
            await self.engine.dispose()
        except Exception as e:
            logger.error("Error closing database pool: %s", e)
            return
        logger.info("Database pool closed")

    # ===================== READ =====================

    async def load(self) -> Dict[str, Any]:
        """
        Перечитує всю таблицю в дзеркало і повертає його.

        Паралельні виклики чекають на один і той самий load.
        """
        self._ensure_open()
        if self._loading is None:
            self._loading = asyncio.create_task(self._load())
        return await asyncio.shield(self._loading)

    read = load

    async def _load(self) -> Dict[str, Any]:
        try:
            async with self._lock:
                rows = await self._scan()
                data = self._default_data()
                data.update(rows)
                self.data = data
        except SQLAlchemyError as e:
            logger.error("Error reading data: %s", e)
            raise
        finally:
            self._loading = None

        logger.info("Loaded %d key(s) from database", len(rows))
        logger.debug("Mirror keys: %s", sorted(self.data))
        return self.data

    async def _scan(self) -> Dict[str, Any]:
        async with session_scope(self.sessions) as session:
            result = await session.execute(select(KVStore.key, KVStore.value))
            return {key: value for key, value in result.all()}

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    # ===================== WRITE =====================

    async def write(self, entries: Mapping[str, Any]) -> bool:
        """
        Upsert кожної пари з ``entries``, окремий statement на ключ.

        Ключі до помилки лишаються в базі; дзеркало оновлюється тільки
        якщо весь batch пройшов.
        """
        if not isinstance(entries, Mapping) or not entries:
            raise InvalidArgumentError("Invalid data. Must be a non-empty mapping.")
        for key in entries:
            if not isinstance(key, str) or not key:
                raise InvalidArgumentError("Keys must be non-empty strings.", details=repr(key))
        self._ensure_open()

        batch = dict(entries)
        async with self._lock:
            try:
                for key, value in batch.items():
                    await self._upsert(key, value)
            except SQLAlchemyError as e:
                logger.error("Error writing key %r: %s", key, e)
                raise

            self.data.update(batch)

        logger.info("Saved %d key(s): %s", len(batch), ", ".join(batch))
        return True

    async def update(self, key: str, value: Any) -> bool:
        if not isinstance(key, str) or not key:
            raise InvalidArgumentError("Key is required to update data.")
        return await self.write({key: value})

    async def _upsert(self, key: str, value: Any) -> None:
        insert = _insert_for(self.engine.dialect.name)
        stmt = insert(KVStore).values(key=key, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=[KVStore.key],
            set_={"value": stmt.excluded["value"], "created_at": func.now()},
        )
        async with session_scope(self.sessions) as session:
            await session.execute(stmt)
