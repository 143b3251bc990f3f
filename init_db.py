# init_db.py
from sqlalchemy.ext.asyncio import AsyncEngine

from db import Base
import models  # noqa: F401  важливо: щоб моделі підвантажились


async def init_db(engine: AsyncEngine) -> None:
    # create_all перевіряє наявність таблиці, тому повторний виклик безпечний
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
