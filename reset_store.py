# reset_store.py
"""
Скидає namespaces у таблиці data до порожніх {}.

    python reset_store.py              # усі дефолтні namespaces
    python reset_store.py users stats  # тільки вказані
"""
import asyncio
import logging
import sys
from typing import List, Optional

from config import DATABASE_URL, LOG_LEVEL
from store import DEFAULT_NAMESPACES, KeyValueStore

logger = logging.getLogger("reset_store")


async def reset(names: List[str]) -> None:
    async with KeyValueStore(DATABASE_URL) as store:
        # 1) що зараз у базі
        for name in names:
            value = store.get(name)
            size = len(value) if isinstance(value, (dict, list)) else 0
            logger.info("%s: %d entries before reset", name, size)

        # 2) записуємо порожні значення
        await store.write({name: {} for name in names})

        # 3) контрольна перевірка з бази, не з пам'яті
        data = await store.load()
        left = [name for name in names if data.get(name)]
        if left:
            logger.error("Reset did not stick for: %s", ", ".join(left))
        else:
            logger.info("Done. Reset: %s", ", ".join(names))


def main(argv: Optional[List[str]] = None) -> None:
    if argv is None:
        argv = sys.argv[1:]
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    names = argv or list(DEFAULT_NAMESPACES)
    asyncio.run(reset(names))


if __name__ == "__main__":
    main()
