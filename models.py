from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from db import Base

TABLE_NAME = "data"


class KVStore(Base):
    __tablename__ = TABLE_NAME

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    # JSONB на Postgres, звичайний JSON деінде (sqlite у тестах)
    value: Mapped[Any] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(), server_default=func.now())
