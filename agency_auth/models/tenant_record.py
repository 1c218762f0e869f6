"""Stored credential row, one per tenant key.

Column names match the table the install service has always used:

    CREATE TABLE IF NOT EXISTS auth_db (
      locationid TEXT PRIMARY KEY,
      raw_token  JSONB NOT NULL
    );

``version`` is bumped on every write so merges can compare-and-swap.
"""

from __future__ import annotations

from sqlalchemy import JSON, Integer, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class TenantRecord(TimestampMixin, Base):
    __tablename__ = "auth_db"

    locationid: Mapped[str] = mapped_column(Text, primary_key=True)
    raw_token: Mapped[dict] = mapped_column(JSON().with_variant(JSONB(), "postgresql"))
    version: Mapped[int] = mapped_column(Integer, default=1, server_default="1")

    def __repr__(self) -> str:
        return f"<TenantRecord {self.locationid!r} v{self.version}>"
