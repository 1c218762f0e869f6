"""Credential store - durable tenant key -> credential bundle mapping.

Writes are upserts. ``put`` replaces the stored bundle wholesale, so two
flows that each ``get`` then ``put`` the same key race and the last writer
wins. Merges that must not lose data go through ``update``, which retries a
version compare-and-swap instead.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, Callable

from sqlalchemy import func, select, text, update as sql_update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from ..credentials import CredentialBundle
from ..database import build_engine, build_session_factory
from ..errors import MergeConflictError, StorageError
from ..models import Base, TenantRecord
from ..tenant import TenantKey

logger = logging.getLogger(__name__)


@dataclass
class StoredCredential:
    """A tenant record as read back from the store."""

    key: TenantKey
    bundle: CredentialBundle
    version: int
    updated_at: datetime | None = None


class CredentialStore:
    """Handle over the ``auth_db`` table.

    Usage:
        store = CredentialStore.open("postgresql+asyncpg://...")
        await store.create_schema()

        await store.put(TenantKey.agency(), bundle)
        agency = await store.get(TenantKey.agency())

        await store.close()
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory = build_session_factory(engine)

    @classmethod
    def open(cls, database_url: str, echo: bool = False) -> "CredentialStore":
        return cls(build_engine(database_url, echo=echo))

    async def create_schema(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Could not create credential table: {e}") from e

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Credential store unavailable: {e}") from e

    def _insert(self):
        dialect = self.engine.dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise StorageError(f"Unsupported database dialect for upsert: {dialect}")
        return insert(TenantRecord)

    # Reads

    async def get_record(self, key: TenantKey) -> StoredCredential | None:
        async with self._session() as session:
            row = await session.get(TenantRecord, key.storage_key, populate_existing=True)
            if row is None:
                return None
            return StoredCredential(
                key=key,
                bundle=CredentialBundle.from_dict(row.raw_token),
                version=row.version,
                updated_at=row.updated_at,
            )

    async def get(self, key: TenantKey) -> CredentialBundle | None:
        """Return the stored bundle, or None when the tenant has no record."""
        record = await self.get_record(key)
        return record.bundle if record else None

    async def list_records(self) -> list[StoredCredential]:
        async with self._session() as session:
            result = await session.execute(select(TenantRecord).order_by(TenantRecord.locationid))
            return [
                StoredCredential(
                    key=TenantKey.from_storage_key(row.locationid),
                    bundle=CredentialBundle.from_dict(row.raw_token),
                    version=row.version,
                    updated_at=row.updated_at,
                )
                for row in result.scalars().all()
            ]

    async def ping(self) -> Any:
        """Database clock, used by the health check."""
        async with self._session() as session:
            result = await session.execute(text("SELECT CURRENT_TIMESTAMP"))
            return result.scalar_one()

    # Writes

    async def put(self, key: TenantKey, bundle: CredentialBundle) -> TenantKey:
        """Insert or replace the bundle stored under ``key``."""
        stmt = self._insert().values(
            locationid=key.storage_key, raw_token=bundle.to_dict(), version=1
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[TenantRecord.locationid],
            set_={
                "raw_token": stmt.excluded.raw_token,
                "version": TenantRecord.version + 1,
                "updated_at": func.now(),
            },
        )
        async with self._session() as session:
            await session.execute(stmt)
            await session.commit()
        logger.info("Stored credential for %s: %s", key, bundle.summary())
        return key

    async def compare_and_put(
        self,
        key: TenantKey,
        bundle: CredentialBundle,
        expected_version: int | None,
    ) -> bool:
        """Write only if the record is still at ``expected_version``.

        ``expected_version=None`` means "only if no record exists yet".
        Returns False when another writer got there first.
        """
        payload = bundle.to_dict()
        if expected_version is None:
            stmt = (
                self._insert()
                .values(locationid=key.storage_key, raw_token=payload, version=1)
                .on_conflict_do_nothing(index_elements=[TenantRecord.locationid])
                .returning(TenantRecord.locationid)
            )
        else:
            stmt = (
                sql_update(TenantRecord)
                .where(
                    TenantRecord.locationid == key.storage_key,
                    TenantRecord.version == expected_version,
                )
                .values(raw_token=payload, version=expected_version + 1, updated_at=func.now())
                .returning(TenantRecord.locationid)
            )

        async with self._session() as session:
            result = await session.execute(stmt)
            written = result.scalar_one_or_none() is not None
            await session.commit()
        if written:
            logger.info("Stored credential for %s: %s", key, bundle.summary())
        return written

    async def update(
        self,
        key: TenantKey,
        apply: Callable[[CredentialBundle], CredentialBundle],
        *,
        default: CredentialBundle | None = None,
        max_attempts: int = 3,
    ) -> CredentialBundle:
        """Atomic read-modify-write of one tenant record.

        ``apply`` receives the stored bundle (or ``default`` when there is no
        record) and returns the bundle to write. It may run more than once.

        Raises:
            StorageError: No record and no default
            MergeConflictError: Still losing the race after ``max_attempts``
        """
        for attempt in range(1, max_attempts + 1):
            record = await self.get_record(key)
            if record is None:
                if default is None:
                    raise StorageError(f"No credential stored for {key}")
                base, expected = default, None
            else:
                base, expected = record.bundle, record.version

            merged = apply(base)
            if await self.compare_and_put(key, merged, expected):
                return merged
            logger.info("Concurrent write on %s, retrying merge (%d/%d)", key, attempt, max_attempts)

        raise MergeConflictError(f"Gave up merging into {key} after {max_attempts} attempts")
