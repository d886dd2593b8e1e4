"""
SQLAlchemy implementation of the persistence gateway.

One gateway wraps one AsyncSession (one per request). Reads pass
populate_existing so a row re-read inside an atomic group reflects what the
database holds now, not what this session saw earlier. Updates are issued as
single UPDATE statements whose WHERE clause carries the expected status
(compare-and-swap), so concurrent writers are arbitrated by the database
rather than by locks held in Python.
"""

from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Iterable, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from charter.core.exceptions import DuplicateKeyError, PersistenceError
from charter.core.logging import get_logger
from charter.services.interfaces.persistence import PersistenceGateway

logger = get_logger(__name__)


def _plain(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (tuple, list, set, frozenset)):
        return [_plain(v) for v in value]
    return value


class SqlAlchemyGateway(PersistenceGateway):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, model: type, record_id: str) -> Optional[Any]:
        try:
            return await self.session.get(model, record_id, populate_existing=True)
        except SQLAlchemyError as exc:
            logger.error("persistence_read_failed", table=model.__tablename__, error=str(exc))
            raise PersistenceError(f"Failed to read {model.__tablename__}") from exc

    async def query(
        self,
        model: type,
        *criteria,
        order_by: Sequence = (),
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list:
        stmt = (
            select(model)
            .where(*criteria)
            .order_by(*order_by)
            .execution_options(populate_existing=True)
        )
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("persistence_query_failed", table=model.__tablename__, error=str(exc))
            raise PersistenceError(f"Failed to query {model.__tablename__}") from exc
        return list(result.scalars().all())

    async def insert(self, record: Any) -> Any:
        self.session.add(record)
        try:
            await self.session.flush()
            await self.session.refresh(record)
        except IntegrityError as exc:
            raise DuplicateKeyError(f"Duplicate {record.__tablename__} row") from exc
        except SQLAlchemyError as exc:
            logger.error("persistence_insert_failed", table=record.__tablename__, error=str(exc))
            raise PersistenceError(f"Failed to insert into {record.__tablename__}") from exc
        return record

    async def update(
        self,
        model: type,
        record_id: str,
        patch: dict,
        expected: Optional[dict] = None,
    ) -> bool:
        criteria = [model.id == record_id]
        for column, value in (expected or {}).items():
            attr = getattr(model, column)
            value = _plain(value)
            criteria.append(attr.in_(value) if isinstance(value, list) else attr == value)
        return await self.update_where(model, criteria, patch) == 1

    async def update_where(self, model: type, criteria: Iterable, patch: dict) -> int:
        stmt = (
            update(model)
            .where(*criteria)
            .values(**{key: _plain(value) for key, value in patch.items()})
            .execution_options(synchronize_session="evaluate")
        )
        try:
            result = await self.session.execute(stmt)
        except IntegrityError as exc:
            raise DuplicateKeyError(f"Conflicting update on {model.__tablename__}") from exc
        except SQLAlchemyError as exc:
            logger.error("persistence_update_failed", table=model.__tablename__, error=str(exc))
            raise PersistenceError(f"Failed to update {model.__tablename__}") from exc
        return result.rowcount

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqlAlchemyGateway"]:
        try:
            yield self
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise DuplicateKeyError("Commit rejected by a uniqueness rule") from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("persistence_commit_failed", error=str(exc))
            raise PersistenceError("Failed to commit transaction") from exc
        except Exception:
            await self.session.rollback()
            raise
