"""
Persist the region → area → quarter → object hierarchy with upsert logic (idempotency)
"""

from datetime import date
from typing import Dict, List, Optional, Type
from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects import postgresql, sqlite
from models.base import LoadStatus
from models.cadastral import Region, Area, Quarter, CadastralObject
from schemas.cadastral import CadastralNumber, EnrichmentRecord
from core.exceptions import UnsupportedDialectError, UpsertNoRowError
import logging

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class CadastralRepository:
    """
    Hierarchical store for cadastral records.

    Every method runs inside the caller's transaction and never commits;
    the caller owns ``session.begin()`` and therefore commit/rollback.

    Ensures:
    - Codes are unique per table; re-inserting a code with another parent
      moves it (INSERT ... ON CONFLICT DO UPDATE)
    - Re-ingesting an object never resets its enrichment progress
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ------------------------------------------------------------------
    # Upserts
    # ------------------------------------------------------------------

    def _insert(self, model: Type):
        dialect = self.db.get_bind().dialect.name
        if dialect not in _DIALECT_INSERTS:
            raise UnsupportedDialectError(
                f"Upsert is not supported for dialect {dialect!r}",
                context={
                    "dialect": dialect,
                    "table_name": model.__tablename__,
                    "supported_dialects": sorted(_DIALECT_INSERTS),
                }
            )
        return _DIALECT_INSERTS[dialect](model)

    async def _upsert_returning(self, stmt, model: Type, code: int):
        stmt = stmt.returning(model).execution_options(populate_existing=True)
        result = await self.db.scalars(stmt)
        row = result.one_or_none()
        if row is None:
            raise UpsertNoRowError(
                f"Upsert into {model.__tablename__} returned no row",
                context={"table_name": model.__tablename__, "code": code}
            )
        return row

    async def upsert_region(self, code: int) -> Region:
        """Insert the region if missing; an existing row is left as is."""
        stmt = self._insert(Region).values(code=code)
        stmt = stmt.on_conflict_do_update(
            index_elements=["code"],
            set_={"code": stmt.excluded.code}
        )
        return await self._upsert_returning(stmt, Region, code)

    async def upsert_area(self, code: int, region_code: int) -> Area:
        stmt = self._insert(Area).values(code=code, region_code=region_code)
        stmt = stmt.on_conflict_do_update(
            index_elements=["code"],
            set_={"region_code": region_code}
        )
        return await self._upsert_returning(stmt, Area, code)

    async def upsert_quarter(self, code: int, area_code: int) -> Quarter:
        stmt = self._insert(Quarter).values(code=code, area_code=area_code)
        stmt = stmt.on_conflict_do_update(
            index_elements=["code"],
            set_={"area_code": area_code}
        )
        return await self._upsert_returning(stmt, Quarter, code)

    async def upsert_object(
        self,
        code: int,
        quarter_code: int,
        status: LoadStatus = LoadStatus.NEW,
        today: Optional[date] = None
    ) -> CadastralObject:
        """
        Insert a new object, or move an existing one to ``quarter_code``.

        load_status and update_date are only set on first insert.
        """
        stmt = self._insert(CadastralObject).values(
            code=code,
            quarter_code=quarter_code,
            load_status=status,
            update_date=today or date.today()
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["code"],
            set_={"quarter_code": quarter_code}
        )
        return await self._upsert_returning(stmt, CadastralObject, code)

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    async def list_stale_objects(self, today: Optional[date] = None) -> List[CadastralNumber]:
        """
        Objects that are NEW or were not updated today.

        Failed lookups (ERROR, NOT FOUND) are only retried once the day
        has changed, exactly like successful ones are refreshed.
        """
        today = today or date.today()
        result = await self.db.execute(
            select(Region.code, Area.code, Quarter.code, CadastralObject.code)
            .select_from(Region)
            .join(Area, Area.region_code == Region.code)
            .join(Quarter, Quarter.area_code == Area.code)
            .join(CadastralObject, CadastralObject.quarter_code == Quarter.code)
            .where(
                or_(
                    CadastralObject.load_status == LoadStatus.NEW,
                    CadastralObject.update_date.is_(None),
                    CadastralObject.update_date != today
                )
            )
            .order_by(CadastralObject.code)
        )
        return [
            CadastralNumber(
                region_code=row[0],
                area_code=row[1],
                quarter_code=row[2],
                object_code=row[3]
            )
            for row in result.all()
        ]

    async def is_stale(self, code: int, today: Optional[date] = None) -> bool:
        """Whether the object would still be selected by list_stale_objects"""
        today = today or date.today()
        result = await self.db.execute(
            select(CadastralObject.load_status, CadastralObject.update_date)
            .where(CadastralObject.code == code)
        )
        row = result.one_or_none()
        if row is None:
            return False
        status, update_date = row
        return status == LoadStatus.NEW or update_date is None or update_date != today

    async def write_enrichment(
        self,
        object_code: int,
        record: EnrichmentRecord,
        today: Optional[date] = None
    ) -> int:
        """Overwrite every enrichment column and bump update_date. Status is left alone."""
        result = await self.db.execute(
            update(CadastralObject)
            .where(CadastralObject.code == object_code)
            .values(update_date=today or date.today(), **record.column_values())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(f"No object with code {object_code} to enrich")
        return result.rowcount

    async def set_status(
        self,
        object_code: int,
        status: LoadStatus,
        today: Optional[date] = None
    ) -> int:
        result = await self.db.execute(
            update(CadastralObject)
            .where(CadastralObject.code == object_code)
            .values(load_status=status, update_date=today or date.today())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(f"No object with code {object_code} to set status {status.value}")
        return result.rowcount

    # ------------------------------------------------------------------
    # Reads for statistics and export
    # ------------------------------------------------------------------

    async def count_by_status(self) -> Dict[LoadStatus, int]:
        result = await self.db.execute(
            select(CadastralObject.load_status, func.count())
            .group_by(CadastralObject.load_status)
        )
        counts = {status: 0 for status in LoadStatus}
        for status, count in result.all():
            counts[status] = count
        return counts

    async def count_rows(self, model: Type) -> int:
        result = await self.db.execute(select(func.count()).select_from(model))
        return result.scalar() or 0

    async def count_updated_on(self, day: date) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(CadastralObject).where(
                CadastralObject.update_date == day
            )
        )
        return result.scalar() or 0

    async def get_object(self, code: int) -> Optional[CadastralObject]:
        return await self.db.get(CadastralObject, code, populate_existing=True)

    async def list_enriched_objects(self) -> List[CadastralObject]:
        """Successfully enriched objects that still carry their registry payload"""
        result = await self.db.execute(
            select(CadastralObject)
            .where(
                CadastralObject.load_status == LoadStatus.SUCCESS,
                CadastralObject.data.isnot(None)
            )
            .order_by(CadastralObject.code)
        )
        return list(result.scalars().all())
