import logging
from typing import Generic, List, Optional, Type, TypeVar
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from knowledge_engine.db.base import Base


logger = logging.getLogger(__name__)
OrmModelT = TypeVar("OrmModelT", bound=Base)


class DbRepository(Generic[OrmModelT]):
    """Generic async repository for one ORM model."""

    def __init__(self, model: Type[OrmModelT], db: AsyncSession):
        self.model = model
        self.db = db
        logger.debug("Initialised DbRepository for %s", model.__name__)

    # ───────────── READ methods ────────────────
    async def get_all(self) -> List[OrmModelT]:
        stmt = select(self.model).order_by(self.model.created_at.asc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_by_id(self, obj_id: UUID) -> Optional[OrmModelT]:
        stmt = select(self.model).where(self.model.id == obj_id)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_by_ids(self, ids: List[UUID]) -> List[OrmModelT]:
        if not ids:
            return []
        stmt = select(self.model).where(self.model.id.in_(ids))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # ---------- WRITE ----------
    async def create(self, obj: OrmModelT) -> OrmModelT:
        self.db.add(obj)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(obj)
        return obj

    async def create_many(self, objs: List[OrmModelT]) -> List[OrmModelT]:
        """Insert all objects in a single transaction; rolls back on failure."""
        if not objs:
            return []
        self.db.add_all(objs)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        for obj in objs:
            await self.db.refresh(obj)
        return objs

    async def update(self, obj: OrmModelT) -> OrmModelT:
        """
        Accepts a *managed* ORM object whose attributes have already been
        mutated by the caller.  Flush/commit & refresh are done here.
        """
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def delete(self, obj: OrmModelT) -> None:
        await self.db.delete(obj)
        await self.db.commit()
