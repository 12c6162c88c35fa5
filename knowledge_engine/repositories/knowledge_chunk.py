from typing import List, Optional
from uuid import UUID
from injector import inject
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from knowledge_engine.db.models import IndexStatus, KnowledgeChunkModel

from knowledge_engine.repositories.db_repository import DbRepository


@inject
class KnowledgeChunkRepository(DbRepository[KnowledgeChunkModel]):
    """Relational chunk store, authoritative for content and order"""

    def __init__(self, db: AsyncSession):
        super().__init__(KnowledgeChunkModel, db)

    async def get_max_order(self, agent_id: UUID, knowledge_id: UUID) -> Optional[int]:
        stmt = select(func.max(KnowledgeChunkModel.chunk_order)).where(
            KnowledgeChunkModel.knowledge_id == knowledge_id,
            KnowledgeChunkModel.agent_id == agent_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar()

    async def list_by_knowledge(self, agent_id: UUID, knowledge_id: UUID) -> List[KnowledgeChunkModel]:
        stmt = (
            select(KnowledgeChunkModel)
            .where(
                KnowledgeChunkModel.knowledge_id == knowledge_id,
                KnowledgeChunkModel.agent_id == agent_id,
            )
            .order_by(KnowledgeChunkModel.chunk_order.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_owned(
            self, agent_id: UUID, knowledge_id: UUID, chunk_id: UUID
            ) -> Optional[KnowledgeChunkModel]:
        stmt = select(KnowledgeChunkModel).where(
            KnowledgeChunkModel.id == chunk_id,
            KnowledgeChunkModel.knowledge_id == knowledge_id,
            KnowledgeChunkModel.agent_id == agent_id,
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def list_persisted_only(
            self, agent_id: UUID, knowledge_id: Optional[UUID] = None
            ) -> List[KnowledgeChunkModel]:
        stmt = select(KnowledgeChunkModel).where(
            KnowledgeChunkModel.agent_id == agent_id,
            KnowledgeChunkModel.index_status == IndexStatus.PERSISTED_ONLY.value,
        )
        if knowledge_id is not None:
            stmt = stmt.where(KnowledgeChunkModel.knowledge_id == knowledge_id)
        stmt = stmt.order_by(KnowledgeChunkModel.knowledge_id, KnowledgeChunkModel.chunk_order)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def set_index_status(self, chunk_ids: List[UUID], status: IndexStatus) -> None:
        if not chunk_ids:
            return
        await self.db.execute(
            update(KnowledgeChunkModel)
            .where(KnowledgeChunkModel.id.in_(chunk_ids))
            .values(index_status=status.value)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.commit()
