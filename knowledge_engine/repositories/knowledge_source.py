from typing import List, Optional
from uuid import UUID
from injector import inject
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from knowledge_engine.db.models import KnowledgeSourceModel

from knowledge_engine.repositories.db_repository import DbRepository


@inject
class KnowledgeSourceRepository(DbRepository[KnowledgeSourceModel]):
    def __init__(self, db: AsyncSession):
        super().__init__(KnowledgeSourceModel, db)

    async def get_owned(self, agent_id: UUID, knowledge_id: UUID) -> Optional[KnowledgeSourceModel]:
        """The knowledge source, only if `agent_id` owns it."""
        stmt = select(KnowledgeSourceModel).where(
            KnowledgeSourceModel.id == knowledge_id,
            KnowledgeSourceModel.agent_id == agent_id,
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def list_by_agent(self, agent_id: UUID) -> List[KnowledgeSourceModel]:
        stmt = (
            select(KnowledgeSourceModel)
            .where(KnowledgeSourceModel.agent_id == agent_id)
            .order_by(KnowledgeSourceModel.created_at.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
