from typing import List, Optional
from uuid import UUID
from injector import inject
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from knowledge_engine.db.models import ChatMessageModel, ConversationModel

from knowledge_engine.repositories.db_repository import DbRepository


@inject
class ConversationRepository(DbRepository[ConversationModel]):
    def __init__(self, db: AsyncSession):
        super().__init__(ConversationModel, db)

    async def get_owned(self, agent_id: UUID, conversation_id: UUID) -> Optional[ConversationModel]:
        stmt = select(ConversationModel).where(
            ConversationModel.id == conversation_id,
            ConversationModel.agent_id == agent_id,
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def list_by_agent(self, agent_id: UUID) -> List[ConversationModel]:
        stmt = (
            select(ConversationModel)
            .where(ConversationModel.agent_id == agent_id)
            .order_by(ConversationModel.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())


@inject
class ChatMessageRepository(DbRepository[ChatMessageModel]):
    def __init__(self, db: AsyncSession):
        super().__init__(ChatMessageModel, db)

    async def list_by_conversation(
            self, conversation_id: UUID, limit: Optional[int] = None
            ) -> List[ChatMessageModel]:
        """Messages oldest first; with `limit`, only the most recent ones."""
        stmt = select(ChatMessageModel).where(ChatMessageModel.conversation_id == conversation_id)
        if limit is not None:
            stmt = stmt.order_by(ChatMessageModel.created_at.desc(), ChatMessageModel.id.desc()).limit(limit)
            result = await self.db.execute(stmt)
            return list(reversed(result.scalars().all()))

        stmt = stmt.order_by(ChatMessageModel.created_at.asc(), ChatMessageModel.id.asc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
