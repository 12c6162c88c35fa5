import logging
from typing import List
from uuid import UUID
from injector import inject

from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import NotFoundError
from knowledge_engine.db.models import KnowledgeSourceModel
from knowledge_engine.modules.knowledge.coordinator import ChunkLifecycleCoordinator
from knowledge_engine.modules.knowledge.ordering import ChunkOrderAllocator
from knowledge_engine.repositories.agent import AgentRepository
from knowledge_engine.repositories.knowledge_source import KnowledgeSourceRepository
from knowledge_engine.schemas.knowledge import KnowledgeCreate, KnowledgeRead, KnowledgeUpdate

logger = logging.getLogger(__name__)


@inject
class KnowledgeSourceService:
    """
    – Accepts / returns Pydantic models.
    – Every lookup is scoped to the owning agent.
    """

    def __init__(
        self,
        repository: KnowledgeSourceRepository,
        agent_repository: AgentRepository,
        allocator: ChunkOrderAllocator,
        coordinator: ChunkLifecycleCoordinator,
    ):
        self.repository = repository
        self.agent_repository = agent_repository
        self.allocator = allocator
        self.coordinator = coordinator

    async def _require_agent(self, agent_id: UUID) -> None:
        if await self.agent_repository.get_by_id(agent_id) is None:
            raise NotFoundError(ErrorKey.AGENT_NOT_FOUND, error_detail=f"agent={agent_id}")

    # ─────────────── READ ───────────────
    async def list_by_agent(self, agent_id: UUID) -> List[KnowledgeRead]:
        await self._require_agent(agent_id)
        objs = await self.repository.list_by_agent(agent_id)
        return [KnowledgeRead.model_validate(o) for o in objs]

    async def get(self, agent_id: UUID, knowledge_id: UUID) -> KnowledgeRead:
        return KnowledgeRead.model_validate(await self.allocator.verify_ownership(agent_id, knowledge_id))

    # ─────────────── WRITE ───────────────
    async def create(self, agent_id: UUID, data: KnowledgeCreate) -> KnowledgeRead:
        await self._require_agent(agent_id)
        payload = data.model_dump()
        payload["source_type"] = data.source_type.value
        created = await self.repository.create(KnowledgeSourceModel(agent_id=agent_id, **payload))
        return KnowledgeRead.model_validate(created)

    async def update(self, agent_id: UUID, knowledge_id: UUID, data: KnowledgeUpdate) -> KnowledgeRead:
        knowledge = await self.allocator.verify_ownership(agent_id, knowledge_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(knowledge, field, value)
        updated = await self.repository.update(knowledge)
        return KnowledgeRead.model_validate(updated)

    async def delete(self, agent_id: UUID, knowledge_id: UUID) -> None:
        knowledge = await self.allocator.verify_ownership(agent_id, knowledge_id)
        await self.coordinator.delete_knowledge_index(agent_id, knowledge_id)
        await self.repository.delete(knowledge)
        self.allocator.release(knowledge_id)
        logger.info(f"Deleted knowledge {knowledge_id} of agent {agent_id}")
