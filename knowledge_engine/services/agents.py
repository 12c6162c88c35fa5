import logging
from typing import List, Optional
from uuid import UUID
from injector import inject

from knowledge_engine.core.config.settings import settings
from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import NotFoundError, UnsupportedConfigurationError
from knowledge_engine.db.models import AgentModel
from knowledge_engine.modules.knowledge.coordinator import ChunkLifecycleCoordinator
from knowledge_engine.modules.providers.cache import ProviderClientCache
from knowledge_engine.modules.providers.registry import ProviderRegistry
from knowledge_engine.repositories.agent import AgentRepository
from knowledge_engine.schemas.agent import AgentCreate, AgentRead, AgentUpdate

logger = logging.getLogger(__name__)


@inject
class AgentService:
    """
    Agent CRUD.

    Any change to an agent invalidates its cached provider clients once the
    change is committed, so the next request builds clients from the new
    configuration.
    """

    def __init__(
        self,
        repository: AgentRepository,
        client_cache: ProviderClientCache,
        registry: ProviderRegistry,
        coordinator: ChunkLifecycleCoordinator,
    ):
        self.repository = repository
        self.client_cache = client_cache
        self.registry = registry
        self.coordinator = coordinator

    def _validate_provider_settings(self, provider_name: Optional[str], dimension: Optional[int]) -> None:
        if provider_name is not None:
            self.registry.get(provider_name)
        if dimension is not None and dimension not in settings.SUPPORTED_EMBEDDING_DIMENSIONS:
            raise UnsupportedConfigurationError(
                ErrorKey.UNSUPPORTED_EMBEDDING_DIMENSION, error_variables=[dimension])

    async def _get_model(self, agent_id: UUID) -> AgentModel:
        agent = await self.repository.get_by_id(agent_id)
        if agent is None:
            raise NotFoundError(ErrorKey.AGENT_NOT_FOUND, error_detail=f"agent={agent_id}")
        return agent

    # ─────────────── READ ───────────────
    async def get_all(self) -> List[AgentRead]:
        agents = await self.repository.get_all()
        return [AgentRead.model_validate(a) for a in agents]

    async def get_by_id(self, agent_id: UUID) -> AgentRead:
        return AgentRead.model_validate(await self._get_model(agent_id))

    # ─────────────── WRITE ───────────────
    async def create(self, data: AgentCreate) -> AgentRead:
        self._validate_provider_settings(data.provider_name, data.dimension)
        created = await self.repository.create(AgentModel(**data.model_dump()))
        logger.info(f"Created agent {created.id} ({created.provider_name}/{created.provider_model_name})")
        return AgentRead.model_validate(created)

    async def update(self, agent_id: UUID, data: AgentUpdate) -> AgentRead:
        changes = data.model_dump(exclude_unset=True)
        self._validate_provider_settings(changes.get("provider_name"), changes.get("dimension"))

        agent = await self._get_model(agent_id)
        for field, value in changes.items():
            setattr(agent, field, value)
        updated = await self.repository.update(agent)

        self.client_cache.invalidate(agent_id)
        return AgentRead.model_validate(updated)

    async def delete(self, agent_id: UUID) -> None:
        agent = await self._get_model(agent_id)
        self.client_cache.forget(agent_id)
        await self.repository.delete(agent)
        await self.coordinator.delete_agent_index(agent_id)
        logger.info(f"Deleted agent {agent_id}")
