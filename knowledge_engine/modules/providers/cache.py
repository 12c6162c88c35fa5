"""
ProviderClientCache - process-wide cache of provider clients per agent

Building a chat model or an embeddings client sets up HTTP pools and reads
the agent's configuration, so the pair is built once per agent and reused
until the agent's configuration changes.

Every write to an agent's provider configuration MUST be followed by
`invalidate(agent_id)`; a client kept after a credential rotation keeps
using the old credential.
"""

import asyncio
import logging
from typing import Any, Dict, Tuple
from uuid import UUID
from injector import inject, singleton
from langchain_core.language_models import BaseChatModel

from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import NotFoundError
from knowledge_engine.db.models import AgentModel
from knowledge_engine.db.session import SessionManager
from knowledge_engine.schemas.agent import AgentProviderConfig
from .embedder import AgentEmbedder
from .registry import ProviderRegistry

logger = logging.getLogger(__name__)


@singleton
class AgentConfigLoader:
    """Reads an agent's provider configuration in a session of its own"""

    @inject
    def __init__(self, session_manager: SessionManager):
        self.session_manager = session_manager

    async def load(self, agent_id: UUID) -> AgentProviderConfig:
        async with self.session_manager.session() as session:
            agent = await session.get(AgentModel, agent_id)
        if agent is None:
            raise NotFoundError(ErrorKey.AGENT_NOT_FOUND, error_detail=f"agent={agent_id}")
        return AgentProviderConfig(
            agent_id=agent.id,
            provider_name=agent.provider_name,
            model_name=agent.provider_model_name,
            embedding_model_name=agent.provider_embedding_model_name,
            dimension=agent.dimension,
            base_url=agent.base_url,
            chat_completions_path=agent.chat_completions_path,
            embeddings_path=agent.embeddings_path,
            api_key=agent.provider_api_key,
            temperature=agent.temperature,
            top_p=agent.top_p,
            max_tokens=agent.max_tokens,
        )


class ProviderClientPair:
    """Chat and embedding clients built from one configuration snapshot"""

    def __init__(self, config: AgentProviderConfig, chat: BaseChatModel, embedder: AgentEmbedder):
        self.config = config
        self.chat = chat
        self.embedder = embedder


@singleton
class ProviderClientCache:
    """
    Lazily builds and memoizes a ProviderClientPair per agent.

    Construction is serialized per agent id, so concurrent callers for the
    same agent see one construction while other agents proceed in parallel.
    A construction that an invalidation overtakes is handed to its caller
    but never cached.
    """

    @inject
    def __init__(self, config_loader: AgentConfigLoader, registry: ProviderRegistry):
        self.config_loader = config_loader
        self.registry = registry
        self._clients: Dict[UUID, ProviderClientPair] = {}
        self._initialization_locks: Dict[UUID, asyncio.Lock] = {}
        self._generations: Dict[UUID, int] = {}
        self._epoch = 0
        self._constructions = 0
        logger.info("ProviderClientCache initialized")

    def _generation(self, agent_id: UUID) -> Tuple[int, int]:
        return self._epoch, self._generations.get(agent_id, 0)

    async def get_clients(self, agent_id: UUID) -> ProviderClientPair:
        pair = self._clients.get(agent_id)
        if pair is not None:
            return pair

        lock = self._initialization_locks.setdefault(agent_id, asyncio.Lock())
        async with lock:
            # Double-check, another caller may have built it while we waited
            pair = self._clients.get(agent_id)
            if pair is not None:
                return pair

            generation = self._generation(agent_id)
            config = await self.config_loader.load(agent_id)
            factory = self.registry.get(config.provider_name)

            pair = ProviderClientPair(
                config=config,
                chat=factory.build_chat_client(config),
                embedder=AgentEmbedder(
                    factory.build_embedding_client(config), model_name=config.embedding_model_name),
            )
            self._constructions += 1

            if self._generation(agent_id) == generation:
                self._clients[agent_id] = pair
                logger.info(
                    f"Created and cached {config.provider_name} clients for agent {agent_id} "
                    f"(model={config.model_name}, embeddings={config.embedding_model_name})")
            else:
                logger.info(f"Agent {agent_id} was invalidated during client construction, not caching")
            return pair

    async def get_chat_client(self, agent_id: UUID) -> BaseChatModel:
        return (await self.get_clients(agent_id)).chat

    async def get_embedding_client(self, agent_id: UUID) -> AgentEmbedder:
        return (await self.get_clients(agent_id)).embedder

    def invalidate(self, agent_id: UUID) -> bool:
        """Drop the agent's clients; returns whether anything was cached"""
        self._generations[agent_id] = self._generations.get(agent_id, 0) + 1
        removed = self._clients.pop(agent_id, None)
        logger.info(f"Invalidated provider clients for agent {agent_id} (cached={removed is not None})")
        return removed is not None

    def forget(self, agent_id: UUID) -> None:
        """
        Invalidate a deleted agent and drop its lock and generation.

        While a construction for the agent is in flight both are kept, so the
        construction still sees the invalidation and is not cached.
        """
        self.invalidate(agent_id)
        lock = self._initialization_locks.get(agent_id)
        if lock is not None and lock.locked():
            return
        self._initialization_locks.pop(agent_id, None)
        self._generations.pop(agent_id, None)

    def invalidate_all(self) -> int:
        self._epoch += 1
        count = len(self._clients)
        self._clients.clear()
        logger.info(f"Invalidated provider clients for all agents ({count} cached)")
        return count

    def get_stats(self) -> Dict[str, Any]:
        return {
            "cached_agents": [str(agent_id) for agent_id in self._clients],
            "cached_count": len(self._clients),
            "tracked_agents": len(self._initialization_locks),
            "constructions": self._constructions,
            "registered_providers": self.registry.names,
        }
