import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID
from injector import inject

from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import NotFoundError
from knowledge_engine.db.models import KnowledgeSourceModel
from knowledge_engine.modules.knowledge.locks import KeyedLockRegistry
from knowledge_engine.repositories.knowledge_chunk import KnowledgeChunkRepository
from knowledge_engine.repositories.knowledge_source import KnowledgeSourceRepository

logger = logging.getLogger(__name__)


@inject
class ChunkOrderAllocator:
    """
    Hands out chunk positions for a knowledge source.

    Positions start at 1 and grow by one per chunk. `reserve` holds the
    knowledge source's lock until the caller's block exits, so the insert
    that consumes the reserved positions must happen inside that block.
    """

    def __init__(
        self,
        knowledge_repository: KnowledgeSourceRepository,
        chunk_repository: KnowledgeChunkRepository,
        locks: KeyedLockRegistry,
    ):
        self.knowledge_repository = knowledge_repository
        self.chunk_repository = chunk_repository
        self.locks = locks

    async def verify_ownership(self, agent_id: UUID, knowledge_id: UUID) -> KnowledgeSourceModel:
        knowledge = await self.knowledge_repository.get_owned(agent_id, knowledge_id)
        if knowledge is None:
            # someone else's source is reported exactly like a missing one
            raise NotFoundError(
                ErrorKey.KNOWLEDGE_NOT_FOUND,
                error_detail=f"knowledge={knowledge_id} agent={agent_id}",
            )
        return knowledge

    async def next_order(self, agent_id: UUID, knowledge_id: UUID) -> int:
        await self.verify_ownership(agent_id, knowledge_id)
        current = await self.chunk_repository.get_max_order(agent_id, knowledge_id)
        return 1 if current is None else current + 1

    @staticmethod
    def lock_key(knowledge_id: UUID) -> str:
        return f"chunk-order:{knowledge_id}"

    @asynccontextmanager
    async def reserve(self, agent_id: UUID, knowledge_id: UUID) -> AsyncIterator[int]:
        """Yield the first free position while holding the knowledge source's lock."""
        async with self.locks.acquire(self.lock_key(knowledge_id)):
            start = await self.next_order(agent_id, knowledge_id)
            logger.debug(f"Reserved chunk order {start} for knowledge {knowledge_id}")
            yield start

    def release(self, knowledge_id: UUID) -> None:
        """Drop the order lock of a deleted knowledge source"""
        self.locks.discard(self.lock_key(knowledge_id))
