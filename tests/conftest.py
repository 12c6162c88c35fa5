import asyncio
import zlib
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID, uuid4

import numpy as np
import pytest
from sqlalchemy.exc import IntegrityError

from knowledge_engine.db.models import IndexStatus, KnowledgeChunkModel, KnowledgeSourceModel
from knowledge_engine.modules.knowledge.coordinator import ChunkLifecycleCoordinator
from knowledge_engine.modules.knowledge.locks import KeyedLockRegistry
from knowledge_engine.modules.knowledge.ordering import ChunkOrderAllocator
from knowledge_engine.modules.knowledge.vector.memory import InMemoryVectorIndex


class InMemoryKnowledgeSourceRepository:
    """Stands in for KnowledgeSourceRepository.get_owned"""

    def __init__(self):
        self.sources: Dict[UUID, KnowledgeSourceModel] = {}

    def add(self, agent_id: UUID, knowledge_id: Optional[UUID] = None) -> UUID:
        knowledge_id = knowledge_id or uuid4()
        self.sources[knowledge_id] = KnowledgeSourceModel(id=knowledge_id, agent_id=agent_id, name="kb")
        return knowledge_id

    async def get_owned(self, agent_id: UUID, knowledge_id: UUID):
        source = self.sources.get(knowledge_id)
        if source is None or source.agent_id != agent_id:
            return None
        return source


class InMemoryChunkRepository:
    """
    Chunk store honouring the unique (knowledge_id, chunk_order) constraint.

    `foreign_writes` simulates writers in other processes: each entry is
    inserted right before the next create_many call checks for conflicts.
    """

    def __init__(self):
        self.rows: Dict[UUID, KnowledgeChunkModel] = {}
        self.foreign_writes: List[KnowledgeChunkModel] = []
        self.create_calls = 0

    def _orders(self, knowledge_id: UUID):
        return {c.chunk_order for c in self.rows.values() if c.knowledge_id == knowledge_id}

    async def get_max_order(self, agent_id: UUID, knowledge_id: UUID) -> Optional[int]:
        await asyncio.sleep(0)
        orders = [
            c.chunk_order for c in self.rows.values()
            if c.knowledge_id == knowledge_id and c.agent_id == agent_id
        ]
        return max(orders) if orders else None

    async def create_many(self, chunks: List[KnowledgeChunkModel]) -> List[KnowledgeChunkModel]:
        self.create_calls += 1
        # yield so concurrent writers interleave
        await asyncio.sleep(0)
        if self.foreign_writes:
            self._store(self.foreign_writes.pop(0))

        seen = set()
        for chunk in chunks:
            key = chunk.chunk_order
            if key in self._orders(chunk.knowledge_id) or (chunk.knowledge_id, key) in seen:
                raise IntegrityError(
                    "INSERT INTO knowledge_chunks", {}, Exception("uq_knowledge_chunks_knowledge_order"))
            seen.add((chunk.knowledge_id, key))
        for chunk in chunks:
            self._store(chunk)
        return chunks

    def _store(self, chunk: KnowledgeChunkModel) -> None:
        if chunk.id is None:
            chunk.id = uuid4()
        now = datetime.now(timezone.utc)
        chunk.created_at = chunk.created_at or now
        chunk.updated_at = now
        self.rows[chunk.id] = chunk

    async def list_by_knowledge(self, agent_id: UUID, knowledge_id: UUID) -> List[KnowledgeChunkModel]:
        chunks = [c for c in self.rows.values() if c.knowledge_id == knowledge_id and c.agent_id == agent_id]
        return sorted(chunks, key=lambda c: c.chunk_order)

    async def get_owned(self, agent_id: UUID, knowledge_id: UUID, chunk_id: UUID):
        chunk = self.rows.get(chunk_id)
        if chunk is None or chunk.agent_id != agent_id or chunk.knowledge_id != knowledge_id:
            return None
        return chunk

    async def get_by_ids(self, ids: List[UUID]) -> List[KnowledgeChunkModel]:
        return [self.rows[i] for i in ids if i in self.rows]

    async def update(self, chunk: KnowledgeChunkModel) -> KnowledgeChunkModel:
        chunk.updated_at = datetime.now(timezone.utc)
        return chunk

    async def delete(self, chunk: KnowledgeChunkModel) -> None:
        self.rows.pop(chunk.id, None)

    async def list_persisted_only(self, agent_id: UUID, knowledge_id: Optional[UUID] = None):
        return [
            c for c in sorted(self.rows.values(), key=lambda c: c.chunk_order)
            if c.agent_id == agent_id
            and c.index_status == IndexStatus.PERSISTED_ONLY.value
            and (knowledge_id is None or c.knowledge_id == knowledge_id)
        ]

    async def set_index_status(self, chunk_ids: List[UUID], status: IndexStatus) -> None:
        for chunk_id in chunk_ids:
            if chunk_id in self.rows:
                self.rows[chunk_id].index_status = status.value


def fake_vector(text: str, dimension: int) -> List[float]:
    """Deterministic pseudo-embedding, identical texts give identical vectors"""
    rng = np.random.default_rng(zlib.crc32(text.encode("utf-8")))
    return rng.standard_normal(dimension).astype(float).tolist()


class FakeEmbedder:
    def __init__(self, dimension: int = 1536):
        self.dimension = dimension
        self.calls = 0

    async def embed(self, text: str) -> List[float]:
        return (await self.embed_many([text]))[0]

    async def embed_many(self, texts: List[str]) -> List[List[float]]:
        self.calls += 1
        return [fake_vector(t, self.dimension) for t in texts]

    async def embed_query(self, text: str) -> List[float]:
        return fake_vector(text, self.dimension)


class FakeClientCache:
    """Embedding clients per agent, 1536 dimensions unless configured otherwise"""

    def __init__(self):
        self.embedders: Dict[UUID, FakeEmbedder] = {}
        self.chat_clients: Dict[UUID, object] = {}

    def set_dimension(self, agent_id: UUID, dimension: int) -> None:
        self.embedders[agent_id] = FakeEmbedder(dimension)

    async def get_embedding_client(self, agent_id: UUID) -> FakeEmbedder:
        return self.embedders.setdefault(agent_id, FakeEmbedder())

    async def get_chat_client(self, agent_id: UUID):
        return self.chat_clients[agent_id]


class FlakyVectorIndex(InMemoryVectorIndex):
    """In-memory index whose writes can be switched to fail"""

    def __init__(self):
        super().__init__()
        self.fail_add = False
        self.fail_delete = False

    async def add(self, records):
        if self.fail_add:
            return False
        return await super().add(records)

    async def delete(self, ids):
        if self.fail_delete:
            return False
        return await super().delete(ids)


@pytest.fixture
def knowledge_repository():
    return InMemoryKnowledgeSourceRepository()


@pytest.fixture
def chunk_repository():
    return InMemoryChunkRepository()


@pytest.fixture
def client_cache():
    return FakeClientCache()


@pytest.fixture
def vector_index():
    return FlakyVectorIndex()


@pytest.fixture
def allocator(knowledge_repository, chunk_repository):
    return ChunkOrderAllocator(
        knowledge_repository=knowledge_repository,
        chunk_repository=chunk_repository,
        locks=KeyedLockRegistry(),
    )


@pytest.fixture
def coordinator(allocator, chunk_repository, client_cache, vector_index):
    return ChunkLifecycleCoordinator(
        allocator=allocator,
        chunk_repository=chunk_repository,
        client_cache=client_cache,
        vector_index=vector_index,
    )


@pytest.fixture
def agent_id():
    return uuid4()


@pytest.fixture
def knowledge_id(knowledge_repository, agent_id):
    return knowledge_repository.add(agent_id)
