"""
Chunk lifecycle across the relational chunk store and the vector index.

The relational store is written first and is authoritative. Vector index
writes are best effort: a failure leaves the chunk `persisted_only`, is
logged as IndexDesync and comes back as a warning on the result instead of
failing the call. `reindex_persisted_only_chunks` is the reconciliation pass.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID
from injector import inject
from sqlalchemy.exc import IntegrityError

from knowledge_engine.core.config.settings import settings
from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import (
    AppException,
    InvalidArgumentError,
    NotFoundError,
)
from knowledge_engine.db.models import IndexStatus, KnowledgeChunkModel
from knowledge_engine.modules.knowledge.ordering import ChunkOrderAllocator
from knowledge_engine.modules.knowledge.vector.base import BaseVectorIndex, VectorRecord
from knowledge_engine.modules.providers.cache import ProviderClientCache
from knowledge_engine.repositories.knowledge_chunk import KnowledgeChunkRepository
from knowledge_engine.schemas.knowledge import (
    ChunkBatchResult,
    ChunkDeleteResult,
    ChunkRead,
    ChunkSearchHit,
    ChunkWriteResult,
    ReindexResult,
)

logger = logging.getLogger(__name__)

EMBEDDING_COLUMNS = {768: "embedding_768", 1536: "embedding_1536"}
REINDEX_BATCH_SIZE = 100

Segment = Tuple[str, Dict[str, Any]]


def assign_embedding(chunk: KnowledgeChunkModel, vector: Optional[Sequence[float]]) -> bool:
    """
    Store `vector` in the column matching its length and clear the other one.
    Returns False, leaving both columns empty, for any other length.
    """
    dimension = len(vector) if vector else 0
    column = EMBEDDING_COLUMNS.get(dimension)
    for name in EMBEDDING_COLUMNS.values():
        setattr(chunk, name, None)
    if column is None:
        logger.warning(
            f"Unsupported embedding dimension {dimension} for chunk {chunk.id}, "
            f"saving without embedding (supported: {sorted(EMBEDDING_COLUMNS)})")
        return False
    setattr(chunk, column, list(vector))
    return True


@inject
class ChunkLifecycleCoordinator:
    def __init__(
        self,
        allocator: ChunkOrderAllocator,
        chunk_repository: KnowledgeChunkRepository,
        client_cache: ProviderClientCache,
        vector_index: BaseVectorIndex,
    ):
        self.allocator = allocator
        self.chunk_repository = chunk_repository
        self.client_cache = client_cache
        self.vector_index = vector_index

    # ─────────────── WRITE ───────────────
    async def add_chunk(
        self,
        agent_id: UUID,
        knowledge_id: UUID,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ChunkWriteResult:
        """Embed and store one chunk after the last chunk of the knowledge source, then index it."""
        self._require_content(content)
        await self.allocator.verify_ownership(agent_id, knowledge_id)

        embedder = await self.client_cache.get_embedding_client(agent_id)
        vector = await embedder.embed(content)

        chunks = await self._persist(agent_id, knowledge_id, [(content, metadata or {})], [vector])
        warnings = await self._index(chunks)
        chunk = chunks[0]
        return ChunkWriteResult(
            chunk=ChunkRead.model_validate(chunk),
            indexed=chunk.index_status == IndexStatus.INDEXED.value,
            warnings=warnings,
        )

    async def add_chunks(
        self, agent_id: UUID, knowledge_id: UUID, segments: List[Segment]
    ) -> ChunkBatchResult:
        """
        Store a document's segments at consecutive positions.

        Every segment is embedded before any row is written, so a provider
        failure leaves the knowledge source untouched.
        """
        await self.allocator.verify_ownership(agent_id, knowledge_id)
        if not segments:
            return ChunkBatchResult()

        embedder = await self.client_cache.get_embedding_client(agent_id)
        vectors = await embedder.embed_many([content for content, _ in segments])

        chunks = await self._persist(agent_id, knowledge_id, segments, vectors)
        warnings = await self._index(chunks)
        return ChunkBatchResult(
            chunks=[ChunkRead.model_validate(c) for c in chunks],
            indexed=sum(1 for c in chunks if c.index_status == IndexStatus.INDEXED.value),
            warnings=warnings,
        )

    async def update_chunk(
        self,
        agent_id: UUID,
        knowledge_id: UUID,
        chunk_id: UUID,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ChunkWriteResult:
        """Re-embed and replace a chunk's content; `metadata=None` keeps the current metadata."""
        self._require_content(content)
        chunk = await self._get_owned_chunk(agent_id, knowledge_id, chunk_id)

        embedder = await self.client_cache.get_embedding_client(agent_id)
        vector = await embedder.embed(content)

        chunk.content = content
        if metadata is not None:
            chunk.chunk_metadata = dict(metadata)
        routed = assign_embedding(chunk, vector)
        chunk.index_status = (IndexStatus.PERSISTED_ONLY if routed else IndexStatus.UNINDEXABLE).value
        chunk = await self.chunk_repository.update(chunk)

        # index entries are replaced, never patched in place
        warnings: List[str] = []
        if not await self.vector_index.delete([str(chunk.id)]):
            logger.error(f"IndexDesync: failed to remove previous index entry of chunk {chunk.id}")
            warnings.append(f"IndexDesync: previous index entry of chunk {chunk.id} could not be removed")
        if routed:
            warnings.extend(await self._index([chunk]))

        return ChunkWriteResult(
            chunk=ChunkRead.model_validate(chunk),
            indexed=chunk.index_status == IndexStatus.INDEXED.value,
            warnings=warnings,
        )

    async def delete_chunk(self, agent_id: UUID, knowledge_id: UUID, chunk_id: UUID) -> ChunkDeleteResult:
        chunk = await self._get_owned_chunk(agent_id, knowledge_id, chunk_id)
        await self.chunk_repository.delete(chunk)

        warnings = []
        if not await self.vector_index.delete([str(chunk_id)]):
            logger.error(f"IndexDesync: chunk {chunk_id} deleted but its index entry remains")
            warnings.append(f"IndexDesync: index entry of chunk {chunk_id} could not be removed")
        return ChunkDeleteResult(chunk_id=chunk_id, warnings=warnings)

    async def delete_knowledge_index(self, agent_id: UUID, knowledge_id: UUID) -> bool:
        ok = await self.vector_index.delete_where({"agent_id": str(agent_id), "knowledge_id": str(knowledge_id)})
        if not ok:
            logger.error(f"IndexDesync: index entries of knowledge {knowledge_id} could not be removed")
        return ok

    async def delete_agent_index(self, agent_id: UUID) -> bool:
        ok = await self.vector_index.delete_where({"agent_id": str(agent_id)})
        if not ok:
            logger.error(f"IndexDesync: index entries of agent {agent_id} could not be removed")
        return ok

    async def reindex_persisted_only_chunks(
        self, agent_id: UUID, knowledge_id: Optional[UUID] = None
    ) -> ReindexResult:
        """Index chunks saved while the index was unavailable, from their stored embeddings."""
        if knowledge_id is not None:
            await self.allocator.verify_ownership(agent_id, knowledge_id)

        pending = [
            c for c in await self.chunk_repository.list_persisted_only(agent_id, knowledge_id)
            if c.embedding is not None
        ]
        result = ReindexResult(attempted=len(pending))

        for start in range(0, len(pending), REINDEX_BATCH_SIZE):
            batch = pending[start:start + REINDEX_BATCH_SIZE]
            if await self.vector_index.add([self._to_record(c) for c in batch]):
                await self.chunk_repository.set_index_status([c.id for c in batch], IndexStatus.INDEXED)
                result.indexed += len(batch)
            else:
                result.failed += len(batch)

        logger.info(
            f"Reindexed agent {agent_id} knowledge {knowledge_id or '*'}: "
            f"{result.indexed}/{result.attempted} indexed, {result.failed} failed")
        return result

    # ─────────────── READ ───────────────
    async def list_chunks(self, agent_id: UUID, knowledge_id: UUID) -> List[ChunkRead]:
        """All chunks of the knowledge source in document order"""
        await self.allocator.verify_ownership(agent_id, knowledge_id)
        chunks = await self.chunk_repository.list_by_knowledge(agent_id, knowledge_id)
        return [ChunkRead.model_validate(c) for c in chunks]

    async def search_similar(
        self, agent_id: UUID, knowledge_id: UUID, query: str, top_k: int
    ) -> List[ChunkSearchHit]:
        """
        Nearest chunks of one knowledge source.

        Index hits are confirmed against the chunk store; hits that are gone
        or belong elsewhere are dropped, so fewer than `top_k` may come back.
        """
        await self.allocator.verify_ownership(agent_id, knowledge_id)
        self._validate_query(query, top_k)
        return await self._search(
            agent_id,
            query,
            top_k,
            {"agent_id": str(agent_id), "knowledge_id": str(knowledge_id)},
            knowledge_id=knowledge_id,
        )

    async def search_agent_context(self, agent_id: UUID, query: str, top_k: int) -> List[ChunkSearchHit]:
        """Nearest chunks across every knowledge source of the agent"""
        self._validate_query(query, top_k)
        return await self._search(agent_id, query, top_k, {"agent_id": str(agent_id)})

    # ───────────── internal helpers ─────────────
    @staticmethod
    def _require_content(content: Optional[str]) -> None:
        if not content or not content.strip():
            raise InvalidArgumentError(ErrorKey.EMPTY_CHUNK_CONTENT)

    @staticmethod
    def _validate_query(query: Optional[str], top_k: Optional[int]) -> None:
        if not query or not query.strip():
            raise InvalidArgumentError(ErrorKey.EMPTY_QUERY)
        if top_k is None or top_k <= 0:
            raise InvalidArgumentError(ErrorKey.INVALID_TOP_K, error_detail=f"top_k={top_k}")

    async def _get_owned_chunk(self, agent_id: UUID, knowledge_id: UUID, chunk_id: UUID) -> KnowledgeChunkModel:
        await self.allocator.verify_ownership(agent_id, knowledge_id)
        chunk = await self.chunk_repository.get_owned(agent_id, knowledge_id, chunk_id)
        if chunk is None:
            raise NotFoundError(
                ErrorKey.CHUNK_NOT_FOUND,
                error_detail=f"chunk={chunk_id} knowledge={knowledge_id} agent={agent_id}",
            )
        return chunk

    @staticmethod
    def _build_chunk(
        agent_id: UUID,
        knowledge_id: UUID,
        order: int,
        content: str,
        metadata: Dict[str, Any],
        vector: Optional[Sequence[float]],
    ) -> KnowledgeChunkModel:
        chunk = KnowledgeChunkModel(
            agent_id=agent_id,
            knowledge_id=knowledge_id,
            chunk_order=order,
            content=content,
            chunk_metadata=dict(metadata),
        )
        routed = assign_embedding(chunk, vector)
        chunk.index_status = (IndexStatus.PERSISTED_ONLY if routed else IndexStatus.UNINDEXABLE).value
        return chunk

    async def _persist(
        self,
        agent_id: UUID,
        knowledge_id: UUID,
        segments: List[Segment],
        vectors: List[Optional[Sequence[float]]],
    ) -> List[KnowledgeChunkModel]:
        """
        Save segments at consecutive positions while holding the knowledge source's order lock.

        The unique (knowledge_id, chunk_order) constraint catches writers in other
        processes; an allocated range that turns out taken is re-allocated.
        """
        max_attempts = max(settings.CHUNK_ORDER_MAX_RETRIES, 1)
        for attempt in range(1, max_attempts + 1):
            async with self.allocator.reserve(agent_id, knowledge_id) as start:
                chunks = [
                    self._build_chunk(agent_id, knowledge_id, start + i, content, metadata, vector)
                    for i, ((content, metadata), vector) in enumerate(zip(segments, vectors))
                ]
                try:
                    await self.chunk_repository.create_many(chunks)
                except IntegrityError as e:
                    logger.warning(
                        f"Chunk order {start} of knowledge {knowledge_id} was taken concurrently "
                        f"(attempt {attempt}/{max_attempts}): {e.orig if e.orig else e}")
                    continue
                logger.debug(f"Saved {len(chunks)} chunks at order {start} in knowledge {knowledge_id}")
                return chunks

        raise AppException(
            ErrorKey.CHUNK_ORDER_CONFLICT,
            status_code=409,
            error_detail=f"knowledge={knowledge_id} after {max_attempts} attempts",
        )

    @staticmethod
    def _to_record(chunk: KnowledgeChunkModel) -> VectorRecord:
        return VectorRecord(
            id=str(chunk.id),
            vector=chunk.embedding,
            content=chunk.content,
            agent_id=str(chunk.agent_id),
            knowledge_id=str(chunk.knowledge_id),
            metadata={**(chunk.chunk_metadata or {}), "chunk_order": chunk.chunk_order},
        )

    async def _index(self, chunks: List[KnowledgeChunkModel]) -> List[str]:
        indexable = [c for c in chunks if c.embedding is not None]
        if not indexable:
            return []

        if not await self.vector_index.add([self._to_record(c) for c in indexable]):
            ids = [str(c.id) for c in indexable]
            logger.error(f"IndexDesync: {len(ids)} chunks saved but not indexed: {ids}")
            return [f"IndexDesync: {len(ids)} chunk(s) saved but not indexed; run reindex to recover"]

        await self.chunk_repository.set_index_status([c.id for c in indexable], IndexStatus.INDEXED)
        for chunk in indexable:
            chunk.index_status = IndexStatus.INDEXED.value
        return []

    async def _search(
        self,
        agent_id: UUID,
        query: str,
        top_k: int,
        filter_dict: Dict[str, Any],
        knowledge_id: Optional[UUID] = None,
    ) -> List[ChunkSearchHit]:
        embedder = await self.client_cache.get_embedding_client(agent_id)
        query_vector = await embedder.embed_query(query)
        hits = await self.vector_index.search(query_vector, limit=top_k, filter_dict=filter_dict)

        scored: List[Tuple[UUID, float]] = []
        for hit in hits:
            try:
                scored.append((UUID(hit.id), hit.score))
            except ValueError:
                logger.debug(f"Dropping index hit with foreign id {hit.id}")
        chunks = {c.id: c for c in await self.chunk_repository.get_by_ids([chunk_id for chunk_id, _ in scored])}

        results = []
        for chunk_id, score in scored:
            chunk = chunks.get(chunk_id)
            if chunk is None or chunk.agent_id != agent_id or (
                    knowledge_id is not None and chunk.knowledge_id != knowledge_id):
                logger.debug(f"Dropping index hit {chunk_id}: missing or outside agent {agent_id} scope")
                continue
            results.append(ChunkSearchHit(chunk=ChunkRead.model_validate(chunk), score=score))
        return results
