"""
Qdrant vector index implementation
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Set
from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    PayloadSchemaType,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import UpstreamFailureError
from .base import BaseVectorIndex, SearchResult, VectorIndexConfig, VectorRecord

logger = logging.getLogger(__name__)


class QdrantVectorIndex(BaseVectorIndex):
    """Qdrant provider keeping one collection per embedding dimension"""

    def __init__(self, config: VectorIndexConfig):
        super().__init__(config)
        self.client: Optional[AsyncQdrantClient] = None
        self._known_collections: Set[str] = set()
        self._collection_lock = asyncio.Lock()

    async def initialize(self) -> bool:
        """Initialize the Qdrant connection"""
        try:
            logger.info(f"Connecting to Qdrant at: {self.config.url}")
            self.client = AsyncQdrantClient(url=self.config.url, api_key=self.config.api_key)
            collections = await self.client.get_collections()
            self._known_collections = {c.name for c in collections.collections}
            logger.info(f"Initialized Qdrant connection, {len(self._known_collections)} collections")
            return True
        except Exception as e:
            logger.error(f"Failed to initialize Qdrant: {e}")
            return False

    def _get_distance_metric(self) -> Distance:
        metric_map = {
            "cosine": Distance.COSINE,
            "euclidean": Distance.EUCLID,
            "dot_product": Distance.DOT,
        }
        return metric_map.get(self.config.distance_metric, Distance.COSINE)

    async def _ensure_collection(self, dimension: int) -> str:
        name = self.collection_name(dimension)
        if name in self._known_collections:
            return name

        async with self._collection_lock:
            if name in self._known_collections:
                return name
            if not await self.client.collection_exists(name):
                logger.info(f"Creating Qdrant collection '{name}' with dimension {dimension}")
                await self.client.create_collection(
                    collection_name=name,
                    vectors_config=VectorParams(size=dimension, distance=self._get_distance_metric()),
                )
                for field in ("agent_id", "knowledge_id"):
                    await self.client.create_payload_index(
                        collection_name=name,
                        field_name=field,
                        field_schema=PayloadSchemaType.KEYWORD,
                    )
            self._known_collections.add(name)
        return name

    @staticmethod
    def _build_qdrant_filter(filter_dict: Optional[Dict[str, Any]]) -> Optional[Filter]:
        if not filter_dict:
            return None
        conditions = [
            FieldCondition(key=key, match=MatchValue(value=value))
            for key, value in filter_dict.items()
        ]
        return Filter(must=conditions)

    async def add(self, records: List[VectorRecord]) -> bool:
        if not records:
            return True
        try:
            if not self.client and not await self.initialize():
                return False

            by_dimension: Dict[int, List[PointStruct]] = defaultdict(list)
            for record in records:
                payload = {
                    "chunk_id": record.id,
                    "agent_id": record.agent_id,
                    "knowledge_id": record.knowledge_id,
                    "content": record.content,
                    "metadata": record.metadata,
                }
                by_dimension[len(record.vector)].append(
                    PointStruct(id=record.id, vector=record.vector, payload=payload))

            for dimension, points in by_dimension.items():
                collection = await self._ensure_collection(dimension)
                await self.client.upsert(collection_name=collection, points=points)

            logger.info(f"Added {len(records)} vectors to Qdrant")
            return True

        except Exception as e:
            logger.error(f"Failed to add vectors to Qdrant: {e}")
            return False

    async def delete(self, ids: List[str]) -> bool:
        if not ids:
            return True
        try:
            if not self.client and not await self.initialize():
                return False

            # a chunk lives in the collection of its dimension, which the caller may not know
            for dimension in self.config.dimensions:
                name = self.collection_name(dimension)
                if name not in self._known_collections and not await self.client.collection_exists(name):
                    continue
                await self.client.delete(
                    collection_name=name, points_selector=PointIdsList(points=list(ids)))

            logger.info(f"Deleted {len(ids)} vectors from Qdrant")
            return True

        except Exception as e:
            logger.error(f"Failed to delete vectors from Qdrant: {e}")
            return False

    async def delete_where(self, filter_dict: Dict[str, Any]) -> bool:
        try:
            if not self.client and not await self.initialize():
                return False

            qdrant_filter = self._build_qdrant_filter(filter_dict)
            for dimension in self.config.dimensions:
                name = self.collection_name(dimension)
                if name not in self._known_collections and not await self.client.collection_exists(name):
                    continue
                await self.client.delete(
                    collection_name=name, points_selector=FilterSelector(filter=qdrant_filter))

            logger.info(f"Deleted Qdrant vectors matching {filter_dict}")
            return True

        except Exception as e:
            logger.error(f"Failed to delete vectors by filter from Qdrant: {e}")
            return False

    async def search(
        self,
        query_vector: List[float],
        limit: int = 5,
        filter_dict: Optional[Dict[str, Any]] = None,
    ) -> List[SearchResult]:
        try:
            if not self.client and not await self.initialize():
                raise ConnectionError("Qdrant client not initialized")

            name = self.collection_name(len(query_vector))
            if name not in self._known_collections and not await self.client.collection_exists(name):
                return []

            query_response = await self.client.query_points(
                collection_name=name,
                query=query_vector,
                limit=limit,
                query_filter=self._build_qdrant_filter(filter_dict),
                with_payload=True,
                with_vectors=False,
            )
        except Exception as e:
            logger.error(f"Failed to search Qdrant: {e}")
            raise UpstreamFailureError(
                ErrorKey.VECTOR_INDEX_UNAVAILABLE, status_code=503, error_detail=str(e))

        results = []
        for point in query_response.points:
            payload = dict(point.payload or {})
            score = point.score
            # Qdrant returns similarity for cosine / dot and distance for euclid
            if self.config.distance_metric == "euclidean":
                distance = max(score, 0.0)
            else:
                distance = max(1.0 - score, 0.0)

            metadata = dict(payload.get("metadata") or {})
            metadata.update(agent_id=payload.get("agent_id"), knowledge_id=payload.get("knowledge_id"))
            results.append(SearchResult(
                id=str(payload.get("chunk_id") or point.id),
                content=payload.get("content", ""),
                metadata=metadata,
                score=None,  # derived from distance
                distance=distance,
            ))
        return results

    async def close(self):
        if self.client is not None:
            await self.client.close()
            self.client = None
        logger.debug("Closed Qdrant connection")
