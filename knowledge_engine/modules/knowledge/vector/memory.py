"""
In-process vector index for development and tests
"""

import logging
from typing import Any, Dict, List, Optional
import numpy as np

from .base import BaseVectorIndex, SearchResult, VectorIndexConfig, VectorRecord

logger = logging.getLogger(__name__)


class InMemoryVectorIndex(BaseVectorIndex):
    """Exact cosine search over vectors held in a dict"""

    def __init__(self, config: Optional[VectorIndexConfig] = None):
        super().__init__(config or VectorIndexConfig(type="memory"))
        self._records: Dict[str, VectorRecord] = {}
        self._vectors: Dict[str, np.ndarray] = {}

    async def initialize(self) -> bool:
        logger.info("Initialized in-memory vector index")
        return True

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: str) -> bool:
        return record_id in self._records

    async def add(self, records: List[VectorRecord]) -> bool:
        for record in records:
            vector = np.asarray(record.vector, dtype=np.float32)
            norm = np.linalg.norm(vector)
            self._vectors[record.id] = vector / norm if norm else vector
            self._records[record.id] = record
        return True

    async def delete(self, ids: List[str]) -> bool:
        for record_id in ids:
            self._records.pop(record_id, None)
            self._vectors.pop(record_id, None)
        return True

    async def delete_where(self, filter_dict: Dict[str, Any]) -> bool:
        doomed = [r.id for r in self._records.values() if self._matches(r, filter_dict)]
        return await self.delete(doomed)

    @staticmethod
    def _matches(record: VectorRecord, filter_dict: Optional[Dict[str, Any]]) -> bool:
        if not filter_dict:
            return True
        payload = {"agent_id": record.agent_id, "knowledge_id": record.knowledge_id, **record.metadata}
        return all(payload.get(key) == value for key, value in filter_dict.items())

    async def search(
        self,
        query_vector: List[float],
        limit: int = 5,
        filter_dict: Optional[Dict[str, Any]] = None,
    ) -> List[SearchResult]:
        query = np.asarray(query_vector, dtype=np.float32)
        norm = np.linalg.norm(query)
        if norm:
            query = query / norm

        candidates = [
            r for r in self._records.values()
            if len(r.vector) == len(query_vector) and self._matches(r, filter_dict)
        ]
        if not candidates:
            return []

        matrix = np.stack([self._vectors[r.id] for r in candidates])
        similarities = matrix @ query
        order = np.argsort(-similarities)[:limit]

        results = []
        for i in order:
            record = candidates[int(i)]
            distance = max(1.0 - float(similarities[int(i)]), 0.0)
            results.append(SearchResult(
                id=record.id,
                content=record.content,
                metadata={**record.metadata, "agent_id": record.agent_id, "knowledge_id": record.knowledge_id},
                score=None,
                distance=distance,
            ))
        return results
