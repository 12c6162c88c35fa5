"""
Base vector index interface
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from knowledge_engine.core.config.settings import settings


class VectorIndexConfig(BaseModel):
    """Configuration for the vector index"""
    type: str = Field(default="qdrant", description="Type of vector index (qdrant, memory)")
    url: Optional[str] = Field(default=None, description="Index server URL")
    api_key: Optional[str] = Field(default=None, description="Index server API key")
    collection_prefix: str = Field(
        default="knowledge_chunks", description="Collections are named <prefix>_<dimension>")
    distance_metric: str = Field(
        default="cosine", description="Distance metric (cosine, euclidean, dot_product)")
    dimensions: List[int] = Field(
        default_factory=lambda: list(settings.SUPPORTED_EMBEDDING_DIMENSIONS),
        description="Embedding dimensions the index keeps collections for")

    @field_validator('distance_metric')
    @classmethod
    def validate_distance_metric(cls, v):
        allowed_metrics = ['cosine', 'euclidean', 'dot_product']
        if v not in allowed_metrics:
            raise ValueError(
                f'distance_metric must be one of {allowed_metrics}')
        return v

    @classmethod
    def from_settings(cls) -> "VectorIndexConfig":
        return cls(
            type=settings.VECTOR_INDEX_TYPE,
            url=settings.QDRANT_URL,
            api_key=settings.QDRANT_API_KEY,
            collection_prefix=settings.QDRANT_COLLECTION_PREFIX,
            distance_metric=settings.VECTOR_DISTANCE_METRIC,
        )

    def get(self) -> "BaseVectorIndex":
        if self.type == "qdrant":
            from .qdrant import QdrantVectorIndex
            return QdrantVectorIndex(self.model_copy())
        elif self.type == "memory":
            from .memory import InMemoryVectorIndex
            return InMemoryVectorIndex(self.model_copy())
        else:
            raise ValueError(f"Invalid vector index type: {self.type}")


class VectorRecord(BaseModel):
    """Similarity-searchable projection of one chunk"""
    id: str = Field(description="Chunk identifier")
    vector: List[float] = Field(description="Embedding vector")
    content: str = Field(description="Text content")
    agent_id: str
    knowledge_id: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SearchResult(BaseModel):
    """Result from vector search"""
    id: str = Field(description="Chunk identifier")
    content: str = Field(description="Text content")
    metadata: Dict[str, Any] = Field(description="Associated metadata")
    score: float = Field(description="Relevance score")
    distance: Optional[float] = Field(
        default=None, description="Distance from query vector")

    model_config = ConfigDict(extra="allow")

    @field_validator('score')
    @classmethod
    def validate_score(cls, v):
        if v < 0 or v > 1:
            raise ValueError('score must be between 0 and 1')
        return v

    @field_validator('distance')
    @classmethod
    def validate_distance(cls, v):
        if v is not None and v < 0:
            raise ValueError('distance must be non-negative')
        return v

    def __init__(self, **data):
        # Convert distance to score if not provided
        if data.get('distance') is not None and data.get('score') is None:
            distance = data['distance']
            data['score'] = 1.0 if distance == 0 else 1.0 / (1.0 + distance)
        super().__init__(**data)


class BaseVectorIndex(ABC):
    """
    Base class for vector index providers.

    Write operations report success as a boolean and never raise: the
    relational store stays authoritative and callers record failed writes
    for reconciliation. `search` raises when the index cannot be queried.
    """

    def __init__(self, config: VectorIndexConfig):
        self.config = config

    def collection_name(self, dimension: int) -> str:
        return f"{self.config.collection_prefix}_{dimension}"

    @abstractmethod
    async def initialize(self) -> bool:
        """Open the index connection"""
        raise NotImplementedError

    @abstractmethod
    async def add(self, records: List[VectorRecord]) -> bool:
        """
        Insert or replace records

        Args:
            records: Records to write, possibly of mixed dimensions

        Returns:
            Success status
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, ids: List[str]) -> bool:
        """Delete records by chunk id"""
        raise NotImplementedError

    @abstractmethod
    async def delete_where(self, filter_dict: Dict[str, Any]) -> bool:
        """Delete every record whose payload matches all `filter_dict` items"""
        raise NotImplementedError

    @abstractmethod
    async def search(
        self,
        query_vector: List[float],
        limit: int = 5,
        filter_dict: Optional[Dict[str, Any]] = None
    ) -> List[SearchResult]:
        """
        Nearest neighbours of `query_vector` among records of the same dimension

        Args:
            query_vector: Query embedding vector
            limit: Maximum number of results
            filter_dict: Optional payload filters (agent_id, knowledge_id)

        Returns:
            Results ordered by descending score
        """
        raise NotImplementedError

    async def close(self):
        """Close the index connection"""
        pass
