from uuid import UUID
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from knowledge_engine.db.models import IndexStatus, SourceType


class KnowledgeBase(BaseModel):
    name: str
    description: Optional[str] = None
    source_type: SourceType = SourceType.FILE
    source_uri: Optional[str] = None
    extra_metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)


class KnowledgeCreate(KnowledgeBase):
    """Body model for POST (no id)"""


class KnowledgeUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    source_uri: Optional[str] = None
    extra_metadata: Optional[Dict[str, Any]] = None


class KnowledgeRead(KnowledgeBase):
    id: UUID
    agent_id: UUID
    created_at: datetime
    updated_at: datetime


# ───────────────────────────── chunks ─────────────────────────────
class ChunkCreate(BaseModel):
    """Positions are always allocated by the server"""
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class ChunkUpdate(BaseModel):
    content: str
    # None keeps the current metadata, {} clears it
    metadata: Optional[Dict[str, Any]] = None


class ChunkRead(BaseModel):
    id: UUID
    knowledge_id: UUID
    agent_id: UUID
    chunk_order: int
    content: str
    chunk_metadata: Dict[str, Any] = Field(default_factory=dict)
    index_status: IndexStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ChunkWriteResult(BaseModel):
    """A chunk write that succeeded relationally; `warnings` lists vector index problems"""
    chunk: ChunkRead
    indexed: bool
    warnings: List[str] = Field(default_factory=list)


class ChunkBatchResult(BaseModel):
    chunks: List[ChunkRead] = Field(default_factory=list)
    indexed: int = 0
    warnings: List[str] = Field(default_factory=list)


class ChunkDeleteResult(BaseModel):
    chunk_id: UUID
    warnings: List[str] = Field(default_factory=list)


class ChunkSearchRequest(BaseModel):
    query: str
    top_k: int = 5


class ChunkSearchHit(BaseModel):
    chunk: ChunkRead
    score: float


class ReindexResult(BaseModel):
    attempted: int = 0
    indexed: int = 0
    failed: int = 0


class ImportResult(BaseModel):
    original_filename: str
    number_of_segments: int
    indexed_segments: int
    content_type: Optional[str] = None
    file_size: int
    chunking_profile: str
    knowledge_id: UUID
    agent_id: UUID
    warnings: List[str] = Field(default_factory=list)
