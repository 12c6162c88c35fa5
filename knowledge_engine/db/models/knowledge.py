import enum
from typing import Optional
from uuid import UUID
from sqlalchemy import Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from knowledge_engine.db.base import Base


class SourceType(str, enum.Enum):
    FILE = "FILE"
    URL = "URL"
    DATABASE = "DATABASE"
    TEXT = "TEXT"


class IndexStatus(str, enum.Enum):
    INDEXED = "indexed"
    PERSISTED_ONLY = "persisted_only"  # saved, missing from the vector index
    UNINDEXABLE = "unindexable"  # no supported embedding column populated


class KnowledgeSourceModel(Base):
    __tablename__ = "knowledge_sources"

    agent_id: Mapped[UUID] = mapped_column(
        ForeignKey("agents.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    source_type: Mapped[str] = mapped_column(String(20), default=SourceType.FILE.value)
    source_uri: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    extra_metadata: Mapped[dict] = mapped_column(JSONB, default=dict)

    agent = relationship("AgentModel", back_populates="knowledge_sources")
    chunks = relationship(
        "KnowledgeChunkModel", back_populates="knowledge", passive_deletes=True)


class KnowledgeChunkModel(Base):
    __tablename__ = "knowledge_chunks"
    __table_args__ = (
        UniqueConstraint("knowledge_id", "chunk_order", name="uq_knowledge_chunks_knowledge_order"),
        Index("ix_knowledge_chunks_agent_status", "agent_id", "index_status"),
    )

    knowledge_id: Mapped[UUID] = mapped_column(
        ForeignKey("knowledge_sources.id", ondelete="CASCADE"), index=True)
    # denormalized owner, must equal knowledge_sources.agent_id
    agent_id: Mapped[UUID] = mapped_column(
        ForeignKey("agents.id", ondelete="CASCADE"))
    chunk_order: Mapped[int] = mapped_column(Integer)
    content: Mapped[str] = mapped_column(Text)
    chunk_metadata: Mapped[dict] = mapped_column(JSONB, default=dict)

    embedding_768: Mapped[Optional[list[float]]] = mapped_column(ARRAY(Float), nullable=True)
    embedding_1536: Mapped[Optional[list[float]]] = mapped_column(ARRAY(Float), nullable=True)
    index_status: Mapped[str] = mapped_column(
        String(20), default=IndexStatus.PERSISTED_ONLY.value)

    knowledge = relationship("KnowledgeSourceModel", back_populates="chunks")

    @property
    def embedding(self) -> Optional[list[float]]:
        if self.embedding_1536 is not None:
            return list(self.embedding_1536)
        if self.embedding_768 is not None:
            return list(self.embedding_768)
        return None
