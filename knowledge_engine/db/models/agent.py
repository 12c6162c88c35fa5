from typing import Optional
from sqlalchemy import Boolean, Float, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from knowledge_engine.db.base import Base


class AgentModel(Base):
    __tablename__ = "agents"

    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ───────────────────────────── provider configuration ─────────────────────
    provider_name: Mapped[str] = mapped_column(String(50))
    provider_model_name: Mapped[str] = mapped_column(String(100))
    provider_embedding_model_name: Mapped[str] = mapped_column(String(100))
    dimension: Mapped[int] = mapped_column(Integer, default=1536)
    base_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    chat_completions_path: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    embeddings_path: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    provider_api_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ───────────────────────────────── chat options ───────────────────────────
    temperature: Mapped[float] = mapped_column(Float, default=0.7)
    top_p: Mapped[float] = mapped_column(Float, default=1.0)
    max_tokens: Mapped[int] = mapped_column(Integer, default=2048)

    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    enabled_tools: Mapped[list[str]] = mapped_column(JSONB, default=list)

    knowledge_sources = relationship(
        "KnowledgeSourceModel", back_populates="agent", passive_deletes=True)
