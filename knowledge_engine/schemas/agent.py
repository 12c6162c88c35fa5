from uuid import UUID
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class AgentBase(BaseModel):
    name: str
    description: Optional[str] = None
    instructions: Optional[str] = None

    provider_name: str = "openai"
    provider_model_name: str
    provider_embedding_model_name: str
    dimension: int = 1536
    base_url: Optional[str] = None
    chat_completions_path: Optional[str] = None
    embeddings_path: Optional[str] = None

    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    top_p: float = Field(default=1.0, ge=0.0, le=1.0)
    max_tokens: int = Field(default=2048, gt=0)

    is_default: bool = False
    enabled_tools: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class AgentCreate(AgentBase):
    provider_api_key: Optional[str] = None


class AgentUpdate(BaseModel):
    """Partial update; only fields that are set are applied"""
    name: Optional[str] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    provider_name: Optional[str] = None
    provider_model_name: Optional[str] = None
    provider_embedding_model_name: Optional[str] = None
    dimension: Optional[int] = None
    base_url: Optional[str] = None
    chat_completions_path: Optional[str] = None
    embeddings_path: Optional[str] = None
    provider_api_key: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    is_default: Optional[bool] = None
    enabled_tools: Optional[List[str]] = None


class AgentRead(AgentBase):
    id: UUID
    created_at: datetime
    updated_at: datetime


class AgentProviderConfig(BaseModel):
    """Snapshot of the provider settings a client pair is built from"""
    agent_id: UUID
    provider_name: str
    model_name: str
    embedding_model_name: str
    dimension: int
    base_url: Optional[str] = None
    chat_completions_path: Optional[str] = None
    embeddings_path: Optional[str] = None
    api_key: Optional[str] = None
    temperature: float = 0.7
    top_p: float = 1.0
    max_tokens: int = 2048

    model_config = ConfigDict(frozen=True)
