from uuid import UUID
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class ConversationRead(BaseModel):
    id: UUID
    agent_id: UUID
    name: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChatMessageRead(BaseModel):
    id: UUID
    conversation_id: UUID
    role: Literal["user", "assistant"]
    content: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConversationRename(BaseModel):
    name: str = Field(min_length=1)


class ChatRequest(BaseModel):
    question: str
    conversation_id: Optional[UUID] = None
