from typing import List
from uuid import UUID

from fastapi import APIRouter
from fastapi.responses import StreamingResponse
from fastapi_injector import Injected

from knowledge_engine.schemas.conversation import (
    ChatMessageRead,
    ChatRequest,
    ConversationRead,
    ConversationRename,
)
from knowledge_engine.services.conversations import ConversationService

router = APIRouter()


@router.post("/{agent_id}/chat")
async def chat(
    agent_id: UUID,
    request: ChatRequest,
    service: ConversationService = Injected(ConversationService),
):
    """Stream the answer as plain text; the exchange is stored once the stream completes"""
    stream = await service.chat(agent_id, request.question, request.conversation_id)
    return StreamingResponse(stream, media_type="text/plain; charset=utf-8")


@router.get("/{agent_id}/conversations", response_model=List[ConversationRead])
async def list_conversations(
    agent_id: UUID,
    service: ConversationService = Injected(ConversationService),
):
    return await service.list_conversations(agent_id)


@router.get("/{agent_id}/conversations/{conversation_id}/messages", response_model=List[ChatMessageRead])
async def list_messages(
    agent_id: UUID,
    conversation_id: UUID,
    service: ConversationService = Injected(ConversationService),
):
    return await service.list_messages(agent_id, conversation_id)


@router.patch("/{agent_id}/conversations/{conversation_id}", response_model=ConversationRead)
async def rename_conversation(
    agent_id: UUID,
    conversation_id: UUID,
    data: ConversationRename,
    service: ConversationService = Injected(ConversationService),
):
    return await service.rename(agent_id, conversation_id, data.name)


@router.delete("/{agent_id}/conversations/{conversation_id}", status_code=204)
async def delete_conversation(
    agent_id: UUID,
    conversation_id: UUID,
    service: ConversationService = Injected(ConversationService),
):
    await service.delete(agent_id, conversation_id)
