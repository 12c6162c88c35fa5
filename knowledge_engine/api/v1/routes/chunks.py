from typing import List
from uuid import UUID

from fastapi import APIRouter
from fastapi_injector import Injected

from knowledge_engine.modules.knowledge.coordinator import ChunkLifecycleCoordinator
from knowledge_engine.schemas.knowledge import (
    ChunkCreate,
    ChunkDeleteResult,
    ChunkRead,
    ChunkSearchHit,
    ChunkSearchRequest,
    ChunkUpdate,
    ChunkWriteResult,
)

router = APIRouter()


@router.get("/{agent_id}/knowledge/{knowledge_id}/chunks", response_model=List[ChunkRead])
async def list_chunks(
    agent_id: UUID,
    knowledge_id: UUID,
    coordinator: ChunkLifecycleCoordinator = Injected(ChunkLifecycleCoordinator),
):
    """Chunks in document order"""
    return await coordinator.list_chunks(agent_id, knowledge_id)


@router.post("/{agent_id}/knowledge/{knowledge_id}/chunks", response_model=ChunkWriteResult, status_code=201)
async def add_chunk(
    agent_id: UUID,
    knowledge_id: UUID,
    data: ChunkCreate,
    coordinator: ChunkLifecycleCoordinator = Injected(ChunkLifecycleCoordinator),
):
    return await coordinator.add_chunk(agent_id, knowledge_id, data.content, data.metadata)


@router.post("/{agent_id}/knowledge/{knowledge_id}/chunks/search", response_model=List[ChunkSearchHit])
async def search_chunks(
    agent_id: UUID,
    knowledge_id: UUID,
    request: ChunkSearchRequest,
    coordinator: ChunkLifecycleCoordinator = Injected(ChunkLifecycleCoordinator),
):
    return await coordinator.search_similar(agent_id, knowledge_id, request.query, request.top_k)


@router.put("/{agent_id}/knowledge/{knowledge_id}/chunks/{chunk_id}", response_model=ChunkWriteResult)
async def update_chunk(
    agent_id: UUID,
    knowledge_id: UUID,
    chunk_id: UUID,
    data: ChunkUpdate,
    coordinator: ChunkLifecycleCoordinator = Injected(ChunkLifecycleCoordinator),
):
    return await coordinator.update_chunk(agent_id, knowledge_id, chunk_id, data.content, data.metadata)


@router.delete("/{agent_id}/knowledge/{knowledge_id}/chunks/{chunk_id}", response_model=ChunkDeleteResult)
async def delete_chunk(
    agent_id: UUID,
    knowledge_id: UUID,
    chunk_id: UUID,
    coordinator: ChunkLifecycleCoordinator = Injected(ChunkLifecycleCoordinator),
):
    return await coordinator.delete_chunk(agent_id, knowledge_id, chunk_id)
