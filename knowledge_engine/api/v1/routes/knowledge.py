import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, File, Form, Query, UploadFile
from fastapi_injector import Injected

from knowledge_engine.modules.knowledge.coordinator import ChunkLifecycleCoordinator
from knowledge_engine.schemas.knowledge import (
    ImportResult,
    KnowledgeCreate,
    KnowledgeRead,
    KnowledgeUpdate,
    ReindexResult,
)
from knowledge_engine.services.knowledge_import import KnowledgeImportService
from knowledge_engine.services.knowledge_sources import KnowledgeSourceService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{agent_id}/knowledge", response_model=List[KnowledgeRead])
async def list_knowledge(
    agent_id: UUID,
    service: KnowledgeSourceService = Injected(KnowledgeSourceService),
):
    return await service.list_by_agent(agent_id)


@router.post("/{agent_id}/knowledge", response_model=KnowledgeRead, status_code=201)
async def create_knowledge(
    agent_id: UUID,
    data: KnowledgeCreate,
    service: KnowledgeSourceService = Injected(KnowledgeSourceService),
):
    return await service.create(agent_id, data)


@router.post("/{agent_id}/knowledge/reindex", response_model=ReindexResult)
async def reindex_knowledge(
    agent_id: UUID,
    knowledge_id: Optional[UUID] = Query(default=None),
    coordinator: ChunkLifecycleCoordinator = Injected(ChunkLifecycleCoordinator),
):
    """Index chunks that were saved while the vector index was unavailable"""
    return await coordinator.reindex_persisted_only_chunks(agent_id, knowledge_id)


@router.get("/{agent_id}/knowledge/{knowledge_id}", response_model=KnowledgeRead)
async def get_knowledge(
    agent_id: UUID,
    knowledge_id: UUID,
    service: KnowledgeSourceService = Injected(KnowledgeSourceService),
):
    return await service.get(agent_id, knowledge_id)


@router.patch("/{agent_id}/knowledge/{knowledge_id}", response_model=KnowledgeRead)
async def update_knowledge(
    agent_id: UUID,
    knowledge_id: UUID,
    data: KnowledgeUpdate,
    service: KnowledgeSourceService = Injected(KnowledgeSourceService),
):
    return await service.update(agent_id, knowledge_id, data)


@router.delete("/{agent_id}/knowledge/{knowledge_id}", status_code=204)
async def delete_knowledge(
    agent_id: UUID,
    knowledge_id: UUID,
    service: KnowledgeSourceService = Injected(KnowledgeSourceService),
):
    await service.delete(agent_id, knowledge_id)


@router.post("/{agent_id}/knowledge/{knowledge_id}/import", response_model=ImportResult)
async def import_document(
    agent_id: UUID,
    knowledge_id: UUID,
    file: UploadFile = File(...),
    profile: Optional[str] = Form(default=None),
    service: KnowledgeImportService = Injected(KnowledgeImportService),
):
    """Import a document; `profile` overrides the detected chunking profile"""
    content = await file.read()
    return await service.import_file(
        agent_id,
        knowledge_id,
        filename=file.filename,
        content=content,
        content_type=file.content_type,
        profile=profile or None,
    )
