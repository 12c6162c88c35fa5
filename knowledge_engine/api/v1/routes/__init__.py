from fastapi import APIRouter

from knowledge_engine.api.v1.routes import admin, agents, chunks, conversations, knowledge


router = APIRouter()

router.include_router(agents.router, prefix="/agents", tags=["Agents"])
router.include_router(knowledge.router, prefix="/agents", tags=["Knowledge"])
router.include_router(chunks.router, prefix="/agents", tags=["Knowledge Chunks"])
router.include_router(conversations.router, prefix="/agents", tags=["Conversations"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])
