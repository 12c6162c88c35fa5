from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter
from fastapi_injector import Injected

from knowledge_engine.modules.providers.cache import ProviderClientCache

router = APIRouter()


@router.get("/provider-cache", response_model=Dict[str, Any])
async def provider_cache_stats(cache: ProviderClientCache = Injected(ProviderClientCache)):
    return cache.get_stats()


@router.post("/provider-cache/invalidate", response_model=Dict[str, Any])
async def invalidate_all_provider_clients(cache: ProviderClientCache = Injected(ProviderClientCache)):
    return {"status": "success", "invalidated": cache.invalidate_all()}


@router.post("/provider-cache/{agent_id}/invalidate", response_model=Dict[str, Any])
async def invalidate_provider_clients(
    agent_id: UUID,
    cache: ProviderClientCache = Injected(ProviderClientCache),
):
    return {"status": "success", "invalidated": cache.invalidate(agent_id)}
