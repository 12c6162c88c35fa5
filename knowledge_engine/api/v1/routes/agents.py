from typing import List
from uuid import UUID

from fastapi import APIRouter
from fastapi_injector import Injected

from knowledge_engine.schemas.agent import AgentCreate, AgentRead, AgentUpdate
from knowledge_engine.services.agents import AgentService

router = APIRouter()


@router.get("", response_model=List[AgentRead])
async def list_agents(service: AgentService = Injected(AgentService)):
    return await service.get_all()


@router.post("", response_model=AgentRead, status_code=201)
async def create_agent(data: AgentCreate, service: AgentService = Injected(AgentService)):
    return await service.create(data)


@router.get("/{agent_id}", response_model=AgentRead)
async def get_agent(agent_id: UUID, service: AgentService = Injected(AgentService)):
    return await service.get_by_id(agent_id)


@router.patch("/{agent_id}", response_model=AgentRead)
async def update_agent(agent_id: UUID, data: AgentUpdate, service: AgentService = Injected(AgentService)):
    """Update an agent; its cached provider clients are rebuilt on next use"""
    return await service.update(agent_id, data)


@router.delete("/{agent_id}", status_code=204)
async def delete_agent(agent_id: UUID, service: AgentService = Injected(AgentService)):
    await service.delete(agent_id)
