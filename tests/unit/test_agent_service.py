from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, call
from uuid import uuid4

import pytest

from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import NotFoundError, UnsupportedConfigurationError
from knowledge_engine.db.models import AgentModel
from knowledge_engine.modules.knowledge.coordinator import ChunkLifecycleCoordinator
from knowledge_engine.modules.providers.cache import ProviderClientCache
from knowledge_engine.modules.providers.registry import ProviderRegistry
from knowledge_engine.repositories.agent import AgentRepository
from knowledge_engine.schemas.agent import AgentCreate, AgentRead, AgentUpdate
from knowledge_engine.services.agents import AgentService


@pytest.fixture
def mock_repository():
    return AsyncMock(spec=AgentRepository)


@pytest.fixture
def mock_client_cache():
    return MagicMock(spec=ProviderClientCache)


@pytest.fixture
def mock_coordinator():
    return AsyncMock(spec=ChunkLifecycleCoordinator)


@pytest.fixture
def agent_service(mock_repository, mock_client_cache, mock_coordinator):
    return AgentService(
        repository=mock_repository,
        client_cache=mock_client_cache,
        registry=ProviderRegistry.default(),
        coordinator=mock_coordinator,
    )


@pytest.fixture
def sample_agent_data():
    return {
        "name": "support",
        "description": "Customer support agent",
        "instructions": "Be helpful.",
        "provider_name": "openai",
        "provider_model_name": "gpt-4o-mini",
        "provider_embedding_model_name": "text-embedding-3-small",
        "dimension": 1536,
        "temperature": 0.7,
        "top_p": 1.0,
        "max_tokens": 2048,
        "is_default": False,
        "enabled_tools": [],
    }


def _agent_model(data):
    now = datetime.now(timezone.utc)
    return AgentModel(**data, id=uuid4(), created_at=now, updated_at=now)


@pytest.mark.asyncio
async def test_create_success(agent_service, mock_repository, sample_agent_data):
    # Setup
    mock_repository.create.side_effect = lambda model: _agent_model(
        {k: getattr(model, k) for k in sample_agent_data})

    # Execute
    result = await agent_service.create(AgentCreate(**sample_agent_data, provider_api_key="sk-test"))

    # Assert
    mock_repository.create.assert_called_once()
    assert mock_repository.create.call_args.args[0].provider_api_key == "sk-test"
    assert isinstance(result, AgentRead)
    assert result.name == "support"


@pytest.mark.asyncio
async def test_create_unsupported_provider(agent_service, mock_repository, sample_agent_data):
    sample_agent_data["provider_name"] = "carrier-pigeon"

    with pytest.raises(UnsupportedConfigurationError) as exc_info:
        await agent_service.create(AgentCreate(**sample_agent_data))

    assert exc_info.value.error_key == ErrorKey.PROVIDER_NOT_SUPPORTED
    mock_repository.create.assert_not_called()


@pytest.mark.asyncio
async def test_create_unsupported_dimension(agent_service, mock_repository, sample_agent_data):
    sample_agent_data["dimension"] = 512

    with pytest.raises(UnsupportedConfigurationError) as exc_info:
        await agent_service.create(AgentCreate(**sample_agent_data))

    assert exc_info.value.error_key == ErrorKey.UNSUPPORTED_EMBEDDING_DIMENSION


@pytest.mark.asyncio
async def test_update_invalidates_after_commit(agent_service, mock_repository, mock_client_cache,
                                               sample_agent_data):
    # Setup: record the order of the commit and the invalidation
    agent = _agent_model(sample_agent_data)
    mock_repository.get_by_id.return_value = agent
    events = []

    async def update(model):
        events.append("commit")
        return model

    mock_repository.update.side_effect = update
    mock_client_cache.invalidate.side_effect = lambda agent_id: events.append("invalidate")

    # Execute
    result = await agent_service.update(agent.id, AgentUpdate(provider_model_name="gpt-4o", provider_api_key="sk-new"))

    # Assert
    assert events == ["commit", "invalidate"]
    mock_client_cache.invalidate.assert_called_once_with(agent.id)
    assert result.provider_model_name == "gpt-4o"
    assert agent.provider_api_key == "sk-new"
    assert agent.name == "support"


@pytest.mark.asyncio
async def test_update_not_found(agent_service, mock_repository, mock_client_cache):
    mock_repository.get_by_id.return_value = None

    with pytest.raises(NotFoundError) as exc_info:
        await agent_service.update(uuid4(), AgentUpdate(name="renamed"))

    assert exc_info.value.error_key == ErrorKey.AGENT_NOT_FOUND
    mock_client_cache.invalidate.assert_not_called()


@pytest.mark.asyncio
async def test_delete_clears_cache_rows_and_index(agent_service, mock_repository, mock_client_cache,
                                                  mock_coordinator, sample_agent_data):
    agent = _agent_model(sample_agent_data)
    mock_repository.get_by_id.return_value = agent

    await agent_service.delete(agent.id)

    mock_client_cache.forget.assert_called_once_with(agent.id)
    mock_repository.delete.assert_called_once_with(agent)
    mock_coordinator.delete_agent_index.assert_called_once_with(agent.id)


@pytest.mark.asyncio
async def test_get_all(agent_service, mock_repository, sample_agent_data):
    mock_repository.get_all.return_value = [_agent_model(sample_agent_data) for _ in range(3)]

    result = await agent_service.get_all()

    assert len(result) == 3
    assert mock_repository.get_all.call_args_list == [call()]
