from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from langchain_core.messages import AIMessage, AIMessageChunk, SystemMessage, ToolMessage
from pydantic import BaseModel

from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import UpstreamFailureError
from knowledge_engine.db.models import AgentModel, IndexStatus
from knowledge_engine.modules.chat.prompts import build_system_prompt, build_user_prompt
from knowledge_engine.modules.chat.tools import ToolDescriptor, ToolRegistry, current_datetime
from knowledge_engine.modules.knowledge.coordinator import ChunkLifecycleCoordinator
from knowledge_engine.modules.providers.cache import ProviderClientCache
from knowledge_engine.repositories.agent import AgentRepository
from knowledge_engine.schemas.knowledge import ChunkRead, ChunkSearchHit
from knowledge_engine.services.chat_model import ChatModelService, content_text


class ScriptedChatModel:
    """Streams one scripted list of chunks per round and records what it was sent"""

    def __init__(self, rounds, title="Quarterly Revenue Summary"):
        self.rounds = list(rounds)
        self.title = title
        self.received = []
        self.bound_tools = None

    def bind_tools(self, tools):
        self.bound_tools = tools
        return self

    async def astream(self, messages):
        self.received.append(list(messages))
        for chunk in self.rounds.pop(0):
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    async def ainvoke(self, messages):
        if isinstance(self.title, Exception):
            raise self.title
        return AIMessage(content=self.title)


@pytest.fixture
def agent():
    return AgentModel(
        id=uuid4(),
        name="support",
        instructions="Answer in one paragraph.",
        provider_name="openai",
        provider_model_name="gpt-4o-mini",
        provider_embedding_model_name="text-embedding-3-small",
        dimension=1536,
        enabled_tools=[],
    )


@pytest.fixture
def mock_agent_repository(agent):
    repository = AsyncMock(spec=AgentRepository)
    repository.get_by_id.return_value = agent
    return repository


@pytest.fixture
def mock_coordinator():
    coordinator = AsyncMock(spec=ChunkLifecycleCoordinator)
    coordinator.search_agent_context.return_value = []
    return coordinator


@pytest.fixture
def mock_client_cache():
    return AsyncMock(spec=ProviderClientCache)


@pytest.fixture
def chat_model_service(mock_client_cache, mock_coordinator, mock_agent_repository):
    return ChatModelService(
        client_cache=mock_client_cache,
        coordinator=mock_coordinator,
        tool_registry=ToolRegistry.default(),
        agent_repository=mock_agent_repository,
    )


def _hit(agent_id, content):
    chunk = ChunkRead(
        id=uuid4(), knowledge_id=uuid4(), agent_id=agent_id, chunk_order=1,
        content=content, index_status=IndexStatus.INDEXED,
    )
    return ChunkSearchHit(chunk=chunk, score=0.9)


async def _collect(stream):
    return [fragment async for fragment in stream]


# ─────────────── prompts ───────────────
def test_system_prompt_with_instructions_and_context():
    prompt = build_system_prompt("Be brief.", ["first fact", "second fact"])

    assert prompt.startswith("Be brief.")
    assert "first fact\n\nsecond fact" in prompt


def test_system_prompt_without_context():
    prompt = build_system_prompt(None, [])

    assert "Context information" not in prompt


def test_user_prompt_with_history_and_summary():
    prompt = build_user_prompt("What now?", ["user: hi", "assistant: hello"], summary="greeting")

    assert prompt.index("Conversation summary") < prompt.index("User question: What now?")
    assert "user: hi\nassistant: hello\n" in prompt


def test_content_text_joins_text_parts():
    assert content_text([{"type": "text", "text": "a"}, {"type": "image_url"}, "b"]) == "ab"
    assert content_text("plain") == "plain"


# ─────────────── tools ───────────────
@pytest.mark.asyncio
async def test_current_datetime_tool():
    value = await current_datetime("UTC")

    assert datetime.fromisoformat(value).utcoffset() == timezone.utc.utcoffset(None)
    assert "Unknown time zone" in await current_datetime("Mars/Olympus")


def test_registry_skips_unknown_tools():
    tools = ToolRegistry.default().resolve(["current_datetime", "launch_rockets"], agent_id="a1")

    assert [t.name for t in tools] == ["current_datetime"]


@pytest.mark.asyncio
async def test_tool_errors_are_returned_to_the_model():
    class NoArgs(BaseModel):
        pass

    async def explode():
        raise RuntimeError("boom")

    tool = ToolDescriptor(name="explode", description="Always fails", args_schema=NoArgs, handler=explode)

    result = await tool.to_langchain().ainvoke({})

    assert result == "Error executing tool explode: boom"


# ─────────────── chat ───────────────
@pytest.mark.asyncio
async def test_stream_yields_fragments_with_context(chat_model_service, mock_client_cache, mock_coordinator,
                                                    agent):
    model = ScriptedChatModel([[AIMessageChunk(content="Hello "), AIMessageChunk(content="there")]])
    mock_client_cache.get_chat_client.return_value = model
    mock_coordinator.search_agent_context.return_value = [_hit(agent.id, "refund policy is 30 days")]

    fragments = await _collect(chat_model_service.stream(agent.id, "What is the refund policy?"))

    assert fragments == ["Hello ", "there"]
    system = model.received[0][0]
    assert isinstance(system, SystemMessage)
    assert "refund policy is 30 days" in system.content
    assert system.content.startswith("Answer in one paragraph.")
    assert model.bound_tools is None


@pytest.mark.asyncio
async def test_stream_runs_requested_tools(chat_model_service, mock_client_cache, agent):
    agent.enabled_tools = ["current_datetime"]
    call = AIMessageChunk(content="", tool_call_chunks=[
        {"name": "current_datetime", "args": '{"timezone": "UTC"}', "id": "call-1", "index": 0}])
    model = ScriptedChatModel([[call], [AIMessageChunk(content="It is noon.")]])
    mock_client_cache.get_chat_client.return_value = model

    fragments = await _collect(chat_model_service.stream(agent.id, "What time is it?"))

    assert fragments == ["It is noon."]
    assert [t.name for t in model.bound_tools] == ["current_datetime"]
    second_round = model.received[1]
    assert isinstance(second_round[-2], AIMessage)
    assert isinstance(second_round[-1], ToolMessage)
    assert second_round[-1].tool_call_id == "call-1"


@pytest.mark.asyncio
async def test_stream_failure_is_upstream_error(chat_model_service, mock_client_cache, agent):
    mock_client_cache.get_chat_client.return_value = ScriptedChatModel(
        [[AIMessageChunk(content="partial"), RuntimeError("connection reset")]])

    with pytest.raises(UpstreamFailureError) as exc_info:
        await _collect(chat_model_service.stream(agent.id, "question"))

    assert exc_info.value.error_key == ErrorKey.CHAT_FAILED


@pytest.mark.asyncio
async def test_summarize_title(chat_model_service, mock_client_cache, agent):
    mock_client_cache.get_chat_client.return_value = ScriptedChatModel([], title='"Quarterly Revenue"')

    assert await chat_model_service.summarize_title(agent.id, "How did revenue do?", 100) == "Quarterly Revenue"


@pytest.mark.asyncio
async def test_summarize_title_falls_back_to_question(chat_model_service, mock_client_cache, agent):
    mock_client_cache.get_chat_client.return_value = ScriptedChatModel([], title=RuntimeError("rate limited"))

    title = await chat_model_service.summarize_title(agent.id, "How   did revenue do this quarter?", 12)

    assert title == "How did reve"
