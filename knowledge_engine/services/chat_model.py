import logging
from typing import AsyncIterator, List, Optional
from uuid import UUID
from injector import inject
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from knowledge_engine.core.config.settings import settings
from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import (
    AppException,
    NotFoundError,
    UpstreamFailureError,
)
from knowledge_engine.modules.chat.prompts import TITLE_PROMPT, build_system_prompt, build_user_prompt
from knowledge_engine.modules.chat.tools import ToolRegistry
from knowledge_engine.modules.knowledge.coordinator import ChunkLifecycleCoordinator
from knowledge_engine.modules.providers.cache import ProviderClientCache
from knowledge_engine.repositories.agent import AgentRepository

logger = logging.getLogger(__name__)


def content_text(content) -> str:
    """Text of a message content, which some providers send as a list of parts"""
    if isinstance(content, str):
        return content
    parts = []
    for part in content or ():
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


@inject
class ChatModelService:
    """Retrieval-augmented, tool-using chat over an agent's cached chat client"""

    def __init__(
        self,
        client_cache: ProviderClientCache,
        coordinator: ChunkLifecycleCoordinator,
        tool_registry: ToolRegistry,
        agent_repository: AgentRepository,
    ):
        self.client_cache = client_cache
        self.coordinator = coordinator
        self.tool_registry = tool_registry
        self.agent_repository = agent_repository

    async def build_messages(
        self,
        agent_id: UUID,
        question: str,
        history: Optional[List[str]] = None,
        summary: Optional[str] = None,
        instructions: Optional[str] = None,
    ) -> List[BaseMessage]:
        hits = await self.coordinator.search_agent_context(agent_id, question, settings.RAG_TOP_K)
        logger.debug(f"Retrieved {len(hits)} context chunks for agent {agent_id}")
        return [
            SystemMessage(content=build_system_prompt(instructions, [h.chunk.content for h in hits])),
            HumanMessage(content=build_user_prompt(question, history, summary)),
        ]

    async def stream(
        self,
        agent_id: UUID,
        question: str,
        history: Optional[List[str]] = None,
        summary: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        Stream answer fragments.

        Tool calls requested by the model are run and their results fed back,
        for at most CHAT_MAX_TOOL_ITERATIONS model rounds.
        """
        agent = await self.agent_repository.get_by_id(agent_id)
        if agent is None:
            raise NotFoundError(ErrorKey.AGENT_NOT_FOUND, error_detail=f"agent={agent_id}")

        chat_client = await self.client_cache.get_chat_client(agent_id)
        tools = self.tool_registry.resolve(agent.enabled_tools or [], agent_id)
        tools_by_name = {t.name: t for t in tools}
        model = chat_client.bind_tools(tools) if tools else chat_client

        messages = await self.build_messages(agent_id, question, history, summary, agent.instructions)

        for iteration in range(settings.CHAT_MAX_TOOL_ITERATIONS):
            gathered = None
            try:
                async for chunk in model.astream(messages):
                    text = content_text(chunk.content)
                    if text:
                        yield text
                    gathered = chunk if gathered is None else gathered + chunk
            except AppException:
                raise
            except Exception as e:
                logger.error(f"Chat stream failed for agent {agent_id}: {e}")
                raise UpstreamFailureError(ErrorKey.CHAT_FAILED, error_detail=str(e))

            tool_calls = getattr(gathered, "tool_calls", None) or []
            if not tool_calls:
                return

            messages.append(AIMessage(content=gathered.content, tool_calls=tool_calls))
            for call in tool_calls:
                tool = tools_by_name.get(call["name"])
                if tool is None:
                    logger.warning(f"Model requested unknown tool '{call['name']}' for agent {agent_id}")
                    result = f"Tool '{call['name']}' is not available"
                else:
                    logger.debug(f"Running tool {call['name']} for agent {agent_id}")
                    result = await tool.ainvoke(call.get("args") or {})
                messages.append(ToolMessage(content=str(result), tool_call_id=call.get("id") or call["name"]))

        logger.warning(
            f"Agent {agent_id} reached {settings.CHAT_MAX_TOOL_ITERATIONS} tool iterations, stopping")

    async def summarize_title(self, agent_id: UUID, question: str, max_length: int) -> str:
        """Short conversation name generated from the first question"""
        chat_client = await self.client_cache.get_chat_client(agent_id)
        try:
            response = await chat_client.ainvoke([HumanMessage(content=f"{TITLE_PROMPT}\n{question}")])
            title = content_text(response.content).strip().strip("\"'")
        except Exception as e:
            logger.warning(f"Title generation failed for agent {agent_id}, using the question: {e}")
            title = ""
        title = " ".join((title or question).split())
        return title[:max_length]
