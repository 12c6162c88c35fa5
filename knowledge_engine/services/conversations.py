import logging
from typing import AsyncIterator, List, Optional
from uuid import UUID
from injector import inject

from knowledge_engine.core.config.settings import settings
from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import InvalidArgumentError, NotFoundError
from knowledge_engine.db.models import ChatMessageModel, ConversationModel
from knowledge_engine.repositories.agent import AgentRepository
from knowledge_engine.repositories.conversation import ChatMessageRepository, ConversationRepository
from knowledge_engine.schemas.conversation import ChatMessageRead, ConversationRead
from knowledge_engine.services.chat_model import ChatModelService

logger = logging.getLogger(__name__)

USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"


@inject
class ConversationService:
    def __init__(
        self,
        repository: ConversationRepository,
        message_repository: ChatMessageRepository,
        agent_repository: AgentRepository,
        chat_model: ChatModelService,
    ):
        self.repository = repository
        self.message_repository = message_repository
        self.agent_repository = agent_repository
        self.chat_model = chat_model

    async def _require_agent(self, agent_id: UUID) -> None:
        if await self.agent_repository.get_by_id(agent_id) is None:
            raise NotFoundError(ErrorKey.AGENT_NOT_FOUND, error_detail=f"agent={agent_id}")

    async def _get_owned(self, agent_id: UUID, conversation_id: UUID) -> ConversationModel:
        conversation = await self.repository.get_owned(agent_id, conversation_id)
        if conversation is None:
            raise NotFoundError(
                ErrorKey.CONVERSATION_NOT_FOUND,
                error_detail=f"conversation={conversation_id} agent={agent_id}",
            )
        return conversation

    # ─────────────── CHAT ───────────────
    async def chat(
        self, agent_id: UUID, question: str, conversation_id: Optional[UUID] = None
    ) -> AsyncIterator[str]:
        """
        Validate the request and return the answer stream.

        Validation runs before the first fragment so that errors reach the
        caller as regular error responses. Nothing is stored unless the
        stream runs to completion.
        """
        if not question or not question.strip():
            raise InvalidArgumentError(ErrorKey.EMPTY_QUESTION)
        await self._require_agent(agent_id)

        history: List[str] = []
        if conversation_id is not None:
            await self._get_owned(agent_id, conversation_id)
            messages = await self.message_repository.list_by_conversation(
                conversation_id, limit=settings.CHAT_HISTORY_LIMIT)
            history = [f"{m.role}: {m.content}" for m in messages]

        return self._stream_and_persist(agent_id, question, conversation_id, history)

    async def _stream_and_persist(
        self,
        agent_id: UUID,
        question: str,
        conversation_id: Optional[UUID],
        history: List[str],
    ) -> AsyncIterator[str]:
        fragments: List[str] = []
        async for fragment in self.chat_model.stream(agent_id, question, history):
            fragments.append(fragment)
            yield fragment

        # only reached when the stream completed normally
        await self._persist_exchange(agent_id, question, "".join(fragments), conversation_id)

    async def _persist_exchange(
        self, agent_id: UUID, question: str, answer: str, conversation_id: Optional[UUID]
    ) -> UUID:
        if conversation_id is None:
            name = await self.chat_model.summarize_title(
                agent_id, question, settings.CONVERSATION_NAME_MAX_LENGTH)
            conversation = await self.repository.create(ConversationModel(agent_id=agent_id, name=name))
            conversation_id = conversation.id
            logger.info(f"Created conversation {conversation_id} '{name}' for agent {agent_id}")

        await self.message_repository.create_many([
            ChatMessageModel(conversation_id=conversation_id, agent_id=agent_id, role=USER_ROLE, content=question),
            ChatMessageModel(conversation_id=conversation_id, agent_id=agent_id, role=ASSISTANT_ROLE, content=answer),
        ])
        logger.debug(f"Saved question and answer in conversation {conversation_id}")
        return conversation_id

    # ─────────────── READ / MANAGE ───────────────
    async def list_conversations(self, agent_id: UUID) -> List[ConversationRead]:
        await self._require_agent(agent_id)
        conversations = await self.repository.list_by_agent(agent_id)
        return [ConversationRead.model_validate(c) for c in conversations]

    async def list_messages(self, agent_id: UUID, conversation_id: UUID) -> List[ChatMessageRead]:
        await self._get_owned(agent_id, conversation_id)
        messages = await self.message_repository.list_by_conversation(conversation_id)
        return [ChatMessageRead.model_validate(m) for m in messages]

    async def rename(self, agent_id: UUID, conversation_id: UUID, name: str) -> ConversationRead:
        conversation = await self._get_owned(agent_id, conversation_id)
        conversation.name = name.strip()[:settings.CONVERSATION_NAME_MAX_LENGTH]
        updated = await self.repository.update(conversation)
        return ConversationRead.model_validate(updated)

    async def delete(self, agent_id: UUID, conversation_id: UUID) -> None:
        conversation = await self._get_owned(agent_id, conversation_id)
        await self.repository.delete(conversation)
