import logging
from injector import Module, provider, singleton
from sqlalchemy.ext.asyncio import AsyncSession

from fastapi_injector import RequestScopeFactory, request_scope
from knowledge_engine.core.config.settings import settings
from knowledge_engine.db.session import SessionManager
from knowledge_engine.modules.chat.tools import ToolRegistry
from knowledge_engine.modules.knowledge.chunking.detector import ProfileDetector
from knowledge_engine.modules.knowledge.chunking.splitter import ChunkSplitter
from knowledge_engine.modules.knowledge.coordinator import ChunkLifecycleCoordinator
from knowledge_engine.modules.knowledge.extraction import DocumentTextExtractor
from knowledge_engine.modules.knowledge.locks import KeyedLockRegistry
from knowledge_engine.modules.knowledge.ordering import ChunkOrderAllocator
from knowledge_engine.modules.knowledge.vector.base import BaseVectorIndex, VectorIndexConfig
from knowledge_engine.modules.providers.cache import AgentConfigLoader, ProviderClientCache
from knowledge_engine.modules.providers.registry import ProviderRegistry
from knowledge_engine.repositories.agent import AgentRepository
from knowledge_engine.repositories.conversation import ChatMessageRepository, ConversationRepository
from knowledge_engine.repositories.knowledge_chunk import KnowledgeChunkRepository
from knowledge_engine.repositories.knowledge_source import KnowledgeSourceRepository
from knowledge_engine.services.agents import AgentService
from knowledge_engine.services.chat_model import ChatModelService
from knowledge_engine.services.conversations import ConversationService
from knowledge_engine.services.knowledge_import import KnowledgeImportService
from knowledge_engine.services.knowledge_sources import KnowledgeSourceService


logger = logging.getLogger(__name__)


class Dependencies(Module):

    # ------------------------------------------------------------------
    # PROVIDERS
    # ------------------------------------------------------------------
    @provider
    @singleton
    def provide_session_manager(self) -> SessionManager:
        return SessionManager()

    @provider
    @request_scope
    def provide_session(self, session_manager: SessionManager) -> AsyncSession:
        """
        Provide a session per request.

        Returns an AsyncSession instance managed by fastapi-injector's request scope.
        """
        return session_manager.session()

    @provider
    @singleton
    def provide_vector_index(self) -> BaseVectorIndex:
        config = VectorIndexConfig.from_settings()
        logger.info(f"DI: vector index type '{config.type}'")
        return config.get()

    @provider
    @singleton
    def provide_provider_registry(self) -> ProviderRegistry:
        return ProviderRegistry.default()

    @provider
    @singleton
    def provide_tool_registry(self) -> ToolRegistry:
        return ToolRegistry.default()

    @provider
    @singleton
    def provide_chunk_splitter(self) -> ChunkSplitter:
        return ChunkSplitter(
            profiles=settings.CHUNKER_PROFILES,
            default_profile=settings.CHUNKER_DEFAULT_PROFILE,
            min_length_to_embed=settings.CHUNKER_MIN_CHUNK_LENGTH_TO_EMBED,
            max_chunks=settings.CHUNKER_MAX_CHUNKS,
        )

    @provider
    @singleton
    def provide_text_extractor(self) -> DocumentTextExtractor:
        return DocumentTextExtractor(max_text_bytes=settings.MAX_EXTRACTED_TEXT_BYTES)

    def configure(self, binder):
        binder.bind(AgentService, scope=request_scope)
        binder.bind(AgentRepository, scope=request_scope)

        binder.bind(KnowledgeSourceService, scope=request_scope)
        binder.bind(KnowledgeSourceRepository, scope=request_scope)
        binder.bind(KnowledgeChunkRepository, scope=request_scope)

        binder.bind(ChunkOrderAllocator, scope=request_scope)
        binder.bind(ChunkLifecycleCoordinator, scope=request_scope)
        binder.bind(KnowledgeImportService, scope=request_scope)

        binder.bind(ChatModelService, scope=request_scope)
        binder.bind(ConversationService, scope=request_scope)
        binder.bind(ConversationRepository, scope=request_scope)
        binder.bind(ChatMessageRepository, scope=request_scope)

        # Process-wide singletons
        # - KeyedLockRegistry: chunk order locks must be shared by every request
        # - ProviderClientCache / AgentConfigLoader: provider clients outlive requests
        binder.bind(KeyedLockRegistry, scope=singleton)
        binder.bind(AgentConfigLoader, scope=singleton)
        binder.bind(ProviderClientCache, scope=singleton)
        binder.bind(ProfileDetector, scope=singleton)
        binder.bind(RequestScopeFactory, scope=singleton)
