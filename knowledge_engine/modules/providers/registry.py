"""
Provider client factories, selected by the agent's provider name
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional

from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel

from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import UnsupportedConfigurationError
from knowledge_engine.schemas.agent import AgentProviderConfig

logger = logging.getLogger(__name__)


def _join_base_url(base_url: Optional[str], path: Optional[str], sdk_suffix: str) -> Optional[str]:
    """
    OpenAI-compatible SDKs append their own endpoint suffix to the base URL,
    so a configured endpoint path contributes only the part before that suffix.
    """
    if not base_url or not path:
        return base_url
    path = "/" + path.strip("/")
    if path.endswith(sdk_suffix):
        path = path[: -len(sdk_suffix)]
    return base_url.rstrip("/") + path


class ProviderClientFactory(ABC):
    """Builds the chat and embedding clients for one provider"""

    name: str

    @abstractmethod
    def build_chat_client(self, config: AgentProviderConfig) -> BaseChatModel:
        raise NotImplementedError

    @abstractmethod
    def build_embedding_client(self, config: AgentProviderConfig) -> Embeddings:
        raise NotImplementedError


class OpenAIClientFactory(ProviderClientFactory):
    name = "openai"

    def build_chat_client(self, config: AgentProviderConfig) -> BaseChatModel:
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=config.model_name,
            temperature=config.temperature,
            top_p=config.top_p,
            max_tokens=config.max_tokens,
            api_key=config.api_key,
            base_url=_join_base_url(config.base_url, config.chat_completions_path, "/chat/completions"),
            streaming=True,
        )

    def build_embedding_client(self, config: AgentProviderConfig) -> Embeddings:
        from langchain_openai import OpenAIEmbeddings

        kwargs = {}
        # only the text-embedding-3 family accepts a requested dimension
        if config.embedding_model_name.startswith("text-embedding-3"):
            kwargs["dimensions"] = config.dimension
        return OpenAIEmbeddings(
            model=config.embedding_model_name,
            api_key=config.api_key,
            base_url=_join_base_url(config.base_url, config.embeddings_path, "/embeddings"),
            **kwargs,
        )


class GoogleGenAIClientFactory(ProviderClientFactory):
    name = "google_genai"

    def build_chat_client(self, config: AgentProviderConfig) -> BaseChatModel:
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=config.model_name,
            temperature=config.temperature,
            top_p=config.top_p,
            max_output_tokens=config.max_tokens,
            google_api_key=config.api_key,
        )

    def build_embedding_client(self, config: AgentProviderConfig) -> Embeddings:
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        return GoogleGenerativeAIEmbeddings(
            model=config.embedding_model_name,
            google_api_key=config.api_key,
        )


class OllamaClientFactory(ProviderClientFactory):
    name = "ollama"
    default_base_url = "http://localhost:11434"

    def build_chat_client(self, config: AgentProviderConfig) -> BaseChatModel:
        from langchain_ollama import ChatOllama

        # Ollama doesn't need an API key, only the local server URL
        return ChatOllama(
            model=config.model_name,
            temperature=config.temperature,
            top_p=config.top_p,
            num_predict=config.max_tokens,
            base_url=config.base_url or self.default_base_url,
        )

    def build_embedding_client(self, config: AgentProviderConfig) -> Embeddings:
        from langchain_ollama import OllamaEmbeddings

        return OllamaEmbeddings(
            model=config.embedding_model_name,
            base_url=config.base_url or self.default_base_url,
        )


class ProviderRegistry:
    """Provider name to factory map; names are matched case-insensitively"""

    def __init__(self, factories: Optional[Mapping[str, ProviderClientFactory]] = None):
        self._factories: Dict[str, ProviderClientFactory] = {}
        for name, factory in (factories or {}).items():
            self.register(name, factory)

    @classmethod
    def default(cls) -> "ProviderRegistry":
        factories = [OpenAIClientFactory(), GoogleGenAIClientFactory(), OllamaClientFactory()]
        return cls({f.name: f for f in factories})

    def register(self, name: str, factory: ProviderClientFactory) -> None:
        self._factories[name.strip().lower()] = factory
        logger.debug(f"Registered provider factory '{name}'")

    @property
    def names(self) -> List[str]:
        return sorted(self._factories)

    def get(self, name: Optional[str]) -> ProviderClientFactory:
        factory = self._factories.get((name or "").strip().lower())
        if factory is None:
            raise UnsupportedConfigurationError(
                ErrorKey.PROVIDER_NOT_SUPPORTED,
                error_detail=f"registered providers: {self.names}",
                error_variables=[name or ""],
            )
        return factory
