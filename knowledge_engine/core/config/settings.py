from typing import Dict, Optional, Tuple
from pydantic import computed_field, ConfigDict, Field
from pydantic_settings import BaseSettings

from knowledge_engine.modules.knowledge.chunking.profiles import ChunkProfile, default_profiles


class ProjectSettings(BaseSettings):

    # === Database ===
    DB_HOST: Optional[str] = "localhost"
    DB_USER: Optional[str] = "postgres"
    DB_PASS: Optional[str] = "postgres"
    DB_NAME: Optional[str] = "knowledge_engine"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800
    CREATE_DB: bool = True

    # === Vector index ===
    VECTOR_INDEX_TYPE: str = "qdrant"  # "qdrant" | "memory"
    QDRANT_URL: str = "http://localhost:6333"
    QDRANT_API_KEY: Optional[str] = None
    QDRANT_COLLECTION_PREFIX: str = "knowledge_chunks"
    VECTOR_DISTANCE_METRIC: str = "cosine"

    # === Chunking ===
    CHUNKER_PROFILES: Dict[str, ChunkProfile] = Field(default_factory=default_profiles)
    CHUNKER_DEFAULT_PROFILE: str = "default"
    CHUNKER_MAX_CHUNKS: int = 1000
    CHUNKER_MIN_CHUNK_LENGTH_TO_EMBED: int = 10

    # === Limits ===
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10MB
    MAX_EXTRACTED_TEXT_BYTES: int = 10 * 1024 * 1024  # 10MB
    CHUNK_ORDER_MAX_RETRIES: int = 3
    SUPPORTED_EMBEDDING_DIMENSIONS: Tuple[int, ...] = (768, 1536)
    BLOCKED_CONTENT_TYPES: Tuple[str, ...] = (
        "application/x-msdownload",
        "application/x-msdos-program",
        "application/x-executable",
        "application/x-elf",
        "application/x-mach-binary",
        "application/x-sh",
        "application/x-bat",
        "application/vnd.microsoft.portable-executable",
    )

    # === Retrieval / chat ===
    RAG_TOP_K: int = 5
    CHAT_HISTORY_LIMIT: int = 10
    CHAT_MAX_TOOL_ITERATIONS: int = 5
    CONVERSATION_NAME_MAX_LENGTH: int = 100

    # === Language ===
    DEFAULT_LANGUAGE: str = 'en'
    SUPPORTED_LANGUAGES: Tuple[str, ...] = ('en',)

    DEBUG: bool = True
    DEV: bool = True
    LOG_LEVEL: str = "DEBUG"
    LOG_DIR: str = "logs"
    FASTAPI_RUN_PORT: int = 8000
    API_VERSION: Optional[str] = "1.0"

    @computed_field
    @property
    def DATABASE_URL(self) -> str:
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASS}@{self.DB_HOST}/{self.DB_NAME}"

    model_config = ConfigDict(
            env_file=".env",
            env_file_encoding="utf-8",
            extra="ignore",  # ignore unknown fields instead of raising an error
            )


settings = ProjectSettings()
