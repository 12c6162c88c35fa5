import logging
from enum import Enum
from typing import Sequence
from fastapi import Request

from knowledge_engine.core.config.settings import settings


logger = logging.getLogger(__name__)


class ErrorKey(Enum):
    INTERNAL_ERROR = "error_500"
    NOT_FOUND = "not_found"
    AGENT_NOT_FOUND = "AGENT_NOT_FOUND"
    KNOWLEDGE_NOT_FOUND = "KNOWLEDGE_NOT_FOUND"
    CHUNK_NOT_FOUND = "CHUNK_NOT_FOUND"
    CONVERSATION_NOT_FOUND = "CONVERSATION_NOT_FOUND"
    EMPTY_QUERY = "EMPTY_QUERY"
    INVALID_TOP_K = "INVALID_TOP_K"
    EMPTY_FILE = "EMPTY_FILE"
    MISSING_FILENAME = "MISSING_FILENAME"
    MISSING_FILE_EXTENSION = "MISSING_FILE_EXTENSION"
    FILE_TYPE_NOT_ALLOWED = "FILE_TYPE_NOT_ALLOWED"
    FILE_SIZE_TOO_LARGE = "FILE_SIZE_TOO_LARGE"
    EMPTY_CHUNK_CONTENT = "EMPTY_CHUNK_CONTENT"
    EMPTY_QUESTION = "EMPTY_QUESTION"
    NO_PROCESSABLE_CONTENT = "NO_PROCESSABLE_CONTENT"
    TOO_MANY_CHUNKS = "TOO_MANY_CHUNKS"
    UNSUPPORTED_FILE_FORMAT = "UNSUPPORTED_FILE_FORMAT"
    EMPTY_CONTENT = "EMPTY_CONTENT"
    CONTENT_TOO_LARGE = "CONTENT_TOO_LARGE"
    ERROR_EXTRACTING_FROM_FILE = "ERROR_EXTRACTING_FROM_FILE"
    PROVIDER_NOT_SUPPORTED = "PROVIDER_NOT_SUPPORTED"
    UNSUPPORTED_EMBEDDING_DIMENSION = "UNSUPPORTED_EMBEDDING_DIMENSION"
    CHUNK_PROFILE_NOT_CONFIGURED = "CHUNK_PROFILE_NOT_CONFIGURED"
    EMBEDDING_FAILED = "EMBEDDING_FAILED"
    CHAT_FAILED = "CHAT_FAILED"
    VECTOR_INDEX_UNAVAILABLE = "VECTOR_INDEX_UNAVAILABLE"
    CHUNK_ORDER_CONFLICT = "CHUNK_ORDER_CONFLICT"
    DUPLICATE_VALUE = "DUPLICATE_VALUE"


ERROR_MESSAGES = {
    "en": {
        ErrorKey.INTERNAL_ERROR: "An internal server error occurred. Please try again later.",
        ErrorKey.NOT_FOUND: "The requested resource was not found.",
        ErrorKey.AGENT_NOT_FOUND: "Agent not found.",
        ErrorKey.KNOWLEDGE_NOT_FOUND: "Knowledge source not found.",
        ErrorKey.CHUNK_NOT_FOUND: "Knowledge chunk not found.",
        ErrorKey.CONVERSATION_NOT_FOUND: "Conversation not found.",
        ErrorKey.EMPTY_QUERY: "Search query must not be empty.",
        ErrorKey.INVALID_TOP_K: "top_k must be a positive number.",
        ErrorKey.EMPTY_FILE: "The uploaded file is empty.",
        ErrorKey.MISSING_FILENAME: "The uploaded file has no name.",
        ErrorKey.MISSING_FILE_EXTENSION: "The uploaded file has no extension.",
        ErrorKey.FILE_TYPE_NOT_ALLOWED: "Executable files are not allowed: {0}.",
        ErrorKey.FILE_SIZE_TOO_LARGE: f"File too large. Max allowed is {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB.",
        ErrorKey.EMPTY_CHUNK_CONTENT: "Chunk content must not be empty.",
        ErrorKey.EMPTY_QUESTION: "Question must not be empty.",
        ErrorKey.NO_PROCESSABLE_CONTENT: "No processable content found in file.",
        ErrorKey.TOO_MANY_CHUNKS: "Document produces more than {0} chunks.",
        ErrorKey.UNSUPPORTED_FILE_FORMAT: "Unsupported file format: {0}.",
        ErrorKey.EMPTY_CONTENT: "The document contains no text.",
        ErrorKey.CONTENT_TOO_LARGE: f"Extracted text exceeds {settings.MAX_EXTRACTED_TEXT_BYTES // (1024 * 1024)}MB.",
        ErrorKey.ERROR_EXTRACTING_FROM_FILE: "Failed to extract text from file.",
        ErrorKey.PROVIDER_NOT_SUPPORTED: "The provider '{0}' is not supported.",
        ErrorKey.UNSUPPORTED_EMBEDDING_DIMENSION: "Embedding dimension {0} is not supported.",
        ErrorKey.CHUNK_PROFILE_NOT_CONFIGURED: "Chunking profile '{0}' is unknown and no default profile is configured.",
        ErrorKey.EMBEDDING_FAILED: "The embedding provider call failed. Please retry.",
        ErrorKey.CHAT_FAILED: "The chat provider call failed. Please retry.",
        ErrorKey.VECTOR_INDEX_UNAVAILABLE: "The vector index is unavailable. Please retry.",
        ErrorKey.CHUNK_ORDER_CONFLICT: "Could not allocate a chunk position. Please retry.",
        ErrorKey.DUPLICATE_VALUE: "A record with the same key already exists.",
    },
}


def get_error_message(
    error_key: ErrorKey,
    request: Request = None,
    lang: str = "en",
    error_variables: Sequence[str] = (),
):
    """
    Retrieves an error message based on the caller's language preference.
    Falls back to DEFAULT_LANGUAGE if no valid language is found.
    """
    if not isinstance(error_key, ErrorKey):
        raise ValueError(f"Invalid error key: {error_key}")

    # Fetch language from request (query param or header)
    user_lang = (
        (request.query_params.get("lang") or request.headers.get("Accept-Language"))
        if request
        else lang
    )

    lang = (
        user_lang
        if user_lang in settings.SUPPORTED_LANGUAGES
        else settings.DEFAULT_LANGUAGE
    )

    return (
        ERROR_MESSAGES[lang].get(error_key, error_key.value)
    ).format(*error_variables)
