import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID
from injector import inject

from knowledge_engine.core.config.settings import settings
from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import AppException, InvalidArgumentError
from knowledge_engine.modules.knowledge.chunking.detector import ProfileDetector
from knowledge_engine.modules.knowledge.chunking.splitter import ChunkSplitter
from knowledge_engine.modules.knowledge.coordinator import ChunkLifecycleCoordinator
from knowledge_engine.modules.knowledge.extraction import DocumentTextExtractor
from knowledge_engine.modules.knowledge.ordering import ChunkOrderAllocator
from knowledge_engine.schemas.knowledge import ImportResult

logger = logging.getLogger(__name__)


def file_extension(filename: Optional[str]) -> str:
    """Lower-case extension without the dot, '' when there is none."""
    _, ext = os.path.splitext((filename or "").strip())
    return ext[1:].lower()


@inject
class KnowledgeImportService:
    """Uploaded file -> text -> profile -> segments -> stored and indexed chunks"""

    def __init__(
        self,
        allocator: ChunkOrderAllocator,
        coordinator: ChunkLifecycleCoordinator,
        extractor: DocumentTextExtractor,
        detector: ProfileDetector,
        splitter: ChunkSplitter,
    ):
        self.allocator = allocator
        self.coordinator = coordinator
        self.extractor = extractor
        self.detector = detector
        self.splitter = splitter

    @staticmethod
    def _validate_upload(filename: Optional[str], content: bytes, content_type: Optional[str]) -> None:
        if not content:
            raise InvalidArgumentError(ErrorKey.EMPTY_FILE)
        if len(content) > settings.MAX_UPLOAD_BYTES:
            raise AppException(
                ErrorKey.FILE_SIZE_TOO_LARGE, status_code=413, error_detail=f"{len(content)} bytes")
        if not filename or not filename.strip():
            raise InvalidArgumentError(ErrorKey.MISSING_FILENAME)

        normalized = (content_type or "").split(";")[0].strip().lower()
        if "executable" in normalized or normalized in settings.BLOCKED_CONTENT_TYPES:
            raise InvalidArgumentError(ErrorKey.FILE_TYPE_NOT_ALLOWED, error_variables=[normalized])

    async def import_file(
        self,
        agent_id: UUID,
        knowledge_id: UUID,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str] = None,
        profile: Optional[str] = None,
    ) -> ImportResult:
        logger.info(
            f"Starting document import: agent={agent_id}, knowledge={knowledge_id}, file={filename}, "
            f"contentType={content_type}, size={len(content or b'')} bytes")

        self._validate_upload(filename, content, content_type)
        await self.allocator.verify_ownership(agent_id, knowledge_id)

        extension = file_extension(filename)
        if not extension:
            raise InvalidArgumentError(ErrorKey.MISSING_FILE_EXTENSION, error_detail=filename)

        # pdf / docx parsing is CPU bound
        text = await asyncio.to_thread(self.extractor.extract, content, extension)

        requested_profile = profile or self.detector.detect(text, extension)
        segments = self.splitter.split(
            text,
            requested_profile,
            metadata={
                "source": filename,
                "extension": extension,
                "file_size": len(content),
                "processing_timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
        if not segments:
            raise InvalidArgumentError(ErrorKey.NO_PROCESSABLE_CONTENT, error_detail=filename)
        chunking_profile = segments[0].metadata.get("profile", requested_profile)

        batch = await self.coordinator.add_chunks(
            agent_id, knowledge_id, [(s.content, s.metadata) for s in segments])

        logger.info(
            f"Imported {filename}: {len(batch.chunks)} chunks ({batch.indexed} indexed), "
            f"profile={chunking_profile}, knowledge={knowledge_id}")
        return ImportResult(
            original_filename=filename,
            number_of_segments=len(batch.chunks),
            indexed_segments=batch.indexed,
            content_type=content_type,
            file_size=len(content),
            chunking_profile=chunking_profile,
            knowledge_id=knowledge_id,
            agent_id=agent_id,
            warnings=batch.warnings,
        )
