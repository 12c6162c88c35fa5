from uuid import uuid4

import pytest

from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import AppException, NotFoundError
from knowledge_engine.modules.knowledge.chunking.detector import ProfileDetector
from knowledge_engine.modules.knowledge.chunking.profiles import DEFAULT, MARKDOWN, SENTENCE, default_profiles
from knowledge_engine.modules.knowledge.chunking.splitter import ChunkSplitter
from knowledge_engine.modules.knowledge.extraction import DocumentTextExtractor
from knowledge_engine.services.knowledge_import import KnowledgeImportService, file_extension


@pytest.fixture
def import_service(allocator, coordinator):
    return KnowledgeImportService(
        allocator=allocator,
        coordinator=coordinator,
        extractor=DocumentTextExtractor(),
        detector=ProfileDetector(),
        splitter=ChunkSplitter(default_profiles(), default_profile=DEFAULT, min_length_to_embed=10),
    )


@pytest.fixture
def markdown_bytes():
    sections = [
        f"## Section {i}\n" + f"Paragraph {i} explains one topic in some detail. " * 20
        for i in range(6)
    ]
    return ("# Handbook\n\n" + "\n\n".join(sections)).encode("utf-8")


@pytest.mark.parametrize("filename,expected", [
    ("notes.MD", "md"),
    ("archive.tar.gz", "gz"),
    ("README", ""),
    (None, ""),
])
def test_file_extension(filename, expected):
    assert file_extension(filename) == expected


@pytest.mark.asyncio
async def test_import_markdown(import_service, chunk_repository, vector_index, agent_id, knowledge_id,
                               markdown_bytes):
    # Execute
    result = await import_service.import_file(
        agent_id, knowledge_id, "handbook.md", markdown_bytes, content_type="text/markdown")

    # Assert
    assert result.chunking_profile == MARKDOWN
    assert result.number_of_segments > 1
    assert result.indexed_segments == result.number_of_segments
    assert result.file_size == len(markdown_bytes)
    assert result.warnings == []

    stored = sorted(chunk_repository.rows.values(), key=lambda c: c.chunk_order)
    assert [c.chunk_order for c in stored] == list(range(1, result.number_of_segments + 1))
    assert stored[0].chunk_metadata["source"] == "handbook.md"
    assert stored[0].chunk_metadata["extension"] == "md"
    assert "processing_timestamp" in stored[0].chunk_metadata
    assert len(vector_index) == result.number_of_segments


@pytest.mark.asyncio
async def test_import_appends_after_existing_chunks(import_service, coordinator, agent_id, knowledge_id,
                                                    markdown_bytes):
    await coordinator.add_chunk(agent_id, knowledge_id, "manually added chunk")

    result = await import_service.import_file(agent_id, knowledge_id, "handbook.md", markdown_bytes)

    chunks = await coordinator.list_chunks(agent_id, knowledge_id)
    assert chunks[0].content == "manually added chunk"
    assert [c.chunk_order for c in chunks] == list(range(1, result.number_of_segments + 2))


@pytest.mark.asyncio
async def test_import_with_explicit_profile(import_service, agent_id, knowledge_id, markdown_bytes):
    result = await import_service.import_file(
        agent_id, knowledge_id, "handbook.md", markdown_bytes, profile=SENTENCE)

    assert result.chunking_profile == SENTENCE


@pytest.mark.asyncio
@pytest.mark.parametrize("filename,content,content_type,error_key", [
    ("a.txt", b"", None, ErrorKey.EMPTY_FILE),
    ("", b"data", None, ErrorKey.MISSING_FILENAME),
    ("tool.txt", b"data", "application/x-msdownload", ErrorKey.FILE_TYPE_NOT_ALLOWED),
    ("tool.txt", b"data", "application/octet-executable; charset=binary", ErrorKey.FILE_TYPE_NOT_ALLOWED),
    ("README", b"data", "text/plain", ErrorKey.MISSING_FILE_EXTENSION),
    ("blank.txt", b"   \n  ", "text/plain", ErrorKey.EMPTY_CONTENT),
])
async def test_import_rejects_bad_uploads(import_service, chunk_repository, agent_id, knowledge_id,
                                          filename, content, content_type, error_key):
    with pytest.raises(AppException) as exc_info:
        await import_service.import_file(agent_id, knowledge_id, filename, content, content_type)

    assert exc_info.value.error_key == error_key
    assert chunk_repository.rows == {}


@pytest.mark.asyncio
async def test_import_into_foreign_knowledge(import_service, knowledge_repository, agent_id):
    foreign_knowledge = knowledge_repository.add(uuid4())

    with pytest.raises(NotFoundError):
        await import_service.import_file(agent_id, foreign_knowledge, "a.txt", b"some text here")


@pytest.mark.asyncio
async def test_import_without_processable_content(import_service, agent_id, knowledge_id):
    # every fragment is below the embedding threshold
    with pytest.raises(AppException) as exc_info:
        await import_service.import_file(agent_id, knowledge_id, "short.txt", b"tiny")

    assert exc_info.value.error_key == ErrorKey.NO_PROCESSABLE_CONTENT
