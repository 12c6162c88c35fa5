"""
Profile-driven text splitter built on LangChain's recursive character splitter
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple
from langchain_text_splitters import RecursiveCharacterTextSplitter
from pydantic import BaseModel, Field, field_validator

from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import (
    AppException,
    UnsupportedConfigurationError,
)
from .profiles import DEFAULT, ChunkProfile

logger = logging.getLogger(__name__)


class Chunk(BaseModel):
    """Represents a text chunk with metadata"""
    content: str = Field(description="Text content of the chunk")
    index: int = Field(description="Index of the chunk in the sequence")
    start_char: int = Field(
        description="Starting character position in original text")
    end_char: int = Field(
        description="Ending character position in original text")
    metadata: Dict[str, Any] = Field(
        default_factory=dict, description="Additional metadata for the chunk")

    @field_validator('end_char')
    @classmethod
    def validate_char_positions(cls, v, info):
        if info.data and 'start_char' in info.data and v <= info.data['start_char']:
            raise ValueError('end_char must be greater than start_char')
        return v


class _Span:
    __slots__ = ("start", "end", "content", "located")

    def __init__(self, start: int, end: int, content: str, located: bool):
        self.start = start
        self.end = end
        self.content = content
        self.located = located


class ChunkSplitter:
    """
    Splits text according to a named chunking profile.

    Fragments shorter than the profile minimum are folded into the previous
    chunk (or the next one when they lead the document) as long as the merged
    span stays within `chunk_size + min_chunk_size`. Merged chunks are cut from
    the original text, so their content is always a contiguous substring of it.

    Splitters are built lazily, one per profile, and reused.
    """

    def __init__(
        self,
        profiles: Mapping[str, ChunkProfile],
        default_profile: str = DEFAULT,
        min_length_to_embed: int = 0,
        max_chunks: Optional[int] = None,
    ):
        self._profiles: Dict[str, ChunkProfile] = dict(profiles)
        self._default_profile = default_profile
        self._min_length_to_embed = min_length_to_embed
        self._max_chunks = max_chunks
        self._splitters: Dict[str, RecursiveCharacterTextSplitter] = {}

    def resolve_profile(self, name: Optional[str]) -> Tuple[str, ChunkProfile]:
        """Profile by name, falling back to the default profile."""
        profile = self._profiles.get(name) if name else None
        if profile is not None:
            return name, profile

        logger.warning(f"Unknown chunking profile '{name}', falling back to '{self._default_profile}'")
        profile = self._profiles.get(self._default_profile)
        if profile is None:
            raise UnsupportedConfigurationError(
                ErrorKey.CHUNK_PROFILE_NOT_CONFIGURED,
                error_detail=f"profile={name} default={self._default_profile}",
                error_variables=[name],
            )
        return self._default_profile, profile

    def split(
        self,
        text: str,
        profile_name: Optional[str],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[Chunk]:
        """
        Split text into ordered chunks

        Args:
            text: Text to chunk
            profile_name: Chunking profile; unknown names use the default profile
            metadata: Optional metadata to include with each chunk

        Returns:
            List of Chunk objects, empty for blank input
        """
        if not text or not text.strip():
            return []

        resolved_name, profile = self.resolve_profile(profile_name)
        splitter = self._get_splitter(resolved_name, profile)

        spans = self._locate(text, splitter.split_text(text), profile.chunk_overlap)
        spans = self._merge_small_fragments(text, spans, profile)
        spans = [s for s in spans if len(s.content.strip()) >= max(self._min_length_to_embed, 1)]

        if self._max_chunks is not None and len(spans) > self._max_chunks:
            raise AppException(
                ErrorKey.TOO_MANY_CHUNKS,
                status_code=413,
                error_detail=f"{len(spans)} chunks with profile {resolved_name}",
                error_variables=[self._max_chunks],
            )

        base_metadata = {
            "profile": resolved_name,
            "chunk_size": profile.chunk_size,
            "chunk_overlap": profile.chunk_overlap,
            "keep_separator": profile.keep_separator,
            **(metadata or {}),
        }
        chunks = [self._create_chunk(span, i, base_metadata) for i, span in enumerate(spans)]

        logger.debug(f"Split {len(text)} chars into {len(chunks)} chunks using profile '{resolved_name}'")
        return chunks

    # ───────────── internal helpers ─────────────
    def _get_splitter(self, name: str, profile: ChunkProfile) -> RecursiveCharacterTextSplitter:
        splitter = self._splitters.get(name)
        if splitter is None:
            logger.debug(
                f"Creating splitter for profile '{name}' with chunk_size: {profile.chunk_size}, "
                f"overlap: {profile.chunk_overlap}")
            splitter = RecursiveCharacterTextSplitter(
                chunk_size=profile.chunk_size,
                chunk_overlap=profile.chunk_overlap,
                separators=list(profile.separators),
                keep_separator=profile.keep_separator,
                strip_whitespace=True,
                length_function=len,
            )
            self._splitters[name] = splitter
        return splitter

    @staticmethod
    def _locate(text: str, pieces: List[str], overlap: int) -> List[_Span]:
        """Find each piece in the original text, searching forward from the previous one."""
        spans: List[_Span] = []
        search_from = 0
        for piece in pieces:
            if spans:
                previous = spans[-1]
                search_from = max(previous.start + 1, previous.end - overlap, 0)
            start = text.find(piece, search_from)
            if start == -1 and spans:
                start = text.find(piece, spans[-1].start + 1)
            if start == -1:
                # piece is not a verbatim substring; keep it as produced
                fallback = spans[-1].end if spans else 0
                spans.append(_Span(fallback, fallback + len(piece), piece, located=False))
                continue
            spans.append(_Span(start, start + len(piece), piece, located=True))
        return spans

    @staticmethod
    def _merge_small_fragments(text: str, spans: List[_Span], profile: ChunkProfile) -> List[_Span]:
        limit = profile.chunk_size + profile.min_chunk_size
        merged: List[_Span] = []

        for span in spans:
            if merged and len(span.content.strip()) < profile.min_chunk_size:
                previous = merged[-1]
                end = max(previous.end, span.end)
                if previous.located and span.located and end - previous.start <= limit:
                    merged[-1] = _Span(previous.start, end, text[previous.start:end], located=True)
                    continue
            merged.append(span)

        # a short leading fragment folds forward instead
        if len(merged) > 1 and len(merged[0].content.strip()) < profile.min_chunk_size:
            first, second = merged[0], merged[1]
            end = max(first.end, second.end)
            if first.located and second.located and end - first.start <= limit:
                merged[0:2] = [_Span(first.start, end, text[first.start:end], located=True)]

        return merged

    @staticmethod
    def _create_chunk(span: _Span, index: int, metadata: Dict[str, Any]) -> Chunk:
        start_char = span.start
        end_char = start_char + len(span.content)
        chunk_metadata = {
            **metadata,
            "chunk_index": index,
            "start_char": start_char,
            "end_char": end_char,
            "chunk_length": len(span.content),
        }
        return Chunk(
            content=span.content,
            index=index,
            start_char=start_char,
            end_char=end_char,
            metadata=chunk_metadata,
        )
