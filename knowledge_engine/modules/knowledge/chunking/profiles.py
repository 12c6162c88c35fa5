"""
Chunking profile parameter sets
"""

from typing import Dict, List
from pydantic import BaseModel, ConfigDict, Field, field_validator


MARKDOWN = "markdown"
CODE = "code"
SEMANTIC = "semantic"
SENTENCE = "sentence"
DEFAULT = "default"


class ChunkProfile(BaseModel):
    """Numeric parameters of one chunking profile (sizes are in characters)"""
    chunk_size: int = Field(description="Target size of a chunk")
    min_chunk_size: int = Field(
        description="Fragments shorter than this are merged into a neighbour")
    chunk_overlap: int = Field(
        default=0, description="Characters shared by consecutive chunks")
    keep_separator: bool = Field(
        default=True, description="Whether separators stay attached to the chunk text")
    separators: List[str] = Field(
        default_factory=lambda: ["\n\n", "\n", " ", ""],
        description="Separators tried in order when splitting")

    model_config = ConfigDict(frozen=True)

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v):
        if v < 1:
            raise ValueError("chunk_size must be at least 1")
        return v

    @field_validator("chunk_overlap")
    @classmethod
    def validate_chunk_overlap(cls, v, info):
        if v < 0:
            raise ValueError("chunk_overlap must not be negative")
        if info.data and "chunk_size" in info.data and v >= info.data["chunk_size"]:
            raise ValueError("chunk_overlap must be less than chunk_size")
        return v

    @field_validator("min_chunk_size")
    @classmethod
    def validate_min_chunk_size(cls, v, info):
        if v < 0:
            raise ValueError("min_chunk_size must not be negative")
        if info.data and "chunk_size" in info.data and v > info.data["chunk_size"]:
            raise ValueError("min_chunk_size must not exceed chunk_size")
        return v


def default_profiles() -> Dict[str, ChunkProfile]:
    return {
        MARKDOWN: ChunkProfile(
            chunk_size=2000,
            min_chunk_size=300,
            chunk_overlap=200,
            keep_separator=True,
            separators=["\n# ", "\n## ", "\n### ", "\n#### ", "\n```", "\n\n", "\n", " ", ""],
        ),
        CODE: ChunkProfile(
            chunk_size=4000,
            min_chunk_size=300,
            chunk_overlap=400,
            keep_separator=True,
            separators=["\nclass ", "\ndef ", "\nfun ", "\nfunc ", "\npublic ", "\nprivate ",
                        "\n\n", "\n", " ", ""],
        ),
        SEMANTIC: ChunkProfile(
            chunk_size=6000,
            min_chunk_size=600,
            chunk_overlap=600,
            keep_separator=False,
            separators=["\n\n", "\n", " ", ""],
        ),
        SENTENCE: ChunkProfile(
            chunk_size=2000,
            min_chunk_size=300,
            chunk_overlap=300,
            keep_separator=True,
            separators=["\n\n", ". ", "! ", "? ", "\n", " ", ""],
        ),
        DEFAULT: ChunkProfile(
            chunk_size=2000,
            min_chunk_size=300,
            chunk_overlap=200,
            keep_separator=True,
        ),
    }
