import logging
from typing import List

from langchain_core.embeddings import Embeddings

from knowledge_engine.core.exceptions.error_messages import ErrorKey
from knowledge_engine.core.exceptions.exception_classes import UpstreamFailureError

logger = logging.getLogger(__name__)


class AgentEmbedder:
    """Embedding client of one agent; provider errors surface as EMBEDDING_FAILED"""

    def __init__(self, embeddings: Embeddings, model_name: str = ""):
        self.embeddings = embeddings
        self.model_name = model_name

    async def embed(self, text: str) -> List[float]:
        """Embed a document chunk"""
        vectors = await self.embed_many([text])
        return vectors[0]

    async def embed_many(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        try:
            vectors = await self.embeddings.aembed_documents(texts)
        except Exception as e:
            logger.error(f"Embedding {len(texts)} texts with '{self.model_name}' failed: {e}")
            raise UpstreamFailureError(ErrorKey.EMBEDDING_FAILED, error_detail=str(e))
        return [list(v) for v in vectors]

    async def embed_query(self, text: str) -> List[float]:
        """Embed a search query; some providers embed queries differently from documents"""
        try:
            return list(await self.embeddings.aembed_query(text))
        except Exception as e:
            logger.error(f"Query embedding with '{self.model_name}' failed: {e}")
            raise UpstreamFailureError(ErrorKey.EMBEDDING_FAILED, error_detail=str(e))
