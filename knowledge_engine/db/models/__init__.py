from .agent import AgentModel
from .knowledge import IndexStatus, KnowledgeChunkModel, KnowledgeSourceModel, SourceType
from .conversation import ChatMessageModel, ConversationModel

__all__ = [
    "AgentModel",
    "ChatMessageModel",
    "ConversationModel",
    "IndexStatus",
    "KnowledgeChunkModel",
    "KnowledgeSourceModel",
    "SourceType",
]
