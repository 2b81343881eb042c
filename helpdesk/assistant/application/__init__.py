"""
Assistant Application Layer
===========================

Application layer for the AI assistant module.

Contains:
- Services: chat pipeline and knowledge base orchestration
- Repository / backend interfaces
- DTOs: Data transfer objects for API serialization
"""

from helpdesk.assistant.application.dto import (
    ChatRequest,
    ChatResponse,
    MemoryTurnInfo,
    MemoryHistoryResponse,
    AvailabilityUpdateRequest,
    AvailabilityResponse,
    FaqCreateRequest,
    FaqEntryInfo,
    FaqListResponse,
    ExtractFaqRequest,
    ExtractFaqResponse,
    LearnFaqRequest,
    LearnFaqResponse,
)
from helpdesk.assistant.application.services import (
    AvailabilityGate,
    ResponseGenerator,
    DocumentExtractor,
    ConversationLearner,
    ChatOrchestrator,
    IMemoryRepository,
    IFaqRepository,
    IAvailabilityRepository,
    ITextGenerationBackend,
)
from helpdesk.assistant.application.knowledge import (
    KnowledgeBaseService,
    IngestionResult,
    LearningRunResult,
)

__all__ = [
    # DTOs
    "ChatRequest",
    "ChatResponse",
    "MemoryTurnInfo",
    "MemoryHistoryResponse",
    "AvailabilityUpdateRequest",
    "AvailabilityResponse",
    "FaqCreateRequest",
    "FaqEntryInfo",
    "FaqListResponse",
    "ExtractFaqRequest",
    "ExtractFaqResponse",
    "LearnFaqRequest",
    "LearnFaqResponse",
    # Services
    "AvailabilityGate",
    "ResponseGenerator",
    "DocumentExtractor",
    "ConversationLearner",
    "ChatOrchestrator",
    "KnowledgeBaseService",
    "IngestionResult",
    "LearningRunResult",
    # Repository / backend interfaces
    "IMemoryRepository",
    "IFaqRepository",
    "IAvailabilityRepository",
    "ITextGenerationBackend",
]
