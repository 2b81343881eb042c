"""
Assistant Infrastructure Layer
==============================

Infrastructure implementations for the AI assistant module.

Contains:
- Models: SQLAlchemy ORM models
- Repositories: Data access implementations
- External: backend adapter, persona config watcher, learning job
"""

from helpdesk.assistant.infrastructure.models import (
    MemoryTurnModel,
    FaqEntryModel,
    AssistantSettingsModel,
)
from helpdesk.assistant.infrastructure.repositories import (
    SQLAlchemyMemoryRepository,
    SQLAlchemyFaqRepository,
    SQLAlchemyAvailabilityRepository,
)
from helpdesk.assistant.infrastructure.external import (
    LLMBackendAdapter,
    AssistantConfigManager,
    ConversationLearningJob,
    LearningScheduler,
)

__all__ = [
    "MemoryTurnModel",
    "FaqEntryModel",
    "AssistantSettingsModel",
    "SQLAlchemyMemoryRepository",
    "SQLAlchemyFaqRepository",
    "SQLAlchemyAvailabilityRepository",
    "LLMBackendAdapter",
    "AssistantConfigManager",
    "ConversationLearningJob",
    "LearningScheduler",
]
