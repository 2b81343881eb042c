"""
Assistant Domain Layer
======================

Domain layer for the AI assistant module.

Contains:
- Entities: MemoryTurn, FaqEntry, FaqCandidate, AvailabilityFlag
- Prompt builders: chat composer, FAQ extraction and learning prompts
- Parsing: best-effort JSON recovery from model output

This layer is framework-agnostic and contains pure business logic.
"""

from helpdesk.assistant.domain.entities import (
    MemoryTurn,
    FaqCandidate,
    FaqEntry,
    AvailabilityFlag,
    ChatState,
    question_key,
)
from helpdesk.assistant.domain.prompts import (
    AssistantPromptConfig,
    ChatPromptComposer,
    FaqExtractionPromptBuilder,
    FaqLearningPromptBuilder,
    NO_HISTORY_MARKER,
)
from helpdesk.assistant.domain.parsing import parse_json_payload, strip_code_fences

__all__ = [
    "MemoryTurn",
    "FaqCandidate",
    "FaqEntry",
    "AvailabilityFlag",
    "ChatState",
    "question_key",
    "AssistantPromptConfig",
    "ChatPromptComposer",
    "FaqExtractionPromptBuilder",
    "FaqLearningPromptBuilder",
    "NO_HISTORY_MARKER",
    "parse_json_payload",
    "strip_code_fences",
]
