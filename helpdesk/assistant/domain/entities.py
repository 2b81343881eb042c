"""
Assistant Domain Entities
=========================

Domain entities for the AI assistant module.

Contains pure Python business objects for conversation memory,
the FAQ knowledge base and the availability switch.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from helpdesk.config import FaqSource, VALID_FAQ_SOURCES


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def question_key(question: str) -> str:
    """
    Comparison key for duplicate FAQ questions.

    Unicode case folding with collapsed whitespace, so "  Où est MON
    compte ?" and "où est mon compte ?" collide. Computed in Python
    and stored, because SQL lower() is ASCII-only on some backends.
    """
    return " ".join((question or "").split()).casefold()


@dataclass(frozen=True)
class MemoryTurn:
    """
    One completed exchange between a user and the assistant.

    Turns form an append-only log per user and are never edited.
    """
    user_id: str
    message: str
    response: str
    created_at: datetime = field(default_factory=_utcnow)
    id: Optional[int] = None

    def __post_init__(self):
        """Validate memory turn."""
        if not self.user_id:
            raise ValueError("Memory turn requires a user id")
        if not self.message or not self.message.strip():
            raise ValueError("Memory turn requires a non-empty user message")


@dataclass(frozen=True)
class FaqCandidate:
    """
    A question/answer pair that has not been persisted yet.

    Produced by document extraction and conversation learning; the
    caller decides whether it becomes a FaqEntry.
    """
    question: str
    answer: str

    def __post_init__(self):
        """Normalize whitespace and reject empty pairs."""
        question = (self.question or "").strip()
        answer = (self.answer or "").strip()
        if not question or not answer:
            raise ValueError("FAQ question and answer must both be non-empty")
        object.__setattr__(self, "question", question)
        object.__setattr__(self, "answer", answer)


@dataclass
class FaqEntry:
    """
    A persisted knowledge-base fact with provenance.

    Entries are global (shared by every user's prompt) and are
    never updated in place; corrections are delete + add.
    """
    question: str
    answer: str
    source: FaqSource
    created_at: datetime = field(default_factory=_utcnow)
    id: Optional[int] = None

    def __post_init__(self):
        """Validate FAQ entry."""
        self.question = (self.question or "").strip()
        self.answer = (self.answer or "").strip()
        if not self.question or not self.answer:
            raise ValueError("FAQ question and answer must both be non-empty")
        if self.source not in VALID_FAQ_SOURCES:
            raise ValueError(f"FAQ source must be one of {VALID_FAQ_SOURCES}")

    @classmethod
    def from_candidate(cls, candidate: FaqCandidate, source: FaqSource) -> "FaqEntry":
        """Create an unsaved entry from an extracted or learned pair."""
        return cls(question=candidate.question, answer=candidate.answer, source=source)


@dataclass
class AvailabilityFlag:
    """
    Singleton switch controlling whether the assistant may be invoked.

    Also remembers the last document the FAQ set was ingested from.
    """
    enabled: bool = True
    updated_at: datetime = field(default_factory=_utcnow)
    faq_document_url: Optional[str] = None


class ChatState(str, Enum):
    """Steps a chat message moves through in the orchestrator."""
    GATE_CHECK = "gate_check"
    VALIDATE = "validate"
    MEMORY_LOAD = "memory_load"
    COMPOSE = "compose"
    GENERATE = "generate"
    PERSIST = "persist"
    DONE = "done"
    ERROR = "error"
