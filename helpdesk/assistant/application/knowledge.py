"""
Knowledge Base Services
=======================

Admin-facing FAQ operations: manual curation, document ingestion and
learning from completed conversations.

Extraction and learning only propose candidates; this service is where
they are persisted with their provenance tag.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from helpdesk.assistant.application.services import (
    AvailabilityGate,
    ConversationLearner,
    DocumentExtractor,
    IFaqRepository,
)
from helpdesk.assistant.domain import FaqCandidate, FaqEntry, MemoryTurn, question_key
from helpdesk.config import FaqSource
from helpdesk.core import ValidationException
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass
class IngestionResult:
    """Outcome of ingesting one document into the FAQ set."""
    document_reference: str
    extracted: int
    entries: List[FaqEntry] = field(default_factory=list)

    @property
    def saved(self) -> int:
        return len(self.entries)


@dataclass
class LearningRunResult:
    """Outcome of one batch pass over recent conversation turns."""
    turns_considered: int = 0
    entries_saved: int = 0
    last_turn_id: Optional[int] = None


class KnowledgeBaseService:
    """
    Service for curating the FAQ knowledge base.

    Coordinates the FAQ repository with the extractor and learner.
    """

    def __init__(
        self,
        faq_repository: IFaqRepository,
        gate: AvailabilityGate,
        extractor: Optional[DocumentExtractor] = None,
        learner: Optional[ConversationLearner] = None,
    ):
        self._faq = faq_repository
        self._gate = gate
        self._extractor = extractor
        self._learner = learner

    async def list_entries(self) -> List[FaqEntry]:
        return await self._faq.list_all()

    async def add_manual_entry(self, question: str, answer: str) -> FaqEntry:
        """
        Add an admin-authored entry. Not checked for duplicates.

        Args:
            question: Question text, whitespace is stripped
            answer: Answer text, whitespace is stripped

        Returns:
            The stored entry tagged `manual`

        Raises:
            ValidationException: If question or answer is blank
        """
        try:
            candidate = FaqCandidate(question=question, answer=answer)
        except ValueError as e:
            raise ValidationException(str(e), {"fields": ["question", "answer"]})

        entry = await self._faq.add(candidate.question, candidate.answer, FaqSource.MANUAL)
        logger.info("Manual FAQ entry added", extra={"faq_id": entry.id})
        return entry

    async def delete_entry(self, entry_id: int) -> None:
        """Raises ResourceNotFoundException for an unknown id."""
        await self._faq.delete(entry_id)
        logger.info("FAQ entry deleted", extra={"faq_id": entry_id})

    async def ingest_document(self, document_reference: str) -> IngestionResult:
        """
        Extract FAQ pairs from a document and store them tagged `pdf`.

        A document that yields nothing is not an error; the result
        simply reports zero entries.

        Args:
            document_reference: URL of the FAQ document

        Returns:
            IngestionResult with the extracted count and the saved entries
        """
        if self._extractor is None:
            raise RuntimeError("KnowledgeBaseService was built without a DocumentExtractor")

        candidates = await self._extractor.extract(document_reference)
        entries = await self._save_all(candidates, FaqSource.PDF)
        await self._gate.record_document(document_reference)

        logger.info(
            "Document ingested into FAQ",
            extra={
                "document_reference": document_reference,
                "extracted": len(candidates),
                "saved": len(entries),
            }
        )
        return IngestionResult(
            document_reference=document_reference,
            extracted=len(candidates),
            entries=entries,
        )

    async def learn_from_exchange(self, question: str, answer: str) -> Optional[FaqEntry]:
        """
        Ask the learner about one exchange and store the result tagged `conversation`.

        Args:
            question: The user's message
            answer: The assistant's reply

        Returns:
            The saved entry, or None when declined or already known
        """
        if self._learner is None:
            raise RuntimeError("KnowledgeBaseService was built without a ConversationLearner")

        candidate = await self._learner.consider_for_learning(question, answer)
        if candidate is None:
            return None

        saved = await self._save_all([candidate], FaqSource.CONVERSATION)
        return saved[0] if saved else None

    async def learn_from_turns(self, turns: Sequence[MemoryTurn]) -> LearningRunResult:
        """
        Run the learner over a batch of turns, oldest first.

        Args:
            turns: Remembered exchanges in ascending id order

        Returns:
            LearningRunResult with counts and the last turn id seen
        """
        result = LearningRunResult()
        for turn in turns:
            result.turns_considered += 1
            result.last_turn_id = turn.id
            if await self.learn_from_exchange(turn.message, turn.response) is not None:
                result.entries_saved += 1

        if result.turns_considered:
            logger.info(
                "Conversation learning run finished",
                extra={
                    "turns_considered": result.turns_considered,
                    "entries_saved": result.entries_saved,
                }
            )
        return result

    async def _save_all(self, candidates: Sequence[FaqCandidate], source: FaqSource) -> List[FaqEntry]:
        """Persist candidates, skipping questions the knowledge base already holds."""
        entries = []
        seen = set()
        for candidate in candidates:
            key = question_key(candidate.question)
            if key in seen or await self._faq.exists_with_question(candidate.question):
                logger.debug("Skipping duplicate FAQ question", extra={"source": source})
                continue
            seen.add(key)
            entries.append(await self._faq.add(candidate.question, candidate.answer, source))
        return entries
