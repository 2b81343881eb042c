"""
Assistant Application Services
==============================

Application services for the AI chat pipeline.

Orchestrates business logic between domain entities, repositories and
the generative backend.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from helpdesk.assistant.domain import (
    AssistantPromptConfig,
    AvailabilityFlag,
    ChatPromptComposer,
    ChatState,
    FaqCandidate,
    FaqEntry,
    FaqExtractionPromptBuilder,
    FaqLearningPromptBuilder,
    MemoryTurn,
    parse_json_payload,
)
from helpdesk.assistant.domain.prompts import DEFAULT_FALLBACK_RESPONSE
from helpdesk.config import FaqSource
from helpdesk.core import (
    AIDisabledException,
    GenerationException,
    ValidationException,
)
from helpdesk.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class IMemoryRepository(ABC):
    """Interface for per-user conversation memory."""

    @abstractmethod
    async def list_recent_turns(self, user_id: str, limit: int) -> List[MemoryTurn]:
        """Most recent turns for one user, newest first."""

    @abstractmethod
    async def append_turn(self, user_id: str, message: str, response: str) -> MemoryTurn:
        """Store one completed exchange."""

    @abstractmethod
    async def list_turns_after(self, after_id: Optional[int], limit: int) -> List[MemoryTurn]:
        """Turns of all users with an id greater than `after_id`, oldest first."""

    @abstractmethod
    async def latest_turn_id(self) -> Optional[int]:
        """Id of the newest stored turn, or None when memory is empty."""


class IFaqRepository(ABC):
    """Interface for the FAQ knowledge base."""

    @abstractmethod
    async def list_all(self) -> List[FaqEntry]:
        """All entries, newest first."""

    @abstractmethod
    async def add(self, question: str, answer: str, source: FaqSource) -> FaqEntry:
        """Store a new entry."""

    @abstractmethod
    async def delete(self, entry_id: int) -> None:
        """Delete an entry; raises ResourceNotFoundException if absent."""

    @abstractmethod
    async def exists_with_question(self, question: str) -> bool:
        """Check for an entry with the same question (case-insensitive)."""


class IAvailabilityRepository(ABC):
    """Interface for the singleton availability record."""

    @abstractmethod
    async def read_flag(self) -> Optional[AvailabilityFlag]:
        """Current flag, or None if it was never created."""

    @abstractmethod
    async def create_default_flag(self) -> AvailabilityFlag:
        """Create the flag with enabled=True unless it already exists; return the stored flag."""

    @abstractmethod
    async def write_flag(self, enabled: bool) -> AvailabilityFlag:
        """Overwrite the enabled state and touch the timestamp."""

    @abstractmethod
    async def write_document_reference(self, reference: Optional[str]) -> AvailabilityFlag:
        """Remember the last ingested FAQ document."""


class ITextGenerationBackend(ABC):
    """Interface for the remote generative-text service."""

    @abstractmethod
    async def complete(self, prompt: str, operation: str = "chat") -> Any:
        """Send a prompt; the result exposes the generated text as `.text`."""


# ========== Application Services ==========

class AvailabilityGate:
    """
    Admin-controlled on/off switch for the assistant.

    Fails open: a missing record is created as enabled.
    """

    def __init__(self, repository: IAvailabilityRepository):
        self._repository = repository

    async def get_flag(self) -> AvailabilityFlag:
        """
        Read the availability record, creating it on first use.

        Returns:
            The stored flag; a fresh one is enabled
        """
        flag = await self._repository.read_flag()
        if flag is None:
            logger.info("Availability flag missing, creating enabled default")
            flag = await self._repository.create_default_flag()
        return flag

    async def is_enabled(self) -> bool:
        return (await self.get_flag()).enabled

    async def set_enabled(self, enabled: bool) -> AvailabilityFlag:
        """
        Switch the assistant on or off. Idempotent.

        Args:
            enabled: New state; the timestamp is touched even if unchanged

        Returns:
            The updated flag
        """
        flag = await self._repository.write_flag(enabled)
        logger.info("Assistant availability changed", extra={"enabled": enabled})
        return flag

    async def record_document(self, reference: Optional[str]) -> AvailabilityFlag:
        """Remember the last ingested FAQ document; `enabled` is untouched."""
        return await self._repository.write_document_reference(reference)


class ResponseGenerator:
    """
    Single best-effort call to the generative backend.

    Bounded by a timeout, never retried. Every failure surfaces as one
    opaque GenerationException; the cause is only logged.
    """

    def __init__(
        self,
        backend: ITextGenerationBackend,
        timeout_seconds: float = 30.0,
        fallback_response: str = DEFAULT_FALLBACK_RESPONSE,
    ):
        self._backend = backend
        self._timeout = timeout_seconds
        self._fallback = fallback_response

    async def complete_raw(self, prompt: str, operation: str = "chat") -> str:
        """
        Return the backend text as-is ("" when the backend sent nothing).

        Args:
            prompt: Fully composed prompt
            operation: Tag for logs and usage metrics

        Raises:
            GenerationException: On backend error or timeout
        """
        try:
            result = await asyncio.wait_for(
                self._backend.complete(prompt, operation=operation),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(
                "Generative backend timed out",
                extra={"operation": operation, "timeout_seconds": self._timeout}
            )
            raise GenerationException({"operation": operation}) from e
        except Exception as e:
            logger.error(
                "Generative backend call failed",
                extra={"operation": operation, "error_type": type(e).__name__, "error": str(e)}
            )
            raise GenerationException({"operation": operation}) from e

        text = getattr(result, "text", None)
        return text if isinstance(text, str) else ""

    async def generate(self, prompt: str, operation: str = "chat") -> str:
        """
        Generate a reply, substituting the fallback sentence for empty output.

        Returns:
            Non-empty reply text

        Raises:
            GenerationException: On backend error or timeout
        """
        text = await self.complete_raw(prompt, operation)
        if not text.strip():
            logger.warning("Backend returned empty text, using fallback", extra={"operation": operation})
            return self._fallback
        return text


class DocumentExtractor:
    """
    Turns a document reference into FAQ candidates via the backend.

    Never raises: unreachable backends and malformed output both yield [].
    """

    OPERATION = "faq_extraction"

    def __init__(self, generator: ResponseGenerator):
        self._generator = generator

    async def extract(self, document_reference: str) -> List[FaqCandidate]:
        """
        Ask the backend for the FAQ pairs in a document.

        Args:
            document_reference: URL or identifier of the document

        Returns:
            Usable candidates in model order; [] on any failure
        """
        prompt = FaqExtractionPromptBuilder.build_prompt(document_reference)

        try:
            text = await self._generator.complete_raw(prompt, operation=self.OPERATION)
        except GenerationException:
            logger.warning(
                "FAQ extraction skipped, backend unavailable",
                extra={"document_reference": document_reference}
            )
            return []

        payload = parse_json_payload(text, list, operation=self.OPERATION)
        if payload is None:
            return []

        candidates = []
        for item in payload:
            candidate = _candidate_from(item)
            if candidate is None:
                logger.warning("Dropping malformed extracted FAQ item", extra={"item_preview": str(item)[:200]})
                continue
            candidates.append(candidate)

        logger.info(
            "FAQ extraction finished",
            extra={"document_reference": document_reference, "extracted": len(candidates)}
        )
        return candidates


class ConversationLearner:
    """
    Decides whether a completed exchange is reusable FAQ knowledge.

    Fail-closed: anything other than a clear positive answer returns None.
    """

    OPERATION = "faq_learning"

    def __init__(self, generator: ResponseGenerator):
        self._generator = generator

    async def consider_for_learning(self, question: str, answer: str) -> Optional[FaqCandidate]:
        """
        Judge one exchange and return a refined FAQ pair if it is reusable.

        Args:
            question: The user's message
            answer: The assistant's reply

        Returns:
            Refined candidate (blank refined fields fall back to the
            originals), or None when declined or undecidable
        """
        prompt = FaqLearningPromptBuilder.build_prompt(question, answer)

        try:
            text = await self._generator.complete_raw(prompt, operation=self.OPERATION)
        except GenerationException:
            logger.warning("FAQ learning skipped, backend unavailable")
            return None

        payload = parse_json_payload(text, dict, operation=self.OPERATION)
        if payload is None:
            return None

        if payload.get("shouldSave") is False:
            logger.debug("Exchange judged not FAQ-worthy")
            return None

        refined_question = payload.get("question")
        refined_answer = payload.get("answer")
        if not isinstance(refined_question, str) or not refined_question.strip():
            refined_question = question
        if not isinstance(refined_answer, str) or not refined_answer.strip():
            refined_answer = answer

        try:
            return FaqCandidate(question=refined_question, answer=refined_answer)
        except ValueError:
            logger.warning("Learned FAQ pair is empty after normalization")
            return None


class ChatOrchestrator:
    """
    Entry point of the chat pipeline.

    GATE_CHECK -> VALIDATE -> MEMORY_LOAD -> COMPOSE -> GENERATE -> PERSIST -> DONE.
    Exactly one memory turn is written per successful call and none on
    any failure path.

    An orchestrator built without a generator can only read history.
    """

    def __init__(
        self,
        gate: AvailabilityGate,
        memory_repository: IMemoryRepository,
        faq_repository: IFaqRepository,
        generator: Optional[ResponseGenerator] = None,
        prompt_config: Optional[AssistantPromptConfig] = None,
        memory_history_limit: int = 10,
        prompt_history_limit: int = 5,
        max_message_length: int = 4000,
    ):
        self._gate = gate
        self._memory = memory_repository
        self._faq = faq_repository
        self._generator = generator
        self._prompt_config = prompt_config or AssistantPromptConfig()
        self._memory_history_limit = memory_history_limit
        self._prompt_history_limit = prompt_history_limit
        self._max_message_length = max_message_length

    async def handle_message(self, user_id: str, message: Any) -> str:
        """
        Answer one user message.

        Args:
            user_id: Owner of the conversation memory
            message: Raw message as received; checked after the gate

        Returns:
            The generated response (or the fallback sentence for empty output)

        Raises:
            AIDisabledException: The assistant is switched off
            ValidationException: The message is empty, not text or too long
            GenerationException: The backend failed
        """
        if self._generator is None:
            raise RuntimeError("ChatOrchestrator was built without a ResponseGenerator")

        state = ChatState.GATE_CHECK
        try:
            if not await self._gate.is_enabled():
                logger.info("Chat rejected, assistant disabled", extra={"user_id": user_id})
                raise AIDisabledException()

            state = ChatState.VALIDATE
            self._validate_message(message)

            state = ChatState.MEMORY_LOAD
            history = await self.get_history(user_id)

            state = ChatState.COMPOSE
            faq_entries = await self._faq.list_all()
            prompt = ChatPromptComposer.compose(
                persona=self._prompt_config.persona,
                faq_entries=faq_entries,
                history=history,
                new_message=message,
                history_limit=self._prompt_history_limit,
                faq_instruction=self._prompt_config.faq_instruction,
            )

            state = ChatState.GENERATE
            with log_latency(logger, "chat_generation", user_id=user_id):
                response = await self._generator.generate(prompt, operation="chat")

            state = ChatState.PERSIST
            await self._memory.append_turn(user_id, message, response)
        except (AIDisabledException, ValidationException):
            raise
        except Exception:
            logger.error(
                "Chat pipeline failed",
                extra={"user_id": user_id, "state": state.value, "next_state": ChatState.ERROR.value}
            )
            raise

        logger.info(
            "Chat message handled",
            extra={
                "user_id": user_id,
                "state": ChatState.DONE.value,
                "history_turns": len(history),
                "faq_entries": len(faq_entries),
            }
        )
        return response

    async def get_history(self, user_id: str) -> List[MemoryTurn]:
        """
        Load the user's most recent turns.

        Args:
            user_id: Owner of the conversation memory

        Returns:
            At most `memory_history_limit` turns, oldest first
        """
        turns = await self._memory.list_recent_turns(user_id, self._memory_history_limit)
        return list(reversed(turns))

    def _validate_message(self, message: Any) -> None:
        if not isinstance(message, str) or not message.strip():
            raise ValidationException("Message is required", {"field": "message"})
        if len(message) > self._max_message_length:
            raise ValidationException(
                f"Message too long (max {self._max_message_length} characters)",
                {"field": "message", "length": len(message)}
            )


def _candidate_from(item: Any) -> Optional[FaqCandidate]:
    """Build a candidate from one decoded JSON object, or None if unusable."""
    if not isinstance(item, dict):
        return None
    question = item.get("question")
    answer = item.get("answer")
    if not isinstance(question, str) or not isinstance(answer, str):
        return None
    try:
        return FaqCandidate(question=question, answer=answer)
    except ValueError:
        return None
