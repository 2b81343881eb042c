"""
Assistant Infrastructure Repositories
=====================================

SQLAlchemy implementations of the assistant repositories.

This layer contains the data access logic - how we store and retrieve
entities from the database.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.assistant.application import (
    IAvailabilityRepository,
    IFaqRepository,
    IMemoryRepository,
)
from helpdesk.assistant.domain import AvailabilityFlag, FaqEntry, MemoryTurn, question_key
from helpdesk.assistant.infrastructure.models import (
    SETTINGS_ROW_ID,
    AssistantSettingsModel,
    FaqEntryModel,
    MemoryTurnModel,
)
from helpdesk.config import FaqSource
from helpdesk.core import RepositoryException, ResourceNotFoundException


def _memory_turn_to_domain(model: MemoryTurnModel) -> MemoryTurn:
    return MemoryTurn(
        id=model.id,
        user_id=model.user_id,
        message=model.message,
        response=model.response,
        created_at=model.created_at,
    )


def _faq_to_domain(model: FaqEntryModel) -> FaqEntry:
    return FaqEntry(
        id=model.id,
        question=model.question,
        answer=model.answer,
        source=model.source,
        created_at=model.created_at,
    )


def _flag_to_domain(model: AssistantSettingsModel) -> AvailabilityFlag:
    return AvailabilityFlag(
        enabled=model.enabled,
        updated_at=model.updated_at,
        faq_document_url=model.faq_document_url,
    )


class SQLAlchemyMemoryRepository(IMemoryRepository):
    """SQLAlchemy implementation of per-user conversation memory."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_recent_turns(self, user_id: str, limit: int) -> List[MemoryTurn]:
        """
        Most recent turns for one user, newest first.

        Args:
            user_id: Owner of the turns
            limit: Maximum number of turns to return

        Returns:
            Up to `limit` turns, newest first
        """
        stmt = (
            select(MemoryTurnModel)
            .where(MemoryTurnModel.user_id == user_id)
            .order_by(MemoryTurnModel.created_at.desc(), MemoryTurnModel.id.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [_memory_turn_to_domain(m) for m in result.scalars().all()]

    async def append_turn(self, user_id: str, message: str, response: str) -> MemoryTurn:
        """
        Store one completed exchange.

        Args:
            user_id: Owner of the turn
            message: The user's message
            response: The generated reply

        Returns:
            The stored turn with its id and timestamp
        """
        model = MemoryTurnModel(
            user_id=user_id,
            message=message,
            response=response,
            created_at=datetime.now(timezone.utc),
        )

        self._session.add(model)
        await self._session.flush()

        return _memory_turn_to_domain(model)

    async def list_turns_after(self, after_id: Optional[int], limit: int) -> List[MemoryTurn]:
        """Turns of all users with id > after_id, oldest first."""
        stmt = select(MemoryTurnModel).order_by(MemoryTurnModel.id.asc()).limit(limit)
        if after_id is not None:
            stmt = stmt.where(MemoryTurnModel.id > after_id)

        result = await self._session.execute(stmt)
        return [_memory_turn_to_domain(m) for m in result.scalars().all()]

    async def latest_turn_id(self) -> Optional[int]:
        """Highest stored turn id, or None when memory is empty."""
        result = await self._session.execute(select(func.max(MemoryTurnModel.id)))
        return result.scalar()


class SQLAlchemyFaqRepository(IFaqRepository):
    """SQLAlchemy implementation of the FAQ knowledge base."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_all(self) -> List[FaqEntry]:
        """All entries, newest first."""
        stmt = select(FaqEntryModel).order_by(FaqEntryModel.created_at.desc(), FaqEntryModel.id.desc())
        result = await self._session.execute(stmt)
        return [_faq_to_domain(m) for m in result.scalars().all()]

    async def add(self, question: str, answer: str, source: FaqSource) -> FaqEntry:
        """
        Store a new entry; the domain entity validates it first.

        Args:
            question: Question text
            answer: Answer text
            source: Origin tag (manual, pdf or conversation)

        Returns:
            The stored entry with its id and timestamp
        """
        entry = FaqEntry(question=question, answer=answer, source=source)

        model = FaqEntryModel(
            question=entry.question,
            question_key=question_key(entry.question),
            answer=entry.answer,
            source=entry.source,
            created_at=entry.created_at,
        )

        self._session.add(model)
        await self._session.flush()

        return _faq_to_domain(model)

    async def delete(self, entry_id: int) -> None:
        """Delete one entry; raises ResourceNotFoundException if it does not exist."""
        model = await self._session.get(FaqEntryModel, entry_id)
        if model is None:
            raise ResourceNotFoundException("FAQ entry", str(entry_id))

        await self._session.delete(model)
        await self._session.flush()

    async def exists_with_question(self, question: str) -> bool:
        """
        Match on the stored question_key (Unicode case-folded, whitespace collapsed).

        Args:
            question: Candidate question text

        Returns:
            True if an entry with the same key exists
        """
        stmt = (
            select(FaqEntryModel.id)
            .where(FaqEntryModel.question_key == question_key(question))
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None


class SQLAlchemyAvailabilityRepository(IAvailabilityRepository):
    """
    SQLAlchemy implementation of the availability singleton.

    Writes are upserts on the fixed primary key, so two requests racing
    to create the default row never raise.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    def _insert(self):
        """Dialect insert construct supporting ON CONFLICT."""
        dialect = self._session.bind.dialect.name
        if dialect == "postgresql":
            return postgresql.insert(AssistantSettingsModel)
        if dialect == "sqlite":
            return sqlite.insert(AssistantSettingsModel)
        raise RepositoryException(f"Unsupported database dialect for settings upsert: {dialect}")

    async def _load(self) -> Optional[AssistantSettingsModel]:
        stmt = (
            select(AssistantSettingsModel)
            .where(AssistantSettingsModel.id == SETTINGS_ROW_ID)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def _load_required(self) -> AvailabilityFlag:
        model = await self._load()
        if model is None:
            raise RepositoryException("Assistant settings row missing after upsert")
        return _flag_to_domain(model)

    async def read_flag(self) -> Optional[AvailabilityFlag]:
        """Stored flag, or None when it was never created."""
        model = await self._load()
        return _flag_to_domain(model) if model else None

    async def create_default_flag(self) -> AvailabilityFlag:
        """Insert the enabled default unless a row exists, then return the stored flag."""
        stmt = (
            self._insert()
            .values(id=SETTINGS_ROW_ID, enabled=True, updated_at=datetime.now(timezone.utc))
            .on_conflict_do_nothing(index_elements=["id"])
        )
        await self._session.execute(stmt)
        return await self._load_required()

    async def write_flag(self, enabled: bool) -> AvailabilityFlag:
        """
        Upsert the enabled state and touch updated_at.

        Args:
            enabled: New availability

        Returns:
            The stored flag
        """
        now = datetime.now(timezone.utc)
        stmt = self._insert().values(id=SETTINGS_ROW_ID, enabled=enabled, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={"enabled": enabled, "updated_at": now},
        )
        await self._session.execute(stmt)
        return await self._load_required()

    async def write_document_reference(self, reference: Optional[str]) -> AvailabilityFlag:
        """Upsert the last ingested FAQ document without changing enabled."""
        now = datetime.now(timezone.utc)
        stmt = self._insert().values(
            id=SETTINGS_ROW_ID, enabled=True, faq_document_url=reference, updated_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={"faq_document_url": reference, "updated_at": now},
        )
        await self._session.execute(stmt)
        return await self._load_required()
