"""
Pytest configuration and shared fixtures.

This module provides fixtures for:
- In-memory repositories standing in for the database
- A mocked generative backend
- SQLite-backed sessions for repository and API tests
"""

import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import AsyncGenerator, List, Optional
from unittest.mock import AsyncMock

import pytest

# Set testing environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "ERROR"
os.environ["LLM_PROVIDER"] = "mock"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ASSISTANT_CONFIG_PATH"] = "tests/does-not-exist.yaml"
os.environ["LEARNING_INTERVAL_SECONDS"] = "0"
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("ZAI_API_KEY", None)

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from helpdesk.assistant.application import (  # noqa: E402
    AvailabilityGate,
    IAvailabilityRepository,
    IFaqRepository,
    IMemoryRepository,
    ResponseGenerator,
)
from helpdesk.assistant.domain import AvailabilityFlag, FaqEntry, MemoryTurn, question_key  # noqa: E402
from helpdesk.core import ResourceNotFoundException  # noqa: E402
from helpdesk.infrastructure.database import Base  # noqa: E402


# ─────────────────────────────────────────────────────────────────────────────
# In-memory repositories
# ─────────────────────────────────────────────────────────────────────────────

class InMemoryMemoryRepository(IMemoryRepository):
    def __init__(self):
        self.turns: List[MemoryTurn] = []
        self._next_id = 1

    def seed(self, user_id: str, message: str, response: str, minutes_ago: int = 0) -> MemoryTurn:
        turn = MemoryTurn(
            id=self._next_id,
            user_id=user_id,
            message=message,
            response=response,
            created_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
        )
        self._next_id += 1
        self.turns.append(turn)
        return turn

    async def list_recent_turns(self, user_id: str, limit: int) -> List[MemoryTurn]:
        own = [t for t in self.turns if t.user_id == user_id]
        own.sort(key=lambda t: (t.created_at, t.id), reverse=True)
        return own[:limit]

    async def append_turn(self, user_id: str, message: str, response: str) -> MemoryTurn:
        return self.seed(user_id, message, response)

    async def list_turns_after(self, after_id: Optional[int], limit: int) -> List[MemoryTurn]:
        newer = [t for t in self.turns if after_id is None or t.id > after_id]
        return sorted(newer, key=lambda t: t.id)[:limit]

    async def latest_turn_id(self) -> Optional[int]:
        return max((t.id for t in self.turns), default=None)


class InMemoryFaqRepository(IFaqRepository):
    def __init__(self):
        self.entries: List[FaqEntry] = []
        self._next_id = 1

    async def list_all(self) -> List[FaqEntry]:
        return list(reversed(self.entries))

    async def add(self, question: str, answer: str, source: str) -> FaqEntry:
        entry = FaqEntry(question=question, answer=answer, source=source, id=self._next_id)
        self._next_id += 1
        self.entries.append(entry)
        return entry

    async def delete(self, entry_id: int) -> None:
        for entry in self.entries:
            if entry.id == entry_id:
                self.entries.remove(entry)
                return
        raise ResourceNotFoundException("FAQ entry", str(entry_id))

    async def exists_with_question(self, question: str) -> bool:
        wanted = question_key(question)
        return any(question_key(e.question) == wanted for e in self.entries)


class InMemoryAvailabilityRepository(IAvailabilityRepository):
    def __init__(self, flag: Optional[AvailabilityFlag] = None):
        self.flag = flag
        self.creates = 0

    async def read_flag(self) -> Optional[AvailabilityFlag]:
        return self.flag

    async def create_default_flag(self) -> AvailabilityFlag:
        if self.flag is None:
            self.creates += 1
            self.flag = AvailabilityFlag(enabled=True)
        return self.flag

    async def write_flag(self, enabled: bool) -> AvailabilityFlag:
        current = self.flag or AvailabilityFlag()
        self.flag = AvailabilityFlag(enabled=enabled, faq_document_url=current.faq_document_url)
        return self.flag

    async def write_document_reference(self, reference: Optional[str]) -> AvailabilityFlag:
        current = self.flag or AvailabilityFlag()
        self.flag = AvailabilityFlag(enabled=current.enabled, faq_document_url=reference)
        return self.flag


@pytest.fixture
def memory_repo():
    return InMemoryMemoryRepository()


@pytest.fixture
def faq_repo():
    return InMemoryFaqRepository()


@pytest.fixture
def availability_repo():
    return InMemoryAvailabilityRepository()


@pytest.fixture
def gate(availability_repo):
    return AvailabilityGate(availability_repo)


# ─────────────────────────────────────────────────────────────────────────────
# Generative backend
# ─────────────────────────────────────────────────────────────────────────────

def _make_backend(text: Optional[str] = None, error: Optional[BaseException] = None):
    """Backend mock whose complete() resolves to an object with `.text`, or raises `error`."""
    backend = SimpleNamespace()
    if error is not None:
        backend.complete = AsyncMock(side_effect=error)
    else:
        backend.complete = AsyncMock(return_value=SimpleNamespace(text=text))
    return backend


@pytest.fixture
def make_backend():
    return _make_backend


@pytest.fixture
def backend():
    """Backend answering every prompt with a fixed sentence."""
    return _make_backend("Here is how to do that.")


@pytest.fixture
def generator(backend):
    return ResponseGenerator(backend, timeout_seconds=5)


# ─────────────────────────────────────────────────────────────────────────────
# SQLite database
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
async def engine():
    """Fresh in-memory SQLite database with all assistant tables."""
    import helpdesk.assistant.infrastructure.models  # noqa: F401

    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as db:
        yield db
        await db.rollback()
