"""
Integration tests for the conversation learning job.
"""

from contextlib import asynccontextmanager

import pytest

from helpdesk.assistant.infrastructure import (
    ConversationLearningJob,
    SQLAlchemyAvailabilityRepository,
    SQLAlchemyFaqRepository,
    SQLAlchemyMemoryRepository,
)
from helpdesk.config import FaqSource


@pytest.fixture
def session_factory(session_maker):
    @asynccontextmanager
    async def factory():
        async with session_maker() as db:
            try:
                yield db
                await db.commit()
            except Exception:
                await db.rollback()
                raise
    return factory


async def _append(session_maker, user_id, message, response):
    async with session_maker() as db:
        turn = await SQLAlchemyMemoryRepository(db).append_turn(user_id, message, response)
        await db.commit()
    return turn


class TestConversationLearningJob:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_first_run_only_sets_watermark(self, session_maker, session_factory, make_backend):
        existing = await _append(session_maker, "u1", "old question", "old answer")
        backend = make_backend('{"question": "Q", "answer": "A"}')
        job = ConversationLearningJob(backend, session_factory=session_factory)

        result = await job.run()

        assert result.turns_considered == 0
        assert job.last_turn_id == existing.id
        backend.complete.assert_not_awaited()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_learns_new_turns_once(self, session_maker, session_factory, make_backend):
        backend = make_backend('{"question": "How do I reset my password?", "answer": "Settings > Security."}')
        job = ConversationLearningJob(backend, batch_size=10, session_factory=session_factory)
        await job.run()

        turn = await _append(session_maker, "u1", "pw reset?", "Go to Settings > Security.")
        result = await job.run()

        assert result.turns_considered == 1
        assert result.entries_saved == 1
        assert job.last_turn_id == turn.id

        async with session_maker() as db:
            entries = await SQLAlchemyFaqRepository(db).list_all()
        assert [(e.question, e.source) for e in entries] == [
            ("How do I reset my password?", FaqSource.CONVERSATION)
        ]

        again = await job.run()
        assert again.turns_considered == 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_skips_when_disabled(self, session_maker, session_factory, make_backend):
        backend = make_backend('{"question": "Q", "answer": "A"}')
        job = ConversationLearningJob(backend, session_factory=session_factory)
        await job.run()
        await _append(session_maker, "u1", "q", "a")
        async with session_maker() as db:
            await SQLAlchemyAvailabilityRepository(db).write_flag(False)
            await db.commit()

        result = await job.run()

        assert result.turns_considered == 0
        backend.complete.assert_not_awaited()
