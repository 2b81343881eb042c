"""
Unit tests for the chat orchestrator.

Covers the gate, validation, memory persistence rules and the
end-to-end chat flow with in-memory repositories.
"""

import pytest

from helpdesk.assistant.application import ChatOrchestrator, ResponseGenerator
from helpdesk.assistant.domain import AssistantPromptConfig
from helpdesk.config import FaqSource
from helpdesk.core import AIDisabledException, GenerationException, ValidationException


@pytest.fixture
def orchestrator_factory(gate, memory_repo, faq_repo):
    def build(backend, **kwargs):
        return ChatOrchestrator(
            gate=gate,
            memory_repository=memory_repo,
            faq_repository=faq_repo,
            generator=ResponseGenerator(backend, timeout_seconds=5),
            **kwargs
        )
    return build


class TestChatOrchestrator:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_end_to_end_password_reset(self, orchestrator_factory, memory_repo, make_backend):
        memory_repo.seed("u1", "Hello", "Hi! How can I help?", minutes_ago=10)
        memory_repo.seed("u1", "I can't log in", "Are you seeing an error?", minutes_ago=5)
        backend = make_backend("Go to Settings > Security.")
        orchestrator = orchestrator_factory(backend)

        response = await orchestrator.handle_message("u1", "How do I reset my password?")

        assert response == "Go to Settings > Security."
        assert len(memory_repo.turns) == 3
        newest = memory_repo.turns[-1]
        assert newest.user_id == "u1"
        assert newest.message == "How do I reset my password?"
        assert newest.response == "Go to Settings > Security."

        prompt = backend.complete.await_args.args[0]
        assert prompt.index("User: Hello") < prompt.index("User: I can't log in")
        assert "Current user message: How do I reset my password?" in prompt

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_disabled_makes_no_backend_call(self, orchestrator_factory, gate, memory_repo, backend):
        await gate.set_enabled(False)
        orchestrator = orchestrator_factory(backend)

        with pytest.raises(AIDisabledException):
            await orchestrator.handle_message("u1", "Hello")

        backend.complete.assert_not_awaited()
        assert memory_repo.turns == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_gate_checked_before_validation(self, orchestrator_factory, gate, backend):
        await gate.set_enabled(False)
        orchestrator = orchestrator_factory(backend)

        with pytest.raises(AIDisabledException):
            await orchestrator.handle_message("u1", "")

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", ["", "   ", None, 42, ["hi"]])
    async def test_invalid_message(self, orchestrator_factory, memory_repo, backend, message):
        orchestrator = orchestrator_factory(backend)

        with pytest.raises(ValidationException) as exc_info:
            await orchestrator.handle_message("u1", message)

        assert exc_info.value.message == "Message is required"
        backend.complete.assert_not_awaited()
        assert memory_repo.turns == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generation_failure_persists_nothing(self, orchestrator_factory, memory_repo, make_backend):
        orchestrator = orchestrator_factory(make_backend(error=RuntimeError("backend down")))

        with pytest.raises(GenerationException):
            await orchestrator.handle_message("u1", "Hello")

        assert memory_repo.turns == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_faq_entries_reach_prompt(self, orchestrator_factory, faq_repo, backend):
        await faq_repo.add("How do I export data?", "Use Reports > Export.", FaqSource.MANUAL)
        orchestrator = orchestrator_factory(backend)

        await orchestrator.handle_message("u1", "export?")

        prompt = backend.complete.await_args.args[0]
        assert "Q: How do I export data?" in prompt
        assert "A: Use Reports > Export." in prompt

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_history_is_per_user(self, orchestrator_factory, memory_repo, backend):
        memory_repo.seed("someone-else", "secret question", "secret answer")
        orchestrator = orchestrator_factory(backend)

        await orchestrator.handle_message("u1", "Hello")

        prompt = backend.complete.await_args.args[0]
        assert "secret question" not in prompt
        assert "(No previous conversation)" in prompt

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_persona_from_config(self, orchestrator_factory, backend):
        config = AssistantPromptConfig(persona="You are Robo, the billing helper.")
        orchestrator = orchestrator_factory(backend, prompt_config=config)

        await orchestrator.handle_message("u1", "Hello")

        assert backend.complete.await_args.args[0].startswith("You are Robo, the billing helper.")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_get_history_oldest_first_and_limited(self, orchestrator_factory, memory_repo, backend):
        for i in range(12):
            memory_repo.seed("u1", f"m{i}", f"r{i}", minutes_ago=12 - i)
        orchestrator = orchestrator_factory(backend, memory_history_limit=10)

        history = await orchestrator.get_history("u1")

        assert [t.message for t in history] == [f"m{i}" for i in range(2, 12)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_too_long_message_rejected_after_gate(self, orchestrator_factory, gate, memory_repo, backend):
        orchestrator = orchestrator_factory(backend, max_message_length=10)

        with pytest.raises(ValidationException):
            await orchestrator.handle_message("u1", "x" * 11)

        await gate.set_enabled(False)
        with pytest.raises(AIDisabledException):
            await orchestrator.handle_message("u1", "x" * 11)

        backend.complete.assert_not_awaited()
        assert memory_repo.turns == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_history_reader_needs_no_generator(self, gate, memory_repo, faq_repo):
        memory_repo.seed("u1", "Hello", "Hi!")
        reader = ChatOrchestrator(gate=gate, memory_repository=memory_repo, faq_repository=faq_repo)

        history = await reader.get_history("u1")

        assert [t.message for t in history] == ["Hello"]
        with pytest.raises(RuntimeError):
            await reader.handle_message("u1", "Hello")
