"""
Unit tests for LLM clients and the backend adapter.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from helpdesk.assistant.application import (
    ChatOrchestrator,
    ConversationLearner,
    DocumentExtractor,
    ResponseGenerator,
)
from helpdesk.assistant.infrastructure import LLMBackendAdapter
from helpdesk.config import Settings
from helpdesk.core import ConfigurationException
from helpdesk.infrastructure.llm import (
    CompletionResult,
    MockLLMClient,
    OpenAILLMClient,
    create_llm_client,
    flush_metric_exports,
)


class TestCreateLLMClient:

    @pytest.mark.unit
    def test_mock_provider(self):
        client = create_llm_client(Settings(_env_file=None, llm_provider="mock"))
        assert isinstance(client, MockLLMClient)

    @pytest.mark.unit
    def test_mock_flag_wins(self):
        client = create_llm_client(Settings(_env_file=None, llm_provider="openai", mock_llm=True))
        assert isinstance(client, MockLLMClient)

    @pytest.mark.unit
    def test_openai_without_key(self):
        with pytest.raises(ConfigurationException):
            create_llm_client(Settings(_env_file=None, llm_provider="openai", openai_api_key=None))


class TestMockLLMClient:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_extraction_output_is_parseable(self):
        extractor = DocumentExtractor(ResponseGenerator(LLMBackendAdapter(MockLLMClient())))

        candidates = await extractor.extract("https://docs.example.com/faq.pdf")

        assert len(candidates) == 1
        assert candidates[0].question == "How do I reset my password?"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_learning_declines(self):
        learner = ConversationLearner(ResponseGenerator(LLMBackendAdapter(MockLLMClient())))
        assert await learner.consider_for_learning("q", "a") is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_chat_text(self):
        generator = ResponseGenerator(LLMBackendAdapter(MockLLMClient()))
        assert "mock" in await generator.generate("prompt")


class TestLLMBackendAdapter:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_passes_generation_options(self):
        client = MagicMock()
        client.complete = AsyncMock(return_value=CompletionResult("hi", "m", 1, 1, 5))
        adapter = LLMBackendAdapter(client, temperature=0.7, max_tokens=256)

        result = await adapter.complete("prompt", operation="faq_learning")

        assert result.text == "hi"
        client.complete.assert_awaited_once_with(
            "prompt", temperature=0.7, max_tokens=256, operation="faq_learning"
        )


def _openai_client(text: str) -> OpenAILLMClient:
    client = OpenAILLMClient(api_key="test-key", base_url="https://llm.example.net/v1/", model="gemini-2.5-flash")
    reply = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
    )
    client._client = MagicMock()
    client._client.chat.completions.create = AsyncMock(return_value=reply)
    return client


def _exporter(export):
    exporter = MagicMock()
    exporter.is_enabled.return_value = True
    exporter.export_completion = AsyncMock(side_effect=export)
    return patch("helpdesk.infrastructure.llm.get_grafana_exporter", return_value=exporter)


class TestUsageExport:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_slow_export_does_not_eat_generation_timeout(self, gate, memory_repo, faq_repo):
        async def slow_export(usage, operation="chat"):
            await asyncio.sleep(0.5)
            return True

        orchestrator = ChatOrchestrator(
            gate=gate,
            memory_repository=memory_repo,
            faq_repository=faq_repo,
            generator=ResponseGenerator(
                LLMBackendAdapter(_openai_client("Go to Settings > Security.")),
                timeout_seconds=0.2,
            ),
        )

        with _exporter(slow_export):
            response = await orchestrator.handle_message("u1", "How do I reset my password?")
            await flush_metric_exports(timeout=0)

        assert response == "Go to Settings > Security."
        assert len(memory_repo.turns) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failing_export_is_not_raised(self):
        async def broken_export(usage, operation="chat"):
            raise RuntimeError("gateway exploded")

        client = _openai_client("hello")

        with _exporter(broken_export) as get_exporter:
            result = await client.complete("prompt", operation="chat")
            await flush_metric_exports(timeout=1)

        assert result.text == "hello"
        get_exporter.return_value.export_completion.assert_awaited_once()
