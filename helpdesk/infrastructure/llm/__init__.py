"""
LLM Client Infrastructure
==========================

Wrappers for generative-text providers (OpenAI-compatible endpoints such as
Gemini, Z.AI GLM) exposing a single prompt-in / text-out operation.

Everything above this module talks to ILLMClient; which provider answers
is decided once by create_llm_client() from settings.
"""

import asyncio
import json
import time
from typing import Optional, Set
from abc import ABC, abstractmethod

from openai import AsyncOpenAI
from zai import ZaiClient

from helpdesk.config import Settings, settings as default_settings
from helpdesk.core import LLMException, ConfigurationException
from helpdesk.shared.infrastructure.grafana import get_grafana_exporter
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CompletionResult:
    """Result of a single prompt completion."""

    def __init__(
        self,
        text: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.text = text
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ILLMClient(ABC):
    """One prompt in, one CompletionResult out."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        operation: str = "chat"
    ) -> CompletionResult:
        """Send one prompt and return the generated text."""


# Strong references so in-flight exports are not garbage collected
_pending_exports: Set["asyncio.Task[bool]"] = set()


def _on_export_done(task: "asyncio.Task[bool]") -> None:
    _pending_exports.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning(
            "LLM usage export failed",
            extra={"error_type": type(error).__name__, "error": str(error)}
        )


def _export_metrics(result: CompletionResult, operation: str) -> None:
    """
    Schedule the usage export in the background.

    The completion is returned to the caller immediately; a slow or
    failing metrics gateway never delays or fails a generation.
    """
    exporter = get_grafana_exporter()
    if not exporter.is_enabled():
        return

    task = asyncio.create_task(exporter.export_completion(result, operation=operation))
    _pending_exports.add(task)
    task.add_done_callback(_on_export_done)


async def flush_metric_exports(timeout: float = 5.0) -> None:
    """
    Wait for pending usage exports, then cancel whatever is still running.

    Called on shutdown so the last few completions are not lost.

    Args:
        timeout: Seconds to wait before cancelling the remaining exports
    """
    if not _pending_exports:
        return

    pending = list(_pending_exports)
    _, still_running = await asyncio.wait(pending, timeout=timeout)
    for task in still_running:
        task.cancel()
    if still_running:
        logger.warning("Dropped pending LLM usage exports", extra={"count": len(still_running)})


class OpenAILLMClient(ILLMClient):
    """
    Client for any OpenAI-compatible chat completions endpoint.

    The default base URL is Gemini's OpenAI-compatible gateway, so the
    same code serves OpenAI, Gemini and Groq-style providers.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None
    ):
        self._api_key = api_key or default_settings.openai_api_key
        if not self._api_key:
            raise ConfigurationException("OpenAI-compatible API key not configured")

        self._client = AsyncOpenAI(
            api_key=self._api_key,
            base_url=base_url or default_settings.openai_base_url
        )
        self._model = model or default_settings.llm_model

    async def complete(
        self,
        prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        operation: str = "chat"
    ) -> CompletionResult:
        """
        Generate a completion for a single user prompt.

        Raises:
            LLMException: If the request fails
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=max_tokens
            )
        except Exception as e:
            raise LLMException(f"Completion failed: {e}", {"operation": operation})

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""
        usage = response.usage

        result = CompletionResult(
            text=text,
            model=self._model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            latency_ms=latency_ms
        )
        _export_metrics(result, operation)
        return result


class ZAIILLMClient(ILLMClient):
    """
    Z.AI SDK client implementation for GLM models.

    The SDK is synchronous, so calls run in a worker thread.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self._api_key = api_key or default_settings.zai_api_key
        if not self._api_key:
            raise ConfigurationException("Z.AI API key not configured")

        self._client = ZaiClient(api_key=self._api_key)
        self._model = model or default_settings.llm_model

    async def complete(
        self,
        prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        operation: str = "chat"
    ) -> CompletionResult:
        """
        Generate a completion using a GLM model.

        Raises:
            LLMException: If the request fails
        """
        start_time = time.perf_counter()

        try:
            response = await asyncio.to_thread(
                self._client.chat.completions.create,
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=max_tokens
            )
        except Exception as e:
            raise LLMException(f"Completion failed: {e}", {"operation": operation})

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""

        # Z.AI doesn't always return token usage, so we estimate
        result = CompletionResult(
            text=text,
            model=self._model,
            prompt_tokens=len(prompt),
            completion_tokens=len(text),
            latency_ms=latency_ms
        )
        _export_metrics(result, operation)
        return result


class MockLLMClient(ILLMClient):
    """
    Offline client for tests and local development.

    Never touches the network; replies are fixed per operation.
    """

    async def complete(
        self,
        prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        operation: str = "chat"
    ) -> CompletionResult:
        """Canned reply keyed on the operation tag."""
        if operation == "faq_extraction":
            mock_faqs = [
                {
                    "question": "How do I reset my password?",
                    "answer": "Open Settings > Security and choose Reset password."
                }
            ]
            text = f"```json\n{json.dumps(mock_faqs, indent=2)}\n```"
        elif operation == "faq_learning":
            text = json.dumps({"shouldSave": False})
        else:
            text = "This is a mock assistant response for testing purposes."

        return CompletionResult(
            text=text,
            model="mock-model",
            prompt_tokens=len(prompt.split()),
            completion_tokens=len(text.split()),
            latency_ms=0
        )


def create_llm_client(config: Optional[Settings] = None) -> ILLMClient:
    """
    Build the configured LLM client.

    Raises:
        ConfigurationException: If the selected provider has no API key
    """
    config = config or default_settings

    if config.mock_llm or config.llm_provider == "mock":
        logger.info("Using mock LLM client")
        return MockLLMClient()

    if config.llm_provider == "zai":
        return ZAIILLMClient(api_key=config.zai_api_key, model=config.llm_model)

    return OpenAILLMClient(
        api_key=config.openai_api_key,
        base_url=config.openai_base_url,
        model=config.llm_model
    )
