"""
Unit tests for the Grafana OTLP exporter.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from helpdesk.infrastructure.llm import CompletionResult
from helpdesk.shared.infrastructure.grafana import GrafanaOTLPExporter


@pytest.fixture
def usage():
    return CompletionResult(text="hi", model="gemini-2.5-flash", prompt_tokens=120, completion_tokens=30, latency_ms=850)


@pytest.fixture
def exporter():
    return GrafanaOTLPExporter(host="https://otlp.example.net/", api_key="key", instance_id="42")


def _patched_client(post):
    client = MagicMock()
    client.post = post
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return patch("helpdesk.shared.infrastructure.grafana.httpx.AsyncClient", return_value=client)


class TestGrafanaOTLPExporter:

    @pytest.mark.unit
    def test_disabled_without_credentials(self):
        assert GrafanaOTLPExporter(host="https://otlp.example.net", api_key=None, instance_id=None).is_enabled() is False

    @pytest.mark.unit
    def test_payload_gauges(self, exporter, usage):
        payload = exporter.build_payload(usage, "faq_learning", timestamp_ns=1)

        metrics = payload["resourceMetrics"][0]["scopeMetrics"][0]["metrics"]
        values = {m["name"]: m["gauge"]["dataPoints"][0]["asInt"] for m in metrics}
        assert values == {
            "llm_tokens_total": 150,
            "llm_prompt_tokens": 120,
            "llm_completion_tokens": 30,
            "llm_latency_ms": 850,
        }
        attributes = {a["key"]: a["value"]["stringValue"] for a in metrics[0]["gauge"]["dataPoints"][0]["attributes"]}
        assert attributes["operation"] == "faq_learning"
        assert attributes["model"] == "gemini-2.5-flash"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_export_posts_to_otlp_path(self, exporter, usage):
        post = AsyncMock(return_value=MagicMock(status_code=200))

        with _patched_client(post):
            assert await exporter.export_completion(usage) is True

        assert post.await_args.args[0] == "https://otlp.example.net/otlp/v1/metrics"
        assert post.await_args.kwargs["headers"]["Authorization"].startswith("Basic ")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_export_failure_is_swallowed(self, exporter, usage):
        post = AsyncMock(side_effect=httpx.ConnectError("unreachable"))

        with _patched_client(post):
            assert await exporter.export_completion(usage) is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_disabled_export_is_noop(self, usage):
        assert await GrafanaOTLPExporter(host=None, api_key=None, instance_id=None).export_completion(usage) is False
