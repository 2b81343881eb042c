"""
Grafana OTLP Metrics Exporter
=============================

Pushes generative-backend usage to Grafana Cloud through its OTLP/HTTP
gateway. One gauge per figure, tagged with model and operation
(chat, faq_extraction, faq_learning):

- llm_tokens_total
- llm_prompt_tokens
- llm_completion_tokens
- llm_latency_ms

Nothing is sent unless host, API key and instance ID are all configured.
"""

import base64
import time
from typing import Any, Dict, List, Optional, Protocol

import httpx

from helpdesk.config import settings
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

OTLP_METRICS_PATH = "/otlp/v1/metrics"
EXPORT_TIMEOUT_SECONDS = 10.0


class CompletionUsage(Protocol):
    """Usage figures of one backend call."""
    model: str
    prompt_tokens: int
    completion_tokens: int
    latency_ms: int


def _string_attributes(values: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [{"key": k, "value": {"stringValue": str(v)}} for k, v in values.items()]


class GrafanaOTLPExporter:
    """Sends LLM usage gauges to the Grafana Cloud OTLP gateway."""

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        instance_id: Optional[str] = None
    ):
        self._host = host or settings.grafana_host
        self._instance_id = instance_id or settings.grafana_instance_id
        api_key = api_key or settings.grafana_api_key

        self._url: Optional[str] = None
        self._headers: Dict[str, str] = {}
        if not (self._host and api_key and self._instance_id):
            return

        self._url = self._host if OTLP_METRICS_PATH in self._host else self._host.rstrip("/") + OTLP_METRICS_PATH
        credentials = base64.b64encode(f"{self._instance_id}:{api_key}".encode()).decode()
        self._headers = {
            "Authorization": f"Basic {credentials}",
            "Content-Type": "application/json",
            "X-Grafana-Org-Id": str(self._instance_id),
        }
        logger.info("Grafana OTLP exporter configured", extra={"url": self._url, "instance_id": self._instance_id})

    def is_enabled(self) -> bool:
        return self._url is not None

    def build_payload(
        self,
        usage: CompletionUsage,
        operation: str,
        attributes: Optional[Dict[str, str]] = None,
        timestamp_ns: Optional[int] = None
    ) -> Dict[str, Any]:
        """OTLP resourceMetrics document for one backend call."""
        timestamp_ns = timestamp_ns or time.time_ns()
        point_attributes = _string_attributes({
            "model": usage.model,
            "operation": operation,
            "service": settings.app_name,
            **(attributes or {}),
        })

        figures = (
            ("llm_tokens_total", "1", usage.prompt_tokens + usage.completion_tokens),
            ("llm_prompt_tokens", "1", usage.prompt_tokens),
            ("llm_completion_tokens", "1", usage.completion_tokens),
            ("llm_latency_ms", "ms", usage.latency_ms),
        )
        metrics = [
            {
                "name": name,
                "unit": unit,
                "gauge": {"dataPoints": [
                    {"asInt": int(value), "timeUnixNano": timestamp_ns, "attributes": point_attributes}
                ]},
            }
            for name, unit, value in figures
        ]

        resource = _string_attributes({
            "service.name": settings.app_name,
            "service.version": settings.app_version,
            "deployment.environment": settings.environment,
        })
        return {"resourceMetrics": [{"resource": {"attributes": resource}, "scopeMetrics": [{"metrics": metrics}]}]}

    async def export_completion(
        self,
        usage: CompletionUsage,
        operation: str = "chat",
        attributes: Optional[Dict[str, str]] = None
    ) -> bool:
        """
        Push usage for one completion.

        Returns:
            True when Grafana accepted the batch. Never raises.
        """
        if not self.is_enabled():
            return False

        payload = self.build_payload(usage, operation, attributes)

        try:
            async with httpx.AsyncClient(timeout=EXPORT_TIMEOUT_SECONDS) as client:
                response = await client.post(self._url, headers=self._headers, json=payload)
        except httpx.HTTPError as e:
            logger.warning("Grafana metrics export failed", extra={"error": str(e), "operation": operation})
            return False

        if response.status_code not in (200, 202):
            logger.warning(
                "Grafana rejected metrics",
                extra={"status_code": response.status_code, "response_preview": response.text[:500]}
            )
            return False

        logger.debug("LLM usage exported", extra={"model": usage.model, "operation": operation})
        return True


_exporter: Optional[GrafanaOTLPExporter] = None


def get_grafana_exporter() -> GrafanaOTLPExporter:
    """Process-wide exporter (disabled until credentials are configured)."""
    global _exporter
    if _exporter is None:
        _exporter = GrafanaOTLPExporter()
    return _exporter


def init_grafana_exporter(host: str, api_key: str, instance_id: str) -> GrafanaOTLPExporter:
    global _exporter
    _exporter = GrafanaOTLPExporter(host=host, api_key=api_key, instance_id=instance_id)
    return _exporter
