"""
Unit tests for structured logging.
"""

import json
import logging

import pytest

from helpdesk.shared.infrastructure.logging import CustomJsonFormatter, log_latency


def _format(**extra) -> dict:
    formatter = CustomJsonFormatter("%(name)s %(levelname)s %(message)s", environment="staging")
    record = logging.LogRecord("helpdesk.test", logging.INFO, __file__, 1, "hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return json.loads(formatter.format(record))


class TestCustomJsonFormatter:

    @pytest.mark.unit
    def test_adds_context_fields(self):
        data = _format(correlation_id="abc")

        assert data["message"] == "hello"
        assert data["correlation_id"] == "abc"
        assert data["environment"] == "staging"
        assert "timestamp" in data

    @pytest.mark.unit
    def test_redacts_secrets(self):
        data = _format(openai_api_key="sk-123", access_token="t0k", prompt_tokens=12)

        assert data["openai_api_key"] == "***REDACTED***"
        assert data["access_token"] == "***REDACTED***"
        assert data["prompt_tokens"] == 12


class TestLogLatency:

    @pytest.mark.unit
    def test_logs_even_when_block_raises(self, caplog):
        logger = logging.getLogger("helpdesk.test.latency")

        with caplog.at_level(logging.INFO, logger="helpdesk.test.latency"):
            with pytest.raises(RuntimeError):
                with log_latency(logger, "conversation_learning", turns=3):
                    raise RuntimeError("boom")

        record = caplog.records[-1]
        assert record.getMessage() == "conversation_learning completed"
        assert record.turns == 3
        assert record.latency_ms >= 0
