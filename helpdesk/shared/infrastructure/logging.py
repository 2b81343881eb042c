"""
Structured Logging
==================

Every log line is one JSON object on stdout, so the aggregator can
index correlation IDs, user IDs and operation timings without parsing.

    from helpdesk.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Chat message handled", extra={"user_id": "user-1"})
"""

import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any
from contextlib import contextmanager

from pythonjsonlogger import jsonlogger


SENSITIVE_KEYS = ("password", "api_key", "authorization")
REDACTED = "***REDACTED***"

NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
    "apscheduler": logging.WARNING,
    "watchdog": logging.WARNING,
}


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    if any(marker in lowered for marker in SENSITIVE_KEYS):
        return True
    # access_token is a secret, prompt_tokens is a count
    return "token" in lowered and "tokens" not in lowered


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that stamps a UTC timestamp, the correlation ID and the
    environment on each record, and masks secret-looking string fields.
    """

    def __init__(self, *args: Any, environment: str = "unknown", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._environment = environment

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        if hasattr(record, "correlation_id"):
            log_record["correlation_id"] = record.correlation_id
        log_record["environment"] = getattr(record, "environment", self._environment)

        for key, value in list(log_record.items()):
            if isinstance(value, str) and _is_sensitive(key):
                log_record[key] = REDACTED


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Route all logging through a single stdout JSON handler.

    Replaces handlers already on the root logger, so calling it again
    (tests, reloads) does not duplicate output.
    """
    numeric_level = getattr(logging, level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(
        CustomJsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            environment=environment,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(numeric_level)
    root_logger.addHandler(handler)

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any):
    """
    Log "<operation> completed" with the elapsed milliseconds once the
    block exits, whether or not it raised.

        with log_latency(logger, "conversation_learning", turns=len(turns)):
            result = await service.learn_from_turns(turns)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{operation} completed",
            extra={"operation": operation, "latency_ms": round(latency_ms, 2), **extra_context},
        )
