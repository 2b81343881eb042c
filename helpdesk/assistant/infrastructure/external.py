"""
Assistant External Service Integrations
=======================================

External services for the assistant module:
- Generative backend adapter over the infrastructure LLM clients
- YAML persona config watcher
- APScheduler job that learns FAQ entries from recent conversations
"""

import threading
from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from helpdesk.assistant.application import (
    AvailabilityGate,
    ConversationLearner,
    ITextGenerationBackend,
    KnowledgeBaseService,
    LearningRunResult,
    ResponseGenerator,
)
from helpdesk.assistant.domain import AssistantPromptConfig
from helpdesk.assistant.infrastructure.repositories import (
    SQLAlchemyAvailabilityRepository,
    SQLAlchemyFaqRepository,
    SQLAlchemyMemoryRepository,
)
from helpdesk.config import settings
from helpdesk.infrastructure.database import get_session_context
from helpdesk.infrastructure.llm import CompletionResult, ILLMClient
from helpdesk.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


class LLMBackendAdapter(ITextGenerationBackend):
    """
    Adapter that wraps the infrastructure LLM client.

    Implements the application layer ITextGenerationBackend interface,
    pinning temperature and token limits from settings.
    """

    def __init__(
        self,
        client: ILLMClient,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ):
        self._client = client
        self._temperature = settings.llm_temperature if temperature is None else temperature
        self._max_tokens = settings.llm_max_tokens if max_tokens is None else max_tokens

    async def complete(self, prompt: str, operation: str = "chat") -> CompletionResult:
        return await self._client.complete(
            prompt,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            operation=operation
        )


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for assistant config file changes."""

    def __init__(self, config_manager: "AssistantConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.config_path.resolve():
            logger.info("Assistant config file changed", extra={"path": event.src_path})
            self.config_manager.reload()


class AssistantConfigManager:
    """
    Thread-safe persona/prompt configuration with hot-reload support.

    A missing file means built-in defaults; a broken edit keeps the
    last good configuration.
    """

    def __init__(self):
        self._config: Optional[AssistantPromptConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> AssistantPromptConfig:
        """Read the YAML once and remember its path for later reloads."""
        self._path = Path(path)
        self._config = self._load_from_file(self._path)
        return self._config

    def _load_from_file(self, path: Path) -> AssistantPromptConfig:
        if not path.exists():
            logger.warning("Assistant config file not found, using defaults", extra={"path": str(path)})
            return AssistantPromptConfig()

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Assistant config must be a mapping, got {type(data).__name__}")

        return AssistantPromptConfig(**data)

    def reload(self) -> bool:
        """Swap in the file's current contents; False leaves the old config active."""
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except (OSError, ValueError, yaml.YAMLError, ValidationError) as e:
            logger.error(
                "Failed to reload assistant config, keeping previous",
                extra={"path": str(self._path), "error": str(e)}
            )
            return False

        with self._lock:
            self._config = new_config
        logger.info("Assistant configuration reloaded")
        return True

    def start_watching(self) -> None:
        """
        Start watching the configuration file for changes.

        Skipped when the file doesn't exist or inotify is unavailable.
        """
        if self._path is None:
            raise RuntimeError("Config not loaded. Call load() first.")

        if not self._path.exists():
            logger.info("Assistant config file doesn't exist, skipping file watch", extra={"path": str(self._path)})
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(handler, str(self._path.resolve().parent), recursive=False)
            self._observer.start()
            logger.info("Started watching assistant config file", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning(f"File watching not available, using static config: {e}")
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def config(self) -> AssistantPromptConfig:
        if self._config is None:
            raise RuntimeError("Assistant configuration not loaded")
        with self._lock:
            return self._config


class ConversationLearningJob:
    """
    Feeds newly persisted memory turns to the conversation learner.

    Keeps an in-process id watermark. The first run only records the
    current newest turn so history from before startup is not replayed.
    """

    def __init__(
        self,
        backend: ITextGenerationBackend,
        batch_size: int = 20,
        timeout_seconds: float = 30.0,
        session_factory: Callable[[], Any] = get_session_context
    ):
        self._backend = backend
        self._batch_size = batch_size
        self._timeout = timeout_seconds
        self._session_factory = session_factory
        self._last_turn_id: Optional[int] = None
        self._primed = False

    @property
    def last_turn_id(self) -> Optional[int]:
        return self._last_turn_id

    async def run(self) -> LearningRunResult:
        async with self._session_factory() as session:
            memory = SQLAlchemyMemoryRepository(session)

            if not self._primed:
                self._last_turn_id = await memory.latest_turn_id()
                self._primed = True
                logger.info("Conversation learning watermark set", extra={"last_turn_id": self._last_turn_id})
                return LearningRunResult(last_turn_id=self._last_turn_id)

            gate = AvailabilityGate(SQLAlchemyAvailabilityRepository(session))
            if not await gate.is_enabled():
                logger.debug("Assistant disabled, skipping conversation learning run")
                return LearningRunResult(last_turn_id=self._last_turn_id)

            turns = await memory.list_turns_after(self._last_turn_id, self._batch_size)
            if not turns:
                return LearningRunResult(last_turn_id=self._last_turn_id)

            learner = ConversationLearner(ResponseGenerator(self._backend, timeout_seconds=self._timeout))
            service = KnowledgeBaseService(SQLAlchemyFaqRepository(session), gate, learner=learner)
            with log_latency(logger, "conversation_learning", turns=len(turns)):
                result = await service.learn_from_turns(turns)

        # Only advance once the session has committed
        if result.last_turn_id is not None:
            self._last_turn_id = result.last_turn_id
        return result


class LearningScheduler:
    """
    Wrapper for APScheduler running the conversation learning job.

    Manages the lifecycle of the scheduler and its single job.
    """

    def __init__(self, interval_seconds: int = 300):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func) -> None:
        """Schedule `job_func` every `interval_seconds`; overlapping runs are skipped."""
        if self._running:
            logger.warning("Learning scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id="conversation_learning",
            name="Conversation Learning Job",
            misfire_grace_time=60,
            max_instances=1,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info("Learning scheduler started", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        """Shut down without waiting for an in-flight run."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Learning scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
