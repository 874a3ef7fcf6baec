"""Abstract Engine base class for redaction engines."""

from abc import ABC, abstractmethod
from typing import Any

import structlog

from callscrub.engine_sdk.types import TaskInput, TaskOutput


class Engine(ABC):
    """Abstract base class for callscrub engines.

    The base class provides ``self.logger``, a structlog bound logger.
    Engine authors can use it directly::

        self.logger.info("spans_detected", count=3)

    Example:
        class CountingEngine(Engine):
            def process(self, input: TaskInput) -> TaskOutput:
                words = input.get_transcript().words
                return TaskOutput(data={"word_count": len(words)})
    """

    def __init__(self) -> None:
        # structlog loggers are lazy proxies; configuration is resolved on
        # first log call, so this is safe before logging.configure() runs.
        self.logger = structlog.get_logger()

    @abstractmethod
    def process(self, input: TaskInput) -> TaskOutput:
        """Process a single job.

        Args:
            input: Task input containing audio path, transcript and config

        Returns:
            TaskOutput containing the processing results

        Raises:
            RedactionError: When no safe output could be produced
        """
        raise NotImplementedError

    def health_check(self) -> dict[str, Any]:
        """Return health status for monitoring.

        Override this method to provide engine-specific health information.

        Returns:
            Dictionary with at least a "status" key ("healthy" or "degraded")
        """
        return {
            "status": "healthy",
        }
