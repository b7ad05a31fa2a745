"""Base class for the AI-backed services."""

import abc
import time
from datetime import datetime
from typing import Any, Dict

from loguru import logger

from formcraft.settings import Settings


class AIServiceBase(abc.ABC):
    """
    Abstract base class for services that call an AI provider.

    Provides the shared settings reference, metrics tracking and
    health reporting.
    """

    def __init__(
        self,
        settings: Settings,
        service_name: str = None,
        enable_metrics: bool = True,
    ):
        """
        Initialize the AI service base.

        :param settings: Application settings
        :param service_name: Name of the service (defaults to class name)
        :param enable_metrics: Whether to track performance metrics
        """
        self.settings = settings
        self.service_name = service_name or self.__class__.__name__
        self.enable_metrics = enable_metrics
        self.metrics = {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,
            "total_processing_time": 0,
            "last_request_time": None,
        }
        logger.debug(f"Initialized {self.service_name}")

    @property
    @abc.abstractmethod
    def is_configured(self) -> bool:
        """Whether the credentials this service needs are present."""

    def _track_metric(self, metric_name: str, increment: float = 1):
        """
        Track a performance metric if metrics are enabled.

        :param metric_name: Name of the metric to track
        :param increment: Value to increment the metric by
        """
        if self.enable_metrics:
            self.metrics[metric_name] = self.metrics.get(metric_name, 0) + increment

    def get_metrics(self) -> Dict[str, Any]:
        """
        Get the current performance metrics.

        :return: Dictionary of metrics
        """
        logger.debug(f"{self.service_name} metrics: {self.metrics}")
        return self.metrics

    async def run_with_metrics(self, func, *args, **kwargs):
        """
        Run a function while tracking metrics.

        :param func: Async function to run
        :param args: Positional arguments for the function
        :param kwargs: Keyword arguments for the function
        :return: Result of the function
        """
        start_time = time.time()
        self._track_metric("total_requests")

        try:
            result = await func(*args, **kwargs)
            self._track_metric("successful_requests")
            return result
        except Exception:
            self._track_metric("failed_requests")
            raise
        finally:
            processing_time = time.time() - start_time
            self._track_metric("total_processing_time", processing_time)
            self.metrics["last_request_time"] = datetime.utcnow().isoformat()

    def get_health(self) -> Dict[str, Any]:
        """
        Get health information about the service.

        :return: Dictionary with health information
        """
        return {
            "name": self.service_name,
            "configured": self.is_configured,
            "metrics": self.get_metrics(),
        }
