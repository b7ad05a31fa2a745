"""Text embedding provider."""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from litellm import aembedding
from loguru import logger

from formcraft.services.ai.errors import ConfigurationMissing, UpstreamTransportError
from formcraft.services.ai.service_base import AIServiceBase
from formcraft.settings import Settings

# Dimensionality of every stored or compared vector
EMBEDDING_DIMENSIONS = 768


def coerce_dimensions(
    vector: Sequence[float], dimensions: int = EMBEDDING_DIMENSIONS
) -> List[float]:
    """
    Truncate or right-pad a vector with zeros to a fixed length.

    :param vector: Vector of any length
    :param dimensions: Target length
    :return: Vector with exactly ``dimensions`` items
    """
    values = [float(v) for v in vector[:dimensions]]
    if len(values) < dimensions:
        values.extend([0.0] * (dimensions - len(values)))
    return values


def _extract_vector(response: Any) -> List[float]:
    item = response.data[0]
    if isinstance(item, dict):
        return item["embedding"]
    return item.embedding


class EmbeddingProvider(AIServiceBase):
    """Turns text into a fixed-dimension vector via LiteLLM."""

    def __init__(
        self,
        settings: Settings,
        embedding_fn: Optional[Callable[..., Awaitable[Any]]] = None,
        enable_metrics: bool = True,
    ):
        """
        Initialize the embedding provider.

        :param settings: Application settings
        :param embedding_fn: Async embedding call, defaults to ``litellm.aembedding``
        :param enable_metrics: Whether to track performance metrics
        """
        super().__init__(settings, "embedding_provider", enable_metrics)
        self.api_key = settings.resolved_embedding_api_key
        self.model = settings.embedding_model
        self.timeout = settings.embedding_timeout
        self._embedding_fn = embedding_fn or aembedding

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def generate_embedding(self, text: str) -> List[float]:
        """
        Generate a vector embedding for text.

        :param text: Non-empty text to embed
        :return: Vector with exactly EMBEDDING_DIMENSIONS floats
        :raises ConfigurationMissing: when no embedding key is configured
        :raises UpstreamTransportError: when the call fails or times out
        """
        if not self.is_configured:
            raise ConfigurationMissing(
                "Embedding service not configured. "
                "Set FORMCRAFT_EMBEDDING_API_KEY or FORMCRAFT_COMPLETION_API_KEY."
            )
        return await self.run_with_metrics(self._request_embedding, text)

    async def _request_embedding(self, text: str) -> List[float]:
        logger.debug(f"Generating embedding using model: {self.model}")
        try:
            response = await asyncio.wait_for(
                self._embedding_fn(
                    model=self.model,
                    input=[text],
                    api_key=self.api_key,
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )
            vector = _extract_vector(response)
        except asyncio.TimeoutError as e:
            raise UpstreamTransportError(
                "Embedding request timed out", details=str(e)
            ) from e
        except Exception as e:
            raise UpstreamTransportError(
                "Failed to generate embedding", details=str(e)
            ) from e

        if not vector:
            raise UpstreamTransportError("Invalid embedding response")

        if len(vector) != EMBEDDING_DIMENSIONS:
            logger.debug(
                f"Coercing embedding from {len(vector)} to {EMBEDDING_DIMENSIONS} dimensions"
            )
        return coerce_dimensions(vector)

    async def embed(self, text: str) -> Optional[List[float]]:
        """
        Embed text, returning None when embeddings are unavailable.

        :param text: Non-empty text to embed
        :return: Vector with exactly EMBEDDING_DIMENSIONS floats, or None
        """
        try:
            return await self.generate_embedding(text)
        except ConfigurationMissing:
            logger.debug("Embedding service not configured, skipping embedding")
            return None
        except UpstreamTransportError as e:
            logger.warning(f"Embedding unavailable: {e.message} ({e.details})")
            return None
