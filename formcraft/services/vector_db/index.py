"""Vector index interface and the priority-ordered fallback policy."""

import abc
from typing import List, Optional, Sequence

from loguru import logger

from formcraft.services.vector_db.types import CandidateMatch

# Candidates handed to the context assembler per request
TOP_K = 5
# Minimum cosine similarity kept by the relational backend
SIMILARITY_THRESHOLD = 0.3


class VectorIndex(abc.ABC):
    """Similarity search over stored form embeddings."""

    name: str = "vector_index"

    @property
    @abc.abstractmethod
    def is_configured(self) -> bool:
        """Whether the backend can be queried."""

    @abc.abstractmethod
    async def search(
        self,
        vector: List[float],
        owner_id: Optional[str] = None,
        top_k: int = TOP_K,
    ) -> List[CandidateMatch]:
        """
        Find stored forms similar to a vector.

        :param vector: Query vector
        :param owner_id: Restrict to forms of this owner, if given
        :param top_k: Maximum number of matches
        :return: Matches ordered by descending similarity
        """


class FallbackVectorIndex(VectorIndex):
    """
    Queries backends in priority order.

    A backend is skipped when it is not configured. The next one is tried
    when a backend fails or returns no matches.
    """

    name = "fallback"

    def __init__(self, backends: Sequence[VectorIndex]):
        """
        :param backends: Backends, highest priority first
        """
        self.backends = list(backends)

    @property
    def is_configured(self) -> bool:
        return any(backend.is_configured for backend in self.backends)

    async def search(
        self,
        vector: List[float],
        owner_id: Optional[str] = None,
        top_k: int = TOP_K,
    ) -> List[CandidateMatch]:
        for backend in self.backends:
            if not backend.is_configured:
                logger.debug(f"Vector backend {backend.name} not configured, skipping")
                continue

            try:
                matches = await backend.search(vector, owner_id=owner_id, top_k=top_k)
            except Exception as e:
                logger.warning(f"Vector backend {backend.name} failed: {e}")
                continue

            if matches:
                logger.info(f"Found {len(matches)} similar forms via {backend.name}")
                return matches[:top_k]

            logger.debug(f"Vector backend {backend.name} returned no matches")

        return []
