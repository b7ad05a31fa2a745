"""Cosine similarity search over embeddings stored in the forms table."""

from typing import List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from formcraft.db.models.forms import Form
from formcraft.services.ai.embedding import coerce_dimensions
from formcraft.services.vector_db.index import (
    SIMILARITY_THRESHOLD,
    TOP_K,
    VectorIndex,
)
from formcraft.services.vector_db.types import CandidateMatch


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine of the angle between two vectors, 0.0 if either is all zeros."""
    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0.0:
        return 0.0
    return float(np.dot(a, b) / norm)


def rank_by_similarity(
    query: Sequence[float],
    rows: Sequence[Tuple[str, str, Optional[str], Sequence[float]]],
    threshold: float = SIMILARITY_THRESHOLD,
    top_k: int = TOP_K,
) -> List[CandidateMatch]:
    """
    Score rows against a query vector and keep the best ones.

    :param query: Query vector
    :param rows: ``(id, title, summary, embedding)`` in insertion order
    :param threshold: Matches must score strictly above this
    :param top_k: Maximum number of matches
    :return: Matches by descending similarity, ties in insertion order
    """
    query_vec = np.asarray(coerce_dimensions(query), dtype=float)

    matches = []
    for form_id, title, summary, embedding in rows:
        stored = np.asarray(coerce_dimensions(embedding), dtype=float)
        similarity = cosine_similarity(query_vec, stored)
        if similarity > threshold:
            matches.append(
                CandidateMatch(
                    id=str(form_id),
                    title=title or "",
                    summary=summary,
                    similarity=similarity,
                )
            )

    # sorted() is stable, equal scores keep store order
    matches = sorted(matches, key=lambda m: m.similarity, reverse=True)
    return matches[:top_k]


class RelationalVectorIndex(VectorIndex):
    """Fallback backend that needs nothing beyond the form store."""

    name = "relational"

    def __init__(self, session_factory: async_sessionmaker):
        """
        :param session_factory: Factory for database sessions
        """
        self.session_factory = session_factory

    @property
    def is_configured(self) -> bool:
        return self.session_factory is not None

    async def search(
        self,
        vector: List[float],
        owner_id: Optional[str] = None,
        top_k: int = TOP_K,
    ) -> List[CandidateMatch]:
        query = select(Form.id, Form.title, Form.summary, Form.embedding).where(
            Form.embedding.is_not(None)
        )
        if owner_id:
            query = query.where(Form.owner_id == owner_id)
        query = query.order_by(Form.created_at, Form.id)

        async with self.session_factory() as session:
            result = await session.execute(query)
            rows = [tuple(row) for row in result.all() if row.embedding]

        logger.debug(f"Scoring {len(rows)} stored embeddings")
        return rank_by_similarity(vector, rows, top_k=top_k)
