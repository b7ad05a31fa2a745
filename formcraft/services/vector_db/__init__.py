"""Vector search services module."""

# Export types first to avoid circular imports
from formcraft.services.vector_db.types import CandidateMatch, VectorRecord
from formcraft.services.vector_db.index import (
    SIMILARITY_THRESHOLD,
    TOP_K,
    FallbackVectorIndex,
    VectorIndex,
)
from formcraft.services.vector_db.qdrant_index import QdrantVectorIndex
from formcraft.services.vector_db.relational_index import RelationalVectorIndex

__all__ = [
    "CandidateMatch",
    "VectorRecord",
    "VectorIndex",
    "FallbackVectorIndex",
    "QdrantVectorIndex",
    "RelationalVectorIndex",
    "TOP_K",
    "SIMILARITY_THRESHOLD",
]
