"""Shared types for vector database module."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class VectorRecord(BaseModel):
    """Vector record with metadata, as stored in the external index."""

    id: str
    vector: List[float]
    metadata: Dict[str, Any]


class CandidateMatch(BaseModel):
    """A ranked search hit. Not persisted."""

    id: str
    title: str = ""
    summary: Optional[str] = None
    similarity: float
