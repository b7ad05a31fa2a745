"""Qdrant vector index, the external search backend."""

import asyncio
from typing import Any, Dict, List, Optional

from loguru import logger
from qdrant_client import QdrantClient as QdrantBaseClient
from qdrant_client.http import models as qdrant_models

from formcraft.services.ai.embedding import EMBEDDING_DIMENSIONS
from formcraft.services.ai.errors import UpstreamTransportError
from formcraft.services.vector_db.index import TOP_K, VectorIndex
from formcraft.services.vector_db.types import CandidateMatch, VectorRecord

OWNER_KEY = "user_id"


class QdrantVectorIndex(VectorIndex):
    """Form embeddings stored in a Qdrant collection."""

    name = "qdrant"

    def __init__(self, settings, client: Optional[Any] = None):
        """
        Initialize the Qdrant index.

        The client is only created when both the cluster url and the
        api key are configured.

        :param settings: Application settings
        :param client: Optional pre-built client, mainly for tests
        """
        self.collection_name = settings.qdrant_collection_name
        self.timeout = settings.qdrant_timeout
        self.client = client
        if self.client is None and settings.qdrant_enabled:
            self.client = QdrantBaseClient(
                url=settings.qdrant_url,
                api_key=settings.qdrant_api_key,
                timeout=settings.qdrant_timeout,
                check_compatibility=False,
            )
            logger.info(f"Initialized Qdrant client: {settings.qdrant_url}")
        self._collection_ready = False

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def _run(self, func):
        # The Qdrant client is synchronous, keep it off the event loop
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, func), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise UpstreamTransportError("Vector search timed out") from e

    async def ensure_collection_exists(self) -> bool:
        """
        Ensure the form collection exists, creating it if necessary.

        :returns: True if the collection exists or was created
        """
        if not self.is_configured:
            return False
        if self._collection_ready:
            return True

        try:
            exists = await self._run(
                lambda: self.client.collection_exists(self.collection_name)
            )
            if not exists:
                logger.info(f"Creating collection {self.collection_name}")
                await self._run(
                    lambda: self.client.create_collection(
                        collection_name=self.collection_name,
                        vectors_config=qdrant_models.VectorParams(
                            size=EMBEDDING_DIMENSIONS,
                            distance=qdrant_models.Distance.COSINE,
                        ),
                    )
                )
            self._collection_ready = True
            return True
        except Exception as e:
            logger.error(f"Failed to initialize collection {self.collection_name}: {e}")
            return False

    async def search(
        self,
        vector: List[float],
        owner_id: Optional[str] = None,
        top_k: int = TOP_K,
    ) -> List[CandidateMatch]:
        query_filter = None
        if owner_id:
            query_filter = qdrant_models.Filter(
                must=[
                    qdrant_models.FieldCondition(
                        key=OWNER_KEY,
                        match=qdrant_models.MatchValue(value=owner_id),
                    )
                ]
            )

        logger.debug(
            f"[VECTOR_DB] Starting vector search: collection={self.collection_name}, limit={top_k}"
        )
        response = await self._run(
            lambda: self.client.query_points(
                collection_name=self.collection_name,
                query=vector,
                limit=top_k,
                query_filter=query_filter,
                with_payload=True,
            )
        )

        matches = []
        for point in response.points:
            payload = point.payload or {}
            matches.append(
                CandidateMatch(
                    id=str(point.id),
                    title=payload.get("title", ""),
                    summary=payload.get("summary"),
                    similarity=point.score,
                )
            )
        logger.debug(f"[VECTOR_DB] Search completed, found {len(matches)} results")
        return matches[:top_k]

    async def upsert(self, record: VectorRecord) -> bool:
        """
        Insert or update one form vector.

        :param record: Vector record keyed by form id
        :returns: True if the operation was successful
        """
        if not self.is_configured:
            return False

        await self.ensure_collection_exists()
        point = qdrant_models.PointStruct(
            id=record.id,
            vector=record.vector,
            payload=record.metadata,
        )
        try:
            await self._run(
                lambda: self.client.upsert(
                    collection_name=self.collection_name,
                    points=[point],
                )
            )
            logger.info(f"Upserted vector {record.id} to {self.collection_name}")
            return True
        except Exception as e:
            logger.error(f"Failed to upsert vector to {self.collection_name}: {e}")
            return False

    @staticmethod
    def build_payload(title: str, summary: str, owner_id: str) -> Dict[str, Any]:
        return {"title": title, "summary": summary, OWNER_KEY: owner_id}
