"""
Form Memory Engine Module

Connects embedding, retrieval, context assembly and schema generation.
Also owns the background embedding of newly created forms.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import List, Optional, Set

from loguru import logger

from formcraft.services.ai.context_assembler import ContextAssembler
from formcraft.services.ai.embedding import EMBEDDING_DIMENSIONS, EmbeddingProvider
from formcraft.services.ai.errors import (
    InvalidRequest,
    PartialMemoryFailure,
    RecordNotFound,
    StorageError,
)
from formcraft.services.ai.schema_generator import SchemaGenerator
from formcraft.services.ai.types import GeneratedSchema
from formcraft.services.memory.store import MemoryStore
from formcraft.services.memory.types import FormRecord
from formcraft.services.vector_db.index import TOP_K, VectorIndex
from formcraft.services.vector_db.qdrant_index import QdrantVectorIndex
from formcraft.services.vector_db.types import CandidateMatch, VectorRecord

# Stored summary of a form, derived from its embedding text
MAX_STORED_SUMMARY_CHARS = 500


@dataclass
class GenerationResult:
    """Outcome of one generate request."""

    schema: GeneratedSchema
    context_used: bool
    matches: List[CandidateMatch] = field(default_factory=list)


class FormMemoryEngine:
    """
    Sequences the memory and generation pipeline.

    Generation: embed the prompt, search similar forms of the owner, fetch
    them, build the context block and generate the schema. Failures in the
    memory part only remove the context.

    Form creation: embed ``title + description`` in the background and store
    the vector on the form and in the external index.
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        vector_index: VectorIndex,
        memory_store: MemoryStore,
        context_assembler: ContextAssembler,
        schema_generator: SchemaGenerator,
        external_index: Optional[QdrantVectorIndex] = None,
    ):
        """
        Initialize the engine.

        :param embedding_provider: Embedding provider
        :param vector_index: Index used for retrieval, usually a fallback chain
        :param memory_store: Form record store
        :param context_assembler: Context block builder
        :param schema_generator: Schema generator
        :param external_index: External index that new embeddings are pushed to
        """
        self.embedding_provider = embedding_provider
        self.vector_index = vector_index
        self.memory_store = memory_store
        self.context_assembler = context_assembler
        self.schema_generator = schema_generator
        self.external_index = external_index
        self._background_tasks: Set[asyncio.Task] = set()

    async def generate(
        self, prompt: Optional[str], owner_id: Optional[str] = None
    ) -> GenerationResult:
        """
        Generate a form schema, using the owner's prior forms as context.

        :param prompt: Natural-language description of the form
        :param owner_id: Owner whose forms are searched, all forms if None
        :return: Schema and whether memory context was used
        """
        if not prompt or not prompt.strip():
            raise InvalidRequest("Prompt is required")

        # Fail before spending calls on retrieval
        self.schema_generator.ensure_configured()

        start_time = time.time()
        matches: List[CandidateMatch] = []
        context_block = ""
        try:
            matches, context_block = await self._retrieve_context(prompt, owner_id)
        except PartialMemoryFailure as e:
            logger.info(f"Generating without memory context: {e.message}")
        except Exception as e:
            logger.warning(f"Memory retrieval failed, generating without context: {e}")
        logger.debug(f"Memory retrieval took {time.time() - start_time:.2f}s")

        schema = await self.schema_generator.generate(prompt, context_block)
        return GenerationResult(
            schema=schema,
            context_used=bool(context_block),
            matches=matches,
        )

    async def _retrieve_context(self, prompt: str, owner_id: Optional[str]):
        vector = await self.embedding_provider.embed(prompt)
        if vector is None:
            raise PartialMemoryFailure("Embedding unavailable")

        matches = await self.vector_index.search(vector, owner_id=owner_id, top_k=TOP_K)
        if not matches:
            raise PartialMemoryFailure("No similar forms found")

        records = await self.memory_store.fetch_by_ids([m.id for m in matches])
        context_block = self.context_assembler.build_context(records)
        if not context_block:
            raise PartialMemoryFailure("No similar form fits the context")

        logger.info(f"Using {len(records)} similar forms as context")
        return matches, context_block

    async def persist_form_embedding(self, form_id: str, text: str) -> int:
        """
        Compute and store the embedding of a form.

        :param form_id: Form id
        :param text: Text to embed, usually title and description
        :return: Dimensionality of the stored vector
        """
        if not form_id or not text:
            raise InvalidRequest("formId and text are required")

        record = await self.memory_store.get_form(form_id)
        if record is None:
            raise RecordNotFound(f"Form {form_id} not found")

        logger.info(f"Generating embedding for form: {form_id}")
        vector = await self.embedding_provider.generate_embedding(text)
        summary = text[:MAX_STORED_SUMMARY_CHARS]

        if not await self.memory_store.persist_embedding(form_id, vector, summary):
            raise StorageError()

        if self.external_index is not None and self.external_index.is_configured:
            # The relational copy is authoritative, the external one is best effort
            payload = QdrantVectorIndex.build_payload(
                title=" ".join(text.split()[:10]),
                summary=summary,
                owner_id=record.owner_id,
            )
            await self.external_index.upsert(
                VectorRecord(id=form_id, vector=vector, metadata=payload)
            )

        return EMBEDDING_DIMENSIONS

    async def _persist_in_background(self, record: FormRecord) -> None:
        try:
            await self.persist_form_embedding(record.id, record.embedding_text)
        except Exception as e:
            logger.error(f"Background embedding failed for form {record.id}: {e}")

    def on_form_created(self, record: FormRecord) -> asyncio.Task:
        """
        Dispatch the embedding of a new form without waiting for it.

        Failures are logged and never reach the caller.

        :param record: The newly created form
        :return: The background task
        """
        task = asyncio.create_task(self._persist_in_background(record))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task
