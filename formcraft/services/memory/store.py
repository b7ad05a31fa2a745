"""Form record storage used by the memory pipeline."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from formcraft.db.models.forms import Form
from formcraft.services.ai.errors import StorageError
from formcraft.services.memory.types import FormRecord


class MemoryStore:
    """Reads form records and writes their embeddings."""

    def __init__(self, session_factory: async_sessionmaker):
        """
        :param session_factory: Factory for database sessions
        """
        self.session_factory = session_factory

    async def create_form(
        self,
        owner_id: str,
        title: str,
        description: Optional[str],
        schema: Dict[str, Any],
        published: bool = True,
    ) -> FormRecord:
        """
        Insert a new form without memory fields.

        :return: The stored record
        """
        async with self.session_factory() as session:
            form = Form(
                owner_id=owner_id,
                title=title,
                description=description,
                schema=schema,
                published=published,
            )
            session.add(form)
            await session.commit()
            await session.refresh(form)
            logger.info(f"Created form {form.id} for owner {owner_id}")
            return FormRecord.model_validate(form)

    async def get_form(self, form_id: str) -> Optional[FormRecord]:
        records = await self.fetch_by_ids([form_id])
        return records[0] if records else None

    async def fetch_by_ids(self, ids: Sequence[str]) -> List[FormRecord]:
        """
        Fetch full records, in the order of ``ids``.

        :param ids: Form ids, usually ranked by similarity
        :return: Records found; missing ids are skipped
        :raises StorageError: when the read fails
        """
        if not ids:
            return []

        try:
            async with self.session_factory() as session:
                result = await session.execute(select(Form).where(Form.id.in_(list(ids))))
                by_id = {form.id: FormRecord.model_validate(form) for form in result.scalars()}
        except SQLAlchemyError as e:
            logger.error(f"Failed to read forms {list(ids)}: {e}")
            raise StorageError("Failed to read forms", details=str(e)) from e

        missing = [form_id for form_id in ids if form_id not in by_id]
        if missing:
            logger.debug(f"Forms not found: {missing}")
        return [by_id[form_id] for form_id in ids if form_id in by_id]

    async def persist_embedding(
        self, form_id: str, vector: List[float], summary: str
    ) -> bool:
        """
        Store the embedding and summary of one form.

        :return: False when the form does not exist or the write failed
        """
        try:
            async with self.session_factory() as session:
                form = await session.get(Form, form_id)
                if form is None:
                    logger.warning(f"Cannot store embedding, form {form_id} not found")
                    return False
                form.embedding = list(vector)
                form.summary = summary
                form.updated_at = datetime.utcnow()
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save embedding for form {form_id}: {e}")
            return False

        logger.info(f"Saved {len(vector)}-dimension embedding for form {form_id}")
        return True
