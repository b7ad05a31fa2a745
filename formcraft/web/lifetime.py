from typing import Awaitable, Callable
import asyncio

from fastapi import FastAPI
from loguru import logger
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from formcraft.db.base import Base
from formcraft.db.models import load_all_models
from formcraft.services.ai.context_assembler import ContextAssembler
from formcraft.services.ai.embedding import EmbeddingProvider
from formcraft.services.ai.engine import FormMemoryEngine
from formcraft.services.ai.schema_generator import SchemaGenerator
from formcraft.services.memory.store import MemoryStore
from formcraft.services.vector_db.index import FallbackVectorIndex
from formcraft.services.vector_db.qdrant_index import QdrantVectorIndex
from formcraft.services.vector_db.relational_index import RelationalVectorIndex
from formcraft.settings import Settings, settings


def _setup_db(app: FastAPI) -> None:  # pragma: no cover
    """
    Creates connection to the database.

    This function creates SQLAlchemy engine instance,
    session_factory for creating sessions
    and stores them in the application's state property.

    :param app: fastAPI application.
    """
    engine = create_async_engine(str(settings.db_url), echo=settings.db_echo)
    session_factory = async_sessionmaker(
        engine,
        expire_on_commit=False,
    )
    app.state.db_engine = engine
    app.state.db_session_factory = session_factory


def build_form_engine(
    app_settings: Settings, session_factory: async_sessionmaker
) -> FormMemoryEngine:
    """
    Wire the memory and generation pipeline.

    The external index is tried first and the relational one second.

    :param app_settings: Application settings
    :param session_factory: Factory for database sessions
    :return: form engine
    """
    external_index = QdrantVectorIndex(app_settings)
    if not external_index.is_configured:
        logger.info("Qdrant not configured, using relational similarity search only")

    embedding_provider = EmbeddingProvider(app_settings)
    if not embedding_provider.is_configured:
        logger.warning("Embedding service not configured, memory retrieval is disabled")

    return FormMemoryEngine(
        embedding_provider=embedding_provider,
        vector_index=FallbackVectorIndex(
            [external_index, RelationalVectorIndex(session_factory)]
        ),
        memory_store=MemoryStore(session_factory),
        context_assembler=ContextAssembler(),
        schema_generator=SchemaGenerator(app_settings),
        external_index=external_index,
    )


async def _create_tables(app: FastAPI) -> None:  # pragma: no cover
    """Create database tables based on model definitions if they don't exist."""
    load_all_models()

    try:
        logger.info("Creating database tables if they don't exist...")
        async with app.state.db_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.error(f"Error creating database tables: {str(e)}")


async def _initialize_vector_collection(
    external_index: QdrantVectorIndex,
) -> None:  # pragma: no cover
    """
    Initialize the Qdrant collection required by the application.

    :param external_index: Qdrant index
    """
    if await external_index.ensure_collection_exists():
        logger.info(f"Collection {external_index.collection_name} initialized")


def register_startup_event(
    app: FastAPI,
) -> Callable[[], Awaitable[None]]:  # pragma: no cover
    """
    Actions to run on application startup.

    This function uses fastAPI app to store data
    in the state, such as db_engine.

    :param app: the fastAPI application.
    :return: function that actually performs actions.
    """

    @app.on_event("startup")
    async def _startup() -> None:  # noqa: WPS430
        app.middleware_stack = None
        _setup_db(app)
        await _create_tables(app)
        app.state.form_engine = build_form_engine(
            settings, app.state.db_session_factory
        )
        external_index = app.state.form_engine.external_index
        if external_index.is_configured:
            app.state.collection_task = asyncio.create_task(
                _initialize_vector_collection(external_index)
            )
        app.middleware_stack = app.build_middleware_stack()

    return _startup


def register_shutdown_event(
    app: FastAPI,
) -> Callable[[], Awaitable[None]]:  # pragma: no cover
    """
    Actions to run on application's shutdown.

    :param app: fastAPI application.
    :return: function that actually performs actions.
    """

    @app.on_event("shutdown")
    async def _shutdown() -> None:  # noqa: WPS430
        await app.state.db_engine.dispose()

    return _shutdown
