import asyncio

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

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
from formcraft.settings import Settings
from formcraft.tests.fakes import FakeEmbeddingFn, FakeLLM, SIGNUP_SCHEMA


@pytest.fixture
def make_settings():
    """Settings with test credentials, ignoring any .env file."""

    def _make(**overrides) -> Settings:
        values = {
            "embedding_api_key": "test-embedding-key",
            "completion_api_key": "test-completion-key",
            "qdrant_url": None,
            "qdrant_api_key": None,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def session_factory(tmp_path):
    """Session factory over a fresh SQLite database."""
    load_all_models()
    # NullPool: every asyncio.run gets its own connections
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'forms.db'}", poolclass=NullPool
    )

    async def _create_all():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create_all())
    yield async_sessionmaker(engine, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def store(session_factory) -> MemoryStore:
    return MemoryStore(session_factory)


@pytest.fixture
def embedding_fn() -> FakeEmbeddingFn:
    return FakeEmbeddingFn()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM(SIGNUP_SCHEMA)


@pytest.fixture
def make_engine(settings, session_factory, store, embedding_fn, llm):
    """Build an engine over SQLite with fake upstream clients."""

    def _make(
        app_settings=None, embedding=None, llm_client=None, qdrant_client=None
    ) -> FormMemoryEngine:
        app_settings = app_settings or settings
        external_index = QdrantVectorIndex(app_settings, client=qdrant_client)
        return FormMemoryEngine(
            embedding_provider=EmbeddingProvider(
                app_settings, embedding_fn=embedding or embedding_fn
            ),
            vector_index=FallbackVectorIndex(
                [external_index, RelationalVectorIndex(session_factory)]
            ),
            memory_store=store,
            context_assembler=ContextAssembler(),
            schema_generator=SchemaGenerator(
                app_settings, llm_client=llm_client or llm
            ),
            external_index=external_index,
        )

    return _make
