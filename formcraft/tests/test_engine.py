import asyncio
import json

import pytest

from formcraft.services.ai.embedding import EMBEDDING_DIMENSIONS
from formcraft.services.ai.engine import MAX_STORED_SUMMARY_CHARS
from formcraft.services.ai.errors import (
    ConfigurationMissing,
    InvalidRequest,
    RateLimited,
    RecordNotFound,
    UpstreamTransportError,
)
from formcraft.services.ai.types import FieldType
from formcraft.services.vector_db.qdrant_index import OWNER_KEY
from formcraft.tests.fakes import (
    FakeEmbeddingFn,
    FakeLLM,
    FakeQdrantClient,
    FakeStatusError,
    scored_point,
    unit_vector,
)


def _blend(weight: float):
    vector = [0.0] * EMBEDDING_DIMENSIONS
    vector[0] = weight
    vector[1] = (1 - weight**2) ** 0.5
    return vector


def _create(store, owner_id="user-1", title="Event signup", description=None):
    schema = {"title": title, "fields": [{"id": "name", "type": "text", "label": "Name"}]}
    return asyncio.run(store.create_form(owner_id, title, description, schema))


def _remember(store, record, vector):
    assert asyncio.run(store.persist_embedding(record.id, vector, record.title))


def test_signup_without_history_generates_without_context(make_engine, embedding_fn):
    engine = make_engine()

    result = asyncio.run(
        engine.generate(
            "A signup form with name, email, and profile picture", owner_id="user-1"
        )
    )

    assert result.context_used is False
    assert result.matches == []
    assert [f.type for f in result.schema.fields] == [
        FieldType.TEXT,
        FieldType.EMAIL,
        FieldType.FILE,
    ]
    assert len(embedding_fn.calls) == 1


def test_similar_forms_become_context(make_engine, store, llm):
    weights = [0.9, 0.85, 0.8, 0.7, 0.6, 0.1]
    for position, weight in enumerate(weights):
        record = _create(store, title=f"Survey {position}")
        _remember(store, record, _blend(weight))

    result = asyncio.run(make_engine().generate("Event signup", owner_id="user-1"))

    assert result.context_used is True
    assert len(result.matches) == 5
    assert [m.title for m in result.matches] == [f"Survey {i}" for i in range(5)]
    system_prompt = llm.calls[0]["messages"][0]["content"]
    assert "Survey 0" in system_prompt
    assert "Survey 5" not in system_prompt


def test_other_owners_forms_are_not_used(make_engine, store):
    record = _create(store, owner_id="user-2")
    _remember(store, record, unit_vector(0))

    result = asyncio.run(make_engine().generate("Event signup", owner_id="user-1"))

    assert result.context_used is False


def test_search_without_owner_covers_all_forms(make_engine, store):
    record = _create(store, owner_id="user-2")
    _remember(store, record, unit_vector(0))

    result = asyncio.run(make_engine().generate("Event signup"))

    assert result.context_used is True
    assert [m.id for m in result.matches] == [record.id]


def test_embedding_failure_generates_without_context(make_engine, store):
    record = _create(store)
    _remember(store, record, unit_vector(0))
    broken = FakeEmbeddingFn(error=ConnectionError("embedding service down"))

    result = asyncio.run(make_engine(embedding=broken).generate("Event signup", "user-1"))

    assert result.context_used is False
    assert len(result.schema.fields) == 3


def test_qdrant_results_are_preferred(make_settings, make_engine, store):
    record = _create(store, title="From qdrant")
    client = FakeQdrantClient(points=[scored_point(record.id, 0.95, "From qdrant")])
    app_settings = make_settings(qdrant_url="http://qdrant:6333", qdrant_api_key="key")

    result = asyncio.run(
        make_engine(app_settings=app_settings, qdrant_client=client).generate(
            "Event signup", owner_id="user-1"
        )
    )

    assert result.context_used is True
    assert [m.id for m in result.matches] == [record.id]
    assert client.queries[0]["query_filter"].must[0].key == OWNER_KEY


def test_qdrant_failure_falls_back_to_relational(make_settings, make_engine, store):
    record = _create(store)
    _remember(store, record, unit_vector(0))
    client = FakeQdrantClient(error=ConnectionError("cluster unreachable"))
    app_settings = make_settings(qdrant_url="http://qdrant:6333", qdrant_api_key="key")

    result = asyncio.run(
        make_engine(app_settings=app_settings, qdrant_client=client).generate(
            "Event signup", owner_id="user-1"
        )
    )

    assert len(client.queries) == 1
    assert [m.id for m in result.matches] == [record.id]


def test_missing_prompt_is_rejected(make_engine, embedding_fn, llm):
    with pytest.raises(InvalidRequest) as exc_info:
        asyncio.run(make_engine().generate("   "))

    assert exc_info.value.message == "Prompt is required"
    assert exc_info.value.status_code == 400
    assert embedding_fn.calls == []
    assert llm.calls == []


def test_missing_completion_key_fails_before_retrieval(make_settings, make_engine, embedding_fn):
    engine = make_engine(app_settings=make_settings(completion_api_key=None))
    engine.schema_generator.llm = None

    with pytest.raises(ConfigurationMissing):
        asyncio.run(engine.generate("Event signup"))

    assert embedding_fn.calls == []


def test_generation_errors_propagate(make_engine):
    engine = make_engine(llm_client=FakeLLM(FakeStatusError(429, "slow down")))

    with pytest.raises(RateLimited):
        asyncio.run(engine.generate("Event signup"))


def test_persist_form_embedding_stores_vector_and_summary(make_engine, store):
    record = _create(store, description="Collect attendees " * 60)
    text = record.embedding_text

    dimensions = asyncio.run(make_engine().persist_form_embedding(record.id, text))

    stored = asyncio.run(store.get_form(record.id))
    assert dimensions == EMBEDDING_DIMENSIONS
    assert len(stored.embedding) == EMBEDDING_DIMENSIONS
    assert stored.summary == text[:MAX_STORED_SUMMARY_CHARS]


def test_short_embeddings_are_padded_before_storage(make_engine, store):
    record = _create(store)
    short = FakeEmbeddingFn(vector=[0.5, 0.5, 0.5])

    asyncio.run(make_engine(embedding=short).persist_form_embedding(record.id, "Event"))

    stored = asyncio.run(store.get_form(record.id))
    assert stored.embedding[:3] == [0.5, 0.5, 0.5]
    assert len(stored.embedding) == EMBEDDING_DIMENSIONS
    assert not any(stored.embedding[3:])


def test_persist_form_embedding_pushes_to_qdrant(make_settings, make_engine, store):
    record = _create(store, title="Event signup", description="Collect attendees")
    client = FakeQdrantClient()
    app_settings = make_settings(qdrant_url="http://qdrant:6333", qdrant_api_key="key")
    engine = make_engine(app_settings=app_settings, qdrant_client=client)

    asyncio.run(engine.persist_form_embedding(record.id, record.embedding_text))

    assert client.created_collections == [app_settings.qdrant_collection_name]
    (point,) = client.upserts[0]["points"]
    assert point.id == record.id
    assert point.payload[OWNER_KEY] == "user-1"
    assert point.payload["summary"] == "Event signup Collect attendees"


def test_persist_form_embedding_requires_existing_form(make_engine):
    with pytest.raises(RecordNotFound):
        asyncio.run(make_engine().persist_form_embedding("missing", "Event signup"))


def test_persist_form_embedding_requires_id_and_text(make_engine):
    with pytest.raises(InvalidRequest):
        asyncio.run(make_engine().persist_form_embedding("", "Event signup"))


def test_persist_form_embedding_surfaces_embedding_errors(make_engine, store):
    record = _create(store)
    broken = FakeEmbeddingFn(error=ConnectionError("embedding service down"))

    with pytest.raises(UpstreamTransportError):
        asyncio.run(make_engine(embedding=broken).persist_form_embedding(record.id, "x"))


def test_on_form_created_embeds_in_background(make_engine, store):
    record = _create(store, title="Event signup")
    engine = make_engine()

    async def _create_and_wait():
        task = engine.on_form_created(record)
        await task

    asyncio.run(_create_and_wait())

    stored = asyncio.run(store.get_form(record.id))
    assert len(stored.embedding) == EMBEDDING_DIMENSIONS


def test_on_form_created_swallows_failures(make_engine, store):
    record = _create(store)
    broken = FakeEmbeddingFn(error=ConnectionError("embedding service down"))
    engine = make_engine(embedding=broken)

    async def _create_and_wait():
        task = engine.on_form_created(record)
        await task
        return task

    task = asyncio.run(_create_and_wait())

    assert task.exception() is None
    assert asyncio.run(store.get_form(record.id)).embedding is None


def test_form_record_schema_alias(store):
    record = _create(store, title="Poll")

    dumped = record.model_dump(by_alias=True)

    assert json.loads(json.dumps(dumped["schema"]))["title"] == "Poll"
