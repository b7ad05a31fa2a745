"""Form generation API views."""

from typing import Union

from fastapi import APIRouter, Body, Depends, Request, status
from fastapi.responses import UJSONResponse
from loguru import logger

from formcraft.services.ai.engine import FormMemoryEngine
from formcraft.services.ai.errors import FormcraftError

from .schema import (
    CreateFormRequest,
    EmbeddingRequest,
    EmbeddingResponse,
    FormResponse,
    GenerateFormRequest,
    GenerateFormResponse,
)

router = APIRouter()


def get_form_engine(request: Request) -> FormMemoryEngine:
    """
    Get the form engine stored on the application.

    :param request: current request.
    :return: form engine.
    """
    return request.app.state.form_engine


def _error_response(error: FormcraftError) -> UJSONResponse:
    return UJSONResponse(status_code=error.status_code, content={"error": error.message})


@router.post("/generate", response_model=GenerateFormResponse)
async def generate_form(
    request: GenerateFormRequest = Body(...),
    engine: FormMemoryEngine = Depends(get_form_engine),
) -> Union[GenerateFormResponse, UJSONResponse]:
    """
    Generate a form schema from a natural-language description.

    :param request: Prompt and optional owner
    :param engine: Form engine dependency
    :returns: Generated schema and whether memory context was used
    """
    logger.info(f"Received generate request for owner: {request.owner_id}")

    try:
        result = await engine.generate(request.prompt, owner_id=request.owner_id)
    except FormcraftError as e:
        logger.error(f"Form generation failed: {e.message}")
        return _error_response(e)

    return GenerateFormResponse(schema=result.schema, context_used=result.context_used)


@router.post("/embedding", response_model=EmbeddingResponse)
async def generate_embedding(
    request: EmbeddingRequest = Body(...),
    engine: FormMemoryEngine = Depends(get_form_engine),
) -> Union[EmbeddingResponse, UJSONResponse]:
    """
    Compute and store the embedding of a form.

    :param request: Form id and the text to embed
    :param engine: Form engine dependency
    :returns: Stored dimensionality
    """
    try:
        dimensions = await engine.persist_form_embedding(request.id, request.text)
    except FormcraftError as e:
        logger.error(f"Embedding failed for form {request.id}: {e.message}")
        return _error_response(e)

    return EmbeddingResponse(success=True, dimensions=dimensions)


@router.post("", response_model=FormResponse, status_code=status.HTTP_201_CREATED)
async def create_form(
    request: CreateFormRequest = Body(...),
    engine: FormMemoryEngine = Depends(get_form_engine),
) -> FormResponse:
    """
    Store a new form and embed it in the background.

    :param request: Form data
    :param engine: Form engine dependency
    :returns: Stored form
    """
    record = await engine.memory_store.create_form(
        owner_id=request.owner_id,
        title=request.title,
        description=request.description,
        schema=request.schema_,
        published=request.published,
    )
    response = FormResponse(
        id=record.id,
        owner_id=record.owner_id,
        title=record.title,
        description=record.description,
        schema=record.form_schema,
        published=record.published,
        created_at=record.created_at.isoformat() if record.created_at else None,
    )

    # The response is settled, embedding must not affect it
    engine.on_form_created(record)
    return response
