"""Form generation API schemas."""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from formcraft.services.ai.types import GeneratedSchema


class GenerateFormRequest(BaseModel):
    """Request to generate a form schema from a description."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = Field(None, description="Natural-language description of the form")
    owner_id: Optional[str] = Field(
        None, alias="ownerId", description="Owner whose prior forms are used as memory"
    )


class GenerateFormResponse(BaseModel):
    """Generated schema and whether prior forms were used."""

    model_config = ConfigDict(populate_by_name=True)

    schema_: GeneratedSchema = Field(..., alias="schema", description="Generated form schema")
    context_used: bool = Field(
        ..., alias="contextUsed", description="Whether memory context was used"
    )


class EmbeddingRequest(BaseModel):
    """Record-created hook payload."""

    id: Optional[str] = Field(None, description="ID of the form to embed")
    text: Optional[str] = Field(None, description="Title and description of the form")


class EmbeddingResponse(BaseModel):
    """Result of storing a form embedding."""

    success: bool = Field(..., description="Whether the embedding was stored")
    dimensions: int = Field(..., description="Dimensionality of the stored vector")


class CreateFormRequest(BaseModel):
    """Request to store a new form."""

    model_config = ConfigDict(populate_by_name=True)

    owner_id: str = Field(..., alias="ownerId", description="Owner of the form")
    title: str = Field(..., min_length=1, description="Form title")
    description: Optional[str] = Field(None, description="Form description")
    schema_: Dict[str, Any] = Field(..., alias="schema", description="Form schema")
    published: bool = Field(True, description="Whether the form accepts submissions")


class FormResponse(BaseModel):
    """Stored form, without its embedding."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    owner_id: str = Field(..., alias="ownerId")
    title: str
    description: Optional[str] = None
    schema_: Dict[str, Any] = Field(..., alias="schema")
    published: bool
    created_at: Optional[str] = Field(None, alias="createdAt")
