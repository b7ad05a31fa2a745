"""Form record as seen by the memory pipeline."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FormRecord(BaseModel):
    """A stored form with its memory fields."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    owner_id: str
    title: str
    description: Optional[str] = None
    form_schema: Dict[str, Any] = Field(default_factory=dict, alias="schema")
    embedding: Optional[List[float]] = None
    summary: Optional[str] = None
    published: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def field_labels(self) -> List[str]:
        """Labels of the schema fields, in order."""
        fields = self.form_schema.get("fields") or []
        return [f.get("label", "") for f in fields if isinstance(f, dict)]

    @property
    def embedding_text(self) -> str:
        """Text the record is embedded from."""
        return f"{self.title} {self.description or ''}".strip()
