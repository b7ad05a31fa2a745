"""Form schema types produced by the schema generator."""

import enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class FieldType(str, enum.Enum):
    """Closed set of field types the form renderer understands."""

    TEXT = "text"
    EMAIL = "email"
    NUMBER = "number"
    TEXTAREA = "textarea"
    SELECT = "select"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    DATE = "date"
    FILE = "file"


CHOICE_TYPES = {FieldType.SELECT, FieldType.CHECKBOX, FieldType.RADIO}


class FormField(BaseModel):
    """Single field of a generated form."""

    id: str = Field(..., min_length=1)
    type: FieldType
    label: str
    placeholder: Optional[str] = None
    required: bool = False
    options: Optional[List[str]] = None

    @model_validator(mode="after")
    def _drop_options_for_plain_fields(self) -> "FormField":
        if self.type not in CHOICE_TYPES:
            self.options = None
        return self


class GeneratedSchema(BaseModel):
    """Form schema returned to the caller."""

    title: str = Field(..., min_length=1)
    description: str = ""
    fields: List[FormField] = Field(..., min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _null_description(cls, data):
        if isinstance(data, dict) and data.get("description") is None:
            data = {**data, "description": ""}
        return data

    @model_validator(mode="after")
    def _check_unique_ids(self) -> "GeneratedSchema":
        seen = set()
        for form_field in self.fields:
            if form_field.id in seen:
                raise ValueError(f"Duplicate field id: {form_field.id}")
            seen.add(form_field.id)
        return self
