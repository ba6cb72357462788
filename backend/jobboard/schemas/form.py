"""
Form schema for job listing custom sections.

A field is a closed tagged union over ``field_type``. Each variant only
carries the attributes that mean something for it: choice fields have
``options``, recording fields have ``recording_config`` and so on.
"""
from typing import Annotated, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


# ============================================================
# SHARED PIECES
# ============================================================

class FieldOption(BaseModel):
    """One selectable option of a choice field."""
    label: str
    value: str


class TextValidation(BaseModel):
    min_length: Optional[int] = Field(None, ge=0)
    max_length: Optional[int] = Field(None, ge=0)
    pattern: Optional[str] = None


class NumberValidation(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None


class RecordingConfig(BaseModel):
    """Duration bounds (seconds) and capture preferences for recording fields."""
    max_duration: Optional[float] = Field(300, ge=0)
    min_duration: Optional[float] = Field(0, ge=0)
    allow_retake: bool = True
    format: Literal["webm", "mp4", "wav", "mp3"] = "webm"

    @model_validator(mode="after")
    def check_bounds(self):
        if (
            self.min_duration is not None
            and self.max_duration is not None
            and self.min_duration > self.max_duration
        ):
            raise ValueError("min_duration cannot be greater than max_duration")
        return self


class FieldBase(BaseModel):
    """Attributes shared by every field variant."""
    field_name: str = Field(..., min_length=1)
    field_label: str = Field(..., min_length=1)
    is_required: bool = False
    placeholder: Optional[str] = None
    order: int = 0

    @field_validator("field_name", "field_label")
    @classmethod
    def strip_names(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


# ============================================================
# FIELD VARIANTS
# ============================================================

class TextField(FieldBase):
    field_type: Literal["text", "textarea", "email", "phone", "url"]
    validation: Optional[TextValidation] = None


class NumberField(FieldBase):
    field_type: Literal["number"]
    validation: Optional[NumberValidation] = None


class DateField(FieldBase):
    field_type: Literal["date"]


class ChoiceField(FieldBase):
    field_type: Literal["select", "multi_select", "checkbox", "radio"]
    options: list[FieldOption] = Field(default_factory=list)

    def option_values(self) -> set[str]:
        return {option.value for option in self.options}


class UploadField(FieldBase):
    field_type: Literal["file", "image", "video"]


class RecordingField(FieldBase):
    field_type: Literal["voice_recording", "video_recording"]
    recording_config: RecordingConfig = Field(default_factory=RecordingConfig)


FormField = Annotated[
    Union[TextField, NumberField, DateField, ChoiceField, UploadField, RecordingField],
    Field(discriminator="field_type"),
]

FIELD_TYPES = (
    "text", "textarea", "number", "email", "phone", "date",
    "select", "multi_select", "checkbox", "radio",
    "file", "image", "video", "url",
    "voice_recording", "video_recording",
)


# ============================================================
# SECTIONS
# ============================================================

def _new_section_id() -> str:
    return uuid4().hex


class FormSection(BaseModel):
    """A titled, ordered group of fields embedded in a job listing."""
    id: str = Field(default_factory=_new_section_id)
    section_title: str = Field(..., min_length=1)
    section_description: Optional[str] = None
    order: int = 0
    fields: list[FormField] = Field(default_factory=list)

    @field_validator("section_title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("section_title must not be blank")
        return value

    @model_validator(mode="after")
    def unique_field_names(self):
        names = [field.field_name for field in self.fields]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate field names in section: {', '.join(duplicates)}")
        return self


class FormSectionCreate(BaseModel):
    """Request body for adding a section; the id is always server-assigned."""
    section_title: str
    section_description: Optional[str] = None
    order: int = 0
    fields: list[FormField] = Field(default_factory=list)


class FormSectionUpdate(BaseModel):
    """Partial update of a section. Provided fields replace the section's field list."""
    section_title: Optional[str] = None
    section_description: Optional[str] = None
    order: Optional[int] = None
    fields: Optional[list[FormField]] = None


class FormSnapshot(BaseModel):
    """Copy of a listing's custom sections captured when an application is submitted."""
    custom_sections: list[FormSection] = Field(default_factory=list)

    def iter_fields(self):
        for section in self.custom_sections:
            for field in section.fields:
                yield field
