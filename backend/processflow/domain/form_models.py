"""Form Models - Tagged union of form field kinds and their validation rules"""
from typing import Annotated, Any, List, Literal, Optional, Union
from pydantic import BaseModel, Field, ConfigDict, model_validator

from .enums import ConditionOperator


# ============================================================================
# Visibility
# ============================================================================

class VisibilityCondition(BaseModel):
    """Show a field only when another field's value matches"""
    model_config = ConfigDict(extra="forbid")

    field_id: str = Field(..., description="Id (or name) of the field this one depends on")
    operator: ConditionOperator = Field(default=ConditionOperator.EQUALS)
    value: Any = Field(None, description="Value to compare against")


# ============================================================================
# Validation rule shapes
# ============================================================================

class TextValidation(BaseModel):
    """Validation rules for text fields"""
    min_length: Optional[int] = Field(None, ge=0)
    max_length: Optional[int] = Field(None, ge=1)
    pattern: Optional[str] = Field(None, description="Regular expression the whole value must match")


class TextareaValidation(BaseModel):
    """Validation rules for textarea fields"""
    min_length: Optional[int] = Field(None, ge=0)
    max_length: Optional[int] = Field(None, ge=1)
    rows: int = Field(default=4, ge=1, description="Display hint")


class NumberValidation(BaseModel):
    """Validation rules for number fields"""
    min_value: Optional[float] = None
    max_value: Optional[float] = None


class CurrencyValidation(NumberValidation):
    """Validation rules for currency fields"""
    currency: str = Field(default="USD", min_length=3, max_length=3)


class DateValidation(BaseModel):
    """Date validation rules for date fields"""
    allow_past_dates: bool = Field(default=True, description="Allow dates before today")
    allow_today: bool = Field(default=True, description="Allow today's date")
    allow_future_dates: bool = Field(default=True, description="Allow dates after today")


class FileValidation(BaseModel):
    """Validation rules for file reference fields"""
    accept: Optional[str] = Field(None, description="Accepted extensions, e.g. '.pdf,.png'")
    max_files: Optional[int] = Field(None, ge=1)


# ============================================================================
# Field kinds
# ============================================================================

class BaseFormField(BaseModel):
    """Attributes shared by every field kind"""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1, description="Stable field identifier")
    name: str = Field(..., min_length=1, description="Key of the value in submitted form data")
    label: str = Field(..., min_length=1, description="Display label")
    required: bool = Field(default=False)
    visible_when: Optional[VisibilityCondition] = None


class TextField(BaseFormField):
    type: Literal["text"] = "text"
    validation: TextValidation = Field(default_factory=TextValidation)


class TextareaField(BaseFormField):
    type: Literal["textarea"] = "textarea"
    validation: TextareaValidation = Field(default_factory=TextareaValidation)


class NumberField(BaseFormField):
    type: Literal["number"] = "number"
    validation: NumberValidation = Field(default_factory=NumberValidation)


class CurrencyField(BaseFormField):
    type: Literal["currency"] = "currency"
    validation: CurrencyValidation = Field(default_factory=CurrencyValidation)


class DateField(BaseFormField):
    type: Literal["date"] = "date"
    validation: DateValidation = Field(default_factory=DateValidation)


class DropdownField(BaseFormField):
    type: Literal["dropdown"] = "dropdown"
    options: List[str] = Field(..., min_length=1)


class FileField(BaseFormField):
    type: Literal["file"] = "file"
    validation: FileValidation = Field(default_factory=FileValidation)


FormField = Annotated[
    Union[TextField, TextareaField, NumberField, CurrencyField, DateField, DropdownField, FileField],
    Field(discriminator="type")
]


class FormSchema(BaseModel):
    """Form definition attached to a workflow template"""
    model_config = ConfigDict(extra="forbid")

    fields: List[FormField] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_names(self) -> "FormSchema":
        names = [f.name for f in self.fields]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate form field names: {', '.join(duplicates)}")
        ids = [f.id for f in self.fields]
        if len(set(ids)) != len(ids):
            raise ValueError("Form field ids must be unique")
        return self

    def get_field(self, key: str) -> Optional[BaseFormField]:
        """Find a field by id, falling back to name"""
        for field in self.fields:
            if field.id == key:
                return field
        for field in self.fields:
            if field.name == key:
                return field
        return None
