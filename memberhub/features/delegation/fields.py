"""
Registration form field kinds.

The set of kinds is closed. Each kind is its own model with a ``coerce``
method that validates one submitted answer, and the form schema is a tagged
union discriminated on ``type``.
"""
import math
import re
from typing import Annotated, Any, Dict, List, Literal, Sequence, Union
from pydantic import BaseModel, EmailStr, Field, TypeAdapter, ValidationError, field_validator

from memberhub.core.errors import ValidationFailed
from memberhub.features.identities.contact import is_valid_phone, normalize_phone


_email_adapter = TypeAdapter(EmailStr)
_INTEGER = re.compile(r"^[+-]?[0-9]+$")
_MAX_DIGITS = 64


class _FieldBase(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    label: str = Field(..., max_length=255)
    required: bool = False

    @field_validator("label")
    @classmethod
    def label_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field label cannot be empty")
        return v

    def coerce(self, value: Any) -> Any:
        return str(value).strip()


class TextField(_FieldBase):
    type: Literal["text"] = "text"


class NumberField(_FieldBase):
    type: Literal["number"] = "number"

    def coerce(self, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("must be a number")
        if isinstance(value, int):
            return value
        text = str(value).strip()
        if _INTEGER.match(text):
            if len(text.lstrip("+-")) > _MAX_DIGITS:
                raise ValueError("has too many digits")
            return int(text)
        try:
            number = float(text)
        except ValueError:
            raise ValueError("must be a number")
        if not math.isfinite(number):
            raise ValueError("must be a finite number")
        return int(number) if number.is_integer() else number


class EmailField(_FieldBase):
    type: Literal["email"] = "email"

    def coerce(self, value: Any) -> Any:
        try:
            return _email_adapter.validate_python(str(value).strip())
        except ValidationError:
            raise ValueError("must be a valid email address")


class TelField(_FieldBase):
    type: Literal["tel"] = "tel"

    def coerce(self, value: Any) -> Any:
        text = str(value).strip()
        if not is_valid_phone(text):
            raise ValueError("must be a phone number with at least 10 digits")
        return normalize_phone(text)


class SelectField(_FieldBase):
    type: Literal["select"] = "select"
    options: List[str] = Field(default_factory=list)

    @field_validator("options")
    @classmethod
    def options_not_empty(cls, v: List[str]) -> List[str]:
        cleaned = [option.strip() for option in v if option and option.strip()]
        if not cleaned:
            raise ValueError("Select fields need at least one option")
        return cleaned

    def coerce(self, value: Any) -> Any:
        text = str(value).strip()
        if text not in self.options:
            raise ValueError(f"must be one of {', '.join(self.options)}")
        return text


FormField = Annotated[
    Union[TextField, NumberField, EmailField, TelField, SelectField],
    Field(discriminator="type"),
]

_fields_adapter = TypeAdapter(List[FormField])


def parse_fields(raw: Sequence[Union[Dict[str, Any], BaseModel]]) -> List[FormField]:
    """Validate a form definition. Ids and labels must be unique."""
    payload = [item.model_dump() if isinstance(item, BaseModel) else item for item in raw]
    try:
        fields = _fields_adapter.validate_python(payload)
    except ValidationError as e:
        errors = {".".join(str(part) for part in err["loc"]): err["msg"] for err in e.errors()}
        raise ValidationFailed("Invalid form definition", {"errors": errors})

    seen_ids, seen_labels = set(), set()
    for field in fields:
        if field.id in seen_ids:
            raise ValidationFailed(f"Duplicate field id: {field.id}")
        if field.label.lower() in seen_labels:
            raise ValidationFailed(f"Duplicate field label: {field.label}")
        seen_ids.add(field.id)
        seen_labels.add(field.label.lower())
    return fields


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_answers(fields: Sequence[FormField], answers: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check answers against the form and return them keyed by label.

    Answers may be keyed by field id or by label. Keys that match no field are
    dropped. All problems are reported together.
    """
    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}
    for field in fields:
        value = answers.get(field.id, answers.get(field.label))
        if _is_blank(value):
            if field.required:
                errors[field.label] = "This field is required"
            continue
        try:
            cleaned[field.label] = field.coerce(value)
        except ValueError as e:
            errors[field.label] = str(e)
    if errors:
        raise ValidationFailed("Registration is incomplete", {"errors": errors})
    return cleaned
