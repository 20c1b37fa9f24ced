"""Form parsing: string key/value submissions into validated pydantic models."""
import json
import re
from datetime import datetime, timezone
from typing import Any, ClassVar, Mapping, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from .errors import ValidationFailed

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

FormT = TypeVar("FormT", bound="FormModel")


def to_snake(key: str) -> str:
    """``featureIds`` -> ``feature_ids``; snake_case keys pass through."""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _label(field: str) -> str:
    return field.replace("_", " ").capitalize()


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class FormModel(BaseModel):
    """
    Base for every submitted form.

    ``error_messages`` maps ``"<field>"`` or ``"<field>.<error type>"`` to the
    message shown when that field fails; custom validators raise ``ValueError``
    with the final message instead.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    error_messages: ClassVar[dict[str, str]] = {}

    @model_validator(mode="after")
    def naive_utc_datetimes(self):
        # Timestamps are stored as naive UTC
        for name in type(self).model_fields:
            value = getattr(self, name)
            if isinstance(value, datetime) and value.tzinfo is not None:
                setattr(self, name, as_naive_utc(value))
        return self


def split_list(value: Any) -> Any:
    """
    Coerce a submitted list field.

    Accepts a real list, a JSON array string (``'["a","b"]'``) or a comma
    separated string (``"a, b"``). Blank entries are dropped.
    """
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                value = json.loads(stripped)
            except json.JSONDecodeError as exc:
                raise ValueError("Invalid list value") from exc
        else:
            value = stripped.split(",")
    if isinstance(value, (list, tuple)):
        return [item.strip() if isinstance(item, str) else item for item in value
                if not (isinstance(item, str) and not item.strip())]
    return value


def decode_json(value: Any) -> Any:
    """Decode a JSON object/array submitted as a string."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValueError("Invalid JSON value") from exc
    return value


def first_error_message(schema: Type[FormModel], exc: ValidationError) -> tuple[str, str | None]:
    """Return ``(message, field)`` for the first violated constraint."""
    error = exc.errors()[0]
    # Nested list items contribute their field names, not their indexes
    parts = [str(p) for p in error.get("loc", ()) if isinstance(p, str)]
    field = parts[0] if parts else None

    if error["type"] == "value_error" and "error" in error.get("ctx", {}):
        return str(error["ctx"]["error"]), field

    messages = schema.error_messages
    if parts:
        path = ".".join(parts)
        message = messages.get(f"{path}.{error['type']}") or messages.get(path)
        if message:
            return message, field
        if error["type"] == "missing":
            return f"{_label(parts[-1])} is required", field
        return f"{_label(parts[-1])}: {error['msg']}", field
    return error["msg"], None


def parse_form(schema: Type[FormT], form: Mapping[str, Any] | None) -> FormT:
    """
    Validate a submitted form against ``schema``.

    Keys may be camelCase or snake_case. Empty strings count as missing, so
    optional fields fall back to their defaults and required ones fail.

    Raises:
        ValidationFailed: with the message for the first violated constraint
    """
    data = {}
    for key, value in (form or {}).items():
        if value is None or (isinstance(value, str) and value == ""):
            continue
        data[to_snake(key)] = value

    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        message, field = first_error_message(schema, exc)
        raise ValidationFailed(message, field=field) from exc
