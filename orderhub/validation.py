"""Request payload validation for the users and orders endpoints."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_FIELD_MESSAGES: Dict[str, str] = {
    "name": "Name must be a string with at least 2 characters.",
    "email": "Email must be a valid email address.",
    "age": "Age must be an integer between 0 and 120.",
    "userId": "userId must be a positive integer.",
    "status": "Status must be a string.",
}

UNKNOWN_FIELDS_MESSAGE = "Payload contains unknown fields."
VALIDATION_FAILED_MESSAGE = "Validation failed."


class ValidationFailed(Exception):
    """Raised when a request payload does not satisfy the field rules."""

    def __init__(self, message: str, details: Optional[Dict[str, object]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


def _check_name(value: Any) -> str:
    if not isinstance(value, str) or len(value.strip()) < 2:
        raise ValueError(_FIELD_MESSAGES["name"])
    return value.strip()


def _check_email(value: Any) -> str:
    if not isinstance(value, str) or not _EMAIL_PATTERN.match(value):
        raise ValueError(_FIELD_MESSAGES["email"])
    return value.strip()


def _check_age(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 120:
        raise ValueError(_FIELD_MESSAGES["age"])
    return value


class UserCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    email: str
    age: Optional[int] = None

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: Any) -> str:
        return _check_name(value)

    @field_validator("email", mode="before")
    @classmethod
    def _validate_email(cls, value: Any) -> str:
        return _check_email(value)

    @field_validator("age", mode="before")
    @classmethod
    def _validate_age(cls, value: Any) -> int:
        return _check_age(value)


class UserUpdate(BaseModel):
    """Partial update; any field that is present must be valid (``null`` included)."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    email: Optional[str] = None
    age: Optional[int] = None

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: Any) -> str:
        return _check_name(value)

    @field_validator("email", mode="before")
    @classmethod
    def _validate_email(cls, value: Any) -> str:
        return _check_email(value)

    @field_validator("age", mode="before")
    @classmethod
    def _validate_age(cls, value: Any) -> int:
        return _check_age(value)


class OrderCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: int = Field(alias="userId")
    status: Optional[str] = None

    @field_validator("user_id", mode="before")
    @classmethod
    def _validate_user_id(cls, value: Any) -> int:
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(_FIELD_MESSAGES["userId"])
        return value


class OrderStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: Optional[str] = None


ModelT = TypeVar("ModelT", bound=BaseModel)


def _allowed_fields(model: Type[BaseModel]) -> List[str]:
    return [field.alias or name for name, field in model.model_fields.items()]


def parse_payload(model: Type[ModelT], payload: Any) -> ModelT:
    """Validate ``payload`` against ``model`` or raise :class:`ValidationFailed`."""

    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationFailed(
            VALIDATION_FAILED_MESSAGE,
            {"body": "Request body must be a JSON object."},
        )

    allowed = _allowed_fields(model)
    unknown = [key for key in payload if key not in allowed]
    if unknown and model.model_config.get("extra") == "forbid":
        raise ValidationFailed(
            UNKNOWN_FIELDS_MESSAGE,
            {"unknownFields": unknown, "allowedFields": allowed},
        )

    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        details: Dict[str, object] = {}
        for error in exc.errors():
            location = error.get("loc") or ("body",)
            field = str(location[0])
            details.setdefault(field, _FIELD_MESSAGES.get(field, error.get("msg", "Invalid value.")))
        raise ValidationFailed(VALIDATION_FAILED_MESSAGE, details) from exc


def parse_positive_int(raw: Any, label: str) -> int:
    """Parse a path identifier, accepting digit strings like ``"3"``."""

    message = f"Invalid {label} id. Must be a positive integer."
    if isinstance(raw, bool):
        raise ValidationFailed(message)
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw).strip()
        if not (text.isascii() and text.isdigit()):
            raise ValidationFailed(message)
        value = int(text)
    if value <= 0:
        raise ValidationFailed(message)
    return value


__all__ = [
    "OrderCreate",
    "OrderStatusUpdate",
    "UNKNOWN_FIELDS_MESSAGE",
    "UserCreate",
    "UserUpdate",
    "VALIDATION_FAILED_MESSAGE",
    "ValidationFailed",
    "parse_payload",
    "parse_positive_int",
]
