"""Request validation rules and the gate that enforces them.

Each endpoint declares a :class:`RuleSet`. :func:`validate_request` runs the
rules against the path identifier and the decoded JSON body and returns either
:class:`Ok` with the parsed request or :class:`ValidationError` listing every
violation, so the route never reaches the controller with malformed input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

NAME_MESSAGE = "Name must be between 2 and 50 characters"
EMAIL_MESSAGE = "Must be a valid email"
AGE_MESSAGE = "Age must be between 0 and 120"
ID_MESSAGE = "Invalid user ID"
BODY_MESSAGE = "Request body must be a JSON object"

_FIELD_MESSAGES: Dict[str, str] = {
    "name": NAME_MESSAGE,
    "email": EMAIL_MESSAGE,
    "age": AGE_MESSAGE,
}

IDENTIFIER_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"
_IDENTIFIER = re.compile(IDENTIFIER_PATTERN)


class _UserFields(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    @field_validator("name", "email", "age", mode="before", check_fields=False)
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("value must not be null")
        return value

    @field_validator("age", mode="before", check_fields=False)
    @classmethod
    def _reject_bool(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("age must be an integer")
        return value


class CreateUserRequest(_UserFields):
    name: str = Field(..., min_length=2, max_length=50, description="User name")
    email: EmailStr = Field(..., description="User email address")
    age: Optional[int] = Field(default=None, ge=0, le=120, description="User age")


class UpdateUserRequest(_UserFields):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50, description="User name")
    email: Optional[EmailStr] = Field(default=None, description="User email address")
    age: Optional[int] = Field(default=None, ge=0, le=120, description="User age")

    def changes(self) -> Dict[str, Any]:
        """Return only the fields the client supplied."""

        return self.model_dump(exclude_unset=True)


@dataclass(frozen=True)
class RuleSet:
    """Declares which parts of a request an operation validates."""

    operation: str
    check_id: bool = False
    body_model: Optional[Type[BaseModel]] = None
    # A missing body is read as an empty object.
    allow_empty_body: bool = False


CREATE_RULES = RuleSet("create", body_model=CreateUserRequest)
UPDATE_RULES = RuleSet("update", check_id=True, body_model=UpdateUserRequest, allow_empty_body=True)
LOOKUP_RULES = RuleSet("lookup", check_id=True)

T = TypeVar("T")


@dataclass(frozen=True)
class ValidatedRequest:
    user_id: Optional[str] = None
    body: Optional[BaseModel] = None


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class ValidationError:
    messages: Tuple[str, ...]


GateResult = Union[Ok[ValidatedRequest], ValidationError]


def is_identifier(value: Optional[str]) -> bool:
    return value is not None and _IDENTIFIER.fullmatch(value) is not None


def _error_messages(exc: PydanticValidationError) -> List[str]:
    messages: List[str] = []
    for error in exc.errors():
        location = error.get("loc") or ()
        field = str(location[0]) if location else ""
        message = _FIELD_MESSAGES.get(field, error.get("msg", "Invalid value"))
        if message not in messages:
            messages.append(message)
    return messages


def validate_request(
    rules: RuleSet,
    *,
    user_id: Optional[str] = None,
    body: Any = None,
) -> GateResult:
    """Run ``rules`` against the request parts and collect every violation."""

    messages: List[str] = []
    if rules.check_id and not is_identifier(user_id):
        messages.append(ID_MESSAGE)

    parsed: Optional[BaseModel] = None
    if rules.body_model is not None:
        if body is None and rules.allow_empty_body:
            body = {}
        if not isinstance(body, dict):
            messages.append(BODY_MESSAGE)
        else:
            try:
                parsed = rules.body_model.model_validate(body)
            except PydanticValidationError as exc:
                messages.extend(_error_messages(exc))

    if messages:
        return ValidationError(tuple(messages))
    return Ok(ValidatedRequest(user_id=user_id, body=parsed))


__all__ = [
    "AGE_MESSAGE",
    "BODY_MESSAGE",
    "CREATE_RULES",
    "CreateUserRequest",
    "EMAIL_MESSAGE",
    "GateResult",
    "ID_MESSAGE",
    "IDENTIFIER_PATTERN",
    "LOOKUP_RULES",
    "NAME_MESSAGE",
    "Ok",
    "RuleSet",
    "UPDATE_RULES",
    "UpdateUserRequest",
    "ValidatedRequest",
    "ValidationError",
    "is_identifier",
    "validate_request",
]
