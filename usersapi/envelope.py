"""Response envelope shared by every users endpoint."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, Field

from .models import User

VALIDATION_FAILED = "Validation failed"


class UserPayload(BaseModel):
    id: str
    name: str
    email: str
    age: Optional[int] = None
    created_at: datetime = Field(..., serialization_alias="createdAt")
    updated_at: datetime = Field(..., serialization_alias="updatedAt")


class Envelope(BaseModel):
    """Uniform wrapper carrying either a payload or an error."""

    success: bool
    data: Union[UserPayload, List[UserPayload], None] = None
    message: Optional[str] = None
    error: Optional[str] = None
    details: Optional[List[str]] = None

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def user_to_payload(user: User) -> UserPayload:
    return UserPayload(
        id=user.id,
        name=user.name,
        email=user.email,
        age=user.age,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def success(data: Union[User, Sequence[User], None] = None, message: Optional[str] = None) -> Envelope:
    payload: Union[UserPayload, List[UserPayload], None]
    if data is None:
        payload = None
    elif isinstance(data, User):
        payload = user_to_payload(data)
    else:
        payload = [user_to_payload(user) for user in data]
    return Envelope(success=True, data=payload, message=message)


def failure(error: str, details: Optional[Sequence[str]] = None) -> Envelope:
    return Envelope(
        success=False,
        error=error,
        details=list(details) if details is not None else None,
    )


def validation_failed(messages: Sequence[str]) -> Envelope:
    return failure(VALIDATION_FAILED, messages)


__all__ = [
    "Envelope",
    "UserPayload",
    "VALIDATION_FAILED",
    "failure",
    "success",
    "user_to_payload",
    "validation_failed",
]
