"""Domain models for the users service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class User:
    """Represents a user record held by the in-memory store."""

    id: str
    name: str
    email: str
    created_at: datetime
    updated_at: datetime
    age: Optional[int] = None


__all__ = ["User"]
