"""Resource controller for the users collection."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, Optional

from .envelope import Envelope, failure, success
from .models import User
from .store import UserNotFoundError, UserStore
from .validation import CreateUserRequest, UpdateUserRequest

logger = logging.getLogger("usersapi.controller")

USER_NOT_FOUND = "User not found"
_MIN_TICK = timedelta(microseconds=1)


class ErrorKind(str, Enum):
    VALIDATION_FAILED = "ValidationFailed"
    NOT_FOUND = "NotFound"
    INTERNAL_ERROR = "InternalError"


STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTERNAL_ERROR: 500,
}


@dataclass(frozen=True)
class ControllerResult:
    """Status code and envelope produced by a controller operation.

    ``envelope`` is ``None`` for responses that carry no body.
    """

    status_code: int
    envelope: Optional[Envelope]
    error_kind: Optional[ErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_identifier() -> str:
    return str(uuid.uuid4())


def _error(kind: ErrorKind, message: str) -> ControllerResult:
    return ControllerResult(STATUS_BY_KIND[kind], failure(message), kind)


class UserController:
    """Runs the five user operations against a :class:`UserStore`."""

    def __init__(
        self,
        store: UserStore,
        *,
        id_factory: Callable[[], str] = _new_identifier,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._id_factory = id_factory
        self._clock = clock

    @property
    def store(self) -> UserStore:
        return self._store

    def list_users(self) -> ControllerResult:
        try:
            users = self._store.list_all()
        except Exception:
            logger.exception("Failed to list users")
            return _error(ErrorKind.INTERNAL_ERROR, "Failed to retrieve users")
        return ControllerResult(200, success(users, "Users retrieved successfully"))

    def get_user(self, user_id: str) -> ControllerResult:
        try:
            user = self._store.find_by_id(user_id)
        except Exception:
            logger.exception("Failed to look up user %s", user_id)
            return _error(ErrorKind.INTERNAL_ERROR, "Failed to retrieve user")
        if user is None:
            return _error(ErrorKind.NOT_FOUND, USER_NOT_FOUND)
        return ControllerResult(200, success(user, "User retrieved successfully"))

    def create_user(self, request: CreateUserRequest) -> ControllerResult:
        try:
            now = self._clock()
            user = User(
                id=self._id_factory(),
                name=request.name,
                email=str(request.email),
                age=request.age,
                created_at=now,
                updated_at=now,
            )
            self._store.insert(user)
        except Exception:
            logger.exception("Failed to create user")
            return _error(ErrorKind.INTERNAL_ERROR, "Failed to create user")
        logger.info("Created user %s", user.id)
        return ControllerResult(201, success(user, "User created successfully"))

    def update_user(self, user_id: str, request: UpdateUserRequest) -> ControllerResult:
        changes = request.changes()
        if "email" in changes:
            changes["email"] = str(changes["email"])
        try:
            with self._store.locked() as store:
                existing = store.find_by_id(user_id)
                if existing is None:
                    return _error(ErrorKind.NOT_FOUND, USER_NOT_FOUND)
                # updated_at must move forward even when the clock has not.
                updated_at = max(self._clock(), existing.updated_at + _MIN_TICK)
                updated = replace(existing, updated_at=updated_at, **changes)
                store.replace(user_id, updated)
        except UserNotFoundError:
            return _error(ErrorKind.NOT_FOUND, USER_NOT_FOUND)
        except Exception:
            logger.exception("Failed to update user %s", user_id)
            return _error(ErrorKind.INTERNAL_ERROR, "Failed to update user")
        logger.info("Updated user %s (fields=%s)", user_id, ", ".join(sorted(changes)) or "none")
        return ControllerResult(200, success(updated, "User updated successfully"))

    def delete_user(self, user_id: str) -> ControllerResult:
        try:
            self._store.remove(user_id)
        except UserNotFoundError:
            return _error(ErrorKind.NOT_FOUND, USER_NOT_FOUND)
        except Exception:
            logger.exception("Failed to delete user %s", user_id)
            return _error(ErrorKind.INTERNAL_ERROR, "Failed to delete user")
        logger.info("Deleted user %s", user_id)
        return ControllerResult(204, None)


__all__ = ["ControllerResult", "ErrorKind", "STATUS_BY_KIND", "USER_NOT_FOUND", "UserController"]
