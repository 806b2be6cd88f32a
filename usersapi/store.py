"""In-memory storage for user records."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from .models import User

logger = logging.getLogger("usersapi.store")


class StoreError(KeyError):
    """Base class for store lookups that cannot be satisfied."""

    def __init__(self, user_id: str, message: str) -> None:
        super().__init__(user_id)
        self.user_id = user_id
        self.message = message

    def __str__(self) -> str:
        return self.message


class UserNotFoundError(StoreError):
    def __init__(self, user_id: str) -> None:
        super().__init__(user_id, f"User '{user_id}' not found")


class DuplicateUserError(StoreError):
    def __init__(self, user_id: str) -> None:
        super().__init__(user_id, f"User '{user_id}' already exists")


class UserStore:
    """Ordered collection of users keyed by identifier.

    Records are kept in a dictionary for lookups alongside a list of
    identifiers that preserves insertion order. Every operation takes the
    store lock; callers that need several operations to appear atomic can
    hold :meth:`locked` around them.
    """

    def __init__(self) -> None:
        self._records: Dict[str, User] = {}
        self._order: List[str] = []
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._order)

    @contextmanager
    def locked(self) -> Iterator["UserStore"]:
        with self._lock:
            yield self

    def list_all(self) -> List[User]:
        with self._lock:
            return [self._records[user_id] for user_id in self._order]

    def find_by_id(self, user_id: str) -> Optional[User]:
        with self._lock:
            return self._records.get(user_id)

    def insert(self, user: User) -> User:
        with self._lock:
            if user.id in self._records:
                raise DuplicateUserError(user.id)
            self._records[user.id] = user
            self._order.append(user.id)
        logger.debug("Stored user %s", user.id)
        return user

    def replace(self, user_id: str, user: User) -> User:
        """Overwrite the record for ``user_id`` while keeping its position."""

        with self._lock:
            if user_id not in self._records:
                raise UserNotFoundError(user_id)
            if user.id != user_id:
                raise ValueError("Replacement record must keep the original identifier")
            self._records[user_id] = user
        return user

    def remove(self, user_id: str) -> User:
        with self._lock:
            try:
                user = self._records.pop(user_id)
            except KeyError:
                raise UserNotFoundError(user_id) from None
            self._order.remove(user_id)
        logger.debug("Removed user %s", user_id)
        return user

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._order.clear()


__all__ = ["DuplicateUserError", "StoreError", "UserNotFoundError", "UserStore"]
