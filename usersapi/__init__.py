"""In-memory users REST service."""

from __future__ import annotations

from typing import Any

from .models import User
from .store import UserStore


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the users API application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = ["User", "UserStore", "create_app"]
