from __future__ import annotations

from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Iterator, List

import pytest

from usersapi.controller import ErrorKind, UserController
from usersapi.store import UserStore
from usersapi.validation import CreateUserRequest, UpdateUserRequest

_EPOCH = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, start: datetime = _EPOCH) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class BrokenStore(UserStore):
    def list_all(self) -> List:  # type: ignore[override]
        raise RuntimeError("boom")

    def insert(self, user):  # type: ignore[override]
        raise RuntimeError("boom")

    def find_by_id(self, user_id):  # type: ignore[override]
        raise RuntimeError("boom")

    def replace(self, user_id, user):  # type: ignore[override]
        raise RuntimeError("boom")

    def remove(self, user_id):  # type: ignore[override]
        raise RuntimeError("boom")


def _sequential_ids() -> Iterator[str]:
    for index in count(1):
        yield f"user-{index}"


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def controller(clock: FrozenClock) -> UserController:
    ids = _sequential_ids()
    return UserController(UserStore(), id_factory=lambda: next(ids), clock=clock)


def _create(controller: UserController, name: str = "John Doe", **extra: object):
    request = CreateUserRequest(name=name, email=f"{name.split()[0].lower()}@example.com", **extra)
    return controller.create_user(request)


def test_list_empty_store(controller: UserController) -> None:
    result = controller.list_users()

    assert result.status_code == 200
    assert result.envelope.to_json() == {
        "success": True,
        "data": [],
        "message": "Users retrieved successfully",
    }


def test_create_sets_identifier_and_timestamps(controller: UserController) -> None:
    result = _create(controller, age=30)

    assert result.status_code == 201
    assert result.ok
    body = result.envelope.to_json()
    assert body["message"] == "User created successfully"
    assert body["data"]["id"] == "user-1"
    assert body["data"]["name"] == "John Doe"
    assert body["data"]["age"] == 30
    assert body["data"]["createdAt"] == body["data"]["updatedAt"]


def test_create_with_default_identifiers_are_unique() -> None:
    controller = UserController(UserStore())
    ids = {
        _create(controller, name=f"User {index}").envelope.data.id
        for index in range(25)
    }
    assert len(ids) == 25
    assert all(ids)


def test_create_omits_missing_age(controller: UserController) -> None:
    body = _create(controller).envelope.to_json()
    assert "age" not in body["data"]


def test_list_returns_creation_order(controller: UserController) -> None:
    for name in ("Carol Example", "Alice Example", "Bob Example"):
        _create(controller, name=name)

    names = [user["name"] for user in controller.list_users().envelope.to_json()["data"]]
    assert names == ["Carol Example", "Alice Example", "Bob Example"]


def test_get_user(controller: UserController) -> None:
    _create(controller)

    found = controller.get_user("user-1")
    assert found.status_code == 200
    assert found.envelope.message == "User retrieved successfully"

    missing = controller.get_user("user-99")
    assert missing.status_code == 404
    assert missing.error_kind is ErrorKind.NOT_FOUND
    assert missing.envelope.to_json() == {"success": False, "error": "User not found"}


def test_update_merges_supplied_fields(controller: UserController, clock: FrozenClock) -> None:
    created = _create(controller, age=30).envelope.data
    clock.advance(5)

    result = controller.update_user("user-1", UpdateUserRequest(age=31))

    assert result.status_code == 200
    updated = result.envelope.data
    assert updated.age == 31
    assert updated.name == created.name
    assert updated.email == created.email
    assert updated.id == created.id
    assert updated.created_at == created.created_at
    assert updated.updated_at > created.updated_at


def test_update_advances_timestamp_with_stalled_clock(controller: UserController) -> None:
    created = _create(controller).envelope.data

    first = controller.update_user("user-1", UpdateUserRequest(name="Johnny")).envelope.data
    second = controller.update_user("user-1", UpdateUserRequest(name="John")).envelope.data

    assert created.updated_at < first.updated_at < second.updated_at
    assert second.created_at == created.created_at


def test_update_keeps_position(controller: UserController) -> None:
    for name in ("Alice Example", "Bob Example", "Carol Example"):
        _create(controller, name=name)

    controller.update_user("user-2", UpdateUserRequest(name="Robert Example"))

    names = [user.name for user in controller.store.list_all()]
    assert names == ["Alice Example", "Robert Example", "Carol Example"]


def test_update_unknown_user(controller: UserController) -> None:
    result = controller.update_user("user-7", UpdateUserRequest(name="Ghost"))
    assert result.status_code == 404
    assert result.envelope.error == "User not found"


def test_delete_then_get_is_not_found(controller: UserController) -> None:
    _create(controller)

    deleted = controller.delete_user("user-1")
    assert deleted.status_code == 204
    assert deleted.envelope is None

    assert controller.get_user("user-1").status_code == 404
    assert controller.delete_user("user-1").status_code == 404


def test_unexpected_failures_become_internal_errors(caplog: pytest.LogCaptureFixture) -> None:
    controller = UserController(BrokenStore())

    with caplog.at_level("ERROR", logger="usersapi.controller"):
        listed = controller.list_users()
        created = _create(controller)

    assert listed.status_code == 500
    assert listed.error_kind is ErrorKind.INTERNAL_ERROR
    assert listed.envelope.to_json() == {"success": False, "error": "Failed to retrieve users"}
    assert created.status_code == 500
    assert created.envelope.error == "Failed to create user"
    assert "Failed to list users" in caplog.text


@pytest.mark.parametrize(
    ("operation", "message"),
    [
        (lambda controller: controller.get_user("user-1"), "Failed to retrieve user"),
        (lambda controller: controller.update_user("user-1", UpdateUserRequest(age=40)), "Failed to update user"),
        (lambda controller: controller.delete_user("user-1"), "Failed to delete user"),
    ],
)
def test_lookup_failures_become_internal_errors(operation, message: str, caplog: pytest.LogCaptureFixture) -> None:
    controller = UserController(BrokenStore())

    with caplog.at_level("ERROR", logger="usersapi.controller"):
        result = operation(controller)

    assert result.status_code == 500
    assert result.error_kind is ErrorKind.INTERNAL_ERROR
    assert result.envelope.to_json() == {"success": False, "error": message}
    assert "user-1" in caplog.text


def test_update_failure_in_replace_is_internal_error(clock: FrozenClock) -> None:
    class FailingReplaceStore(UserStore):
        def replace(self, user_id, user):  # type: ignore[override]
            raise RuntimeError("boom")

    controller = UserController(FailingReplaceStore(), id_factory=lambda: "user-1", clock=clock)
    _create(controller)

    result = controller.update_user("user-1", UpdateUserRequest(age=40))

    assert result.status_code == 500
    assert result.envelope.error == "Failed to update user"
    assert controller.store.find_by_id("user-1").age is None
