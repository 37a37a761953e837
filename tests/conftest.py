"""Shared test fixtures."""

import os
import tempfile
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from cassandra.cluster import Session


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault(
    "LOG_DIR", str(Path(tempfile.gettempdir()) / "coursepath-test-logs")
)
os.environ.setdefault("LOG_FORMAT", "console")

from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from coursepath.auth.dependencies import get_current_user  # noqa: E402
from coursepath.auth.permissions import UserRole  # noqa: E402
from coursepath.auth.schemas import UserResponse  # noqa: E402
from coursepath.main import create_app  # noqa: E402


@pytest.fixture
def user_id() -> UUID:
    """Test learner ID."""
    return uuid4()


@pytest.fixture
def learner(user_id: UUID) -> UserResponse:
    """Authenticated learner."""
    return UserResponse(
        id=user_id,
        email="learner@example.com",
        name="Ada Learner",
        role=UserRole.LEARNER.value,
    )


@pytest.fixture
def app() -> FastAPI:
    """Fresh application (lifespan not started, no database)."""
    return create_app()


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """Anonymous test client."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_client(app: FastAPI, learner: UserResponse) -> Iterator[TestClient]:
    """Test client authenticated as ``learner``."""
    app.dependency_overrides[get_current_user] = lambda: learner
    yield TestClient(app)
    app.dependency_overrides.clear()


# ==============================================================================
# Cassandra stand-ins
# ==============================================================================


class FakeResult:
    """Minimal ResultSet: iterable rows, ``one()`` and ``was_applied``."""

    def __init__(self, rows: list[Any] | None = None, was_applied: bool = True):
        self.rows = list(rows or [])
        self.was_applied = was_applied

    def one(self) -> Any:
        return self.rows[0] if self.rows else None

    def __iter__(self):
        return iter(self.rows)


@pytest.fixture
def fake_result() -> type[FakeResult]:
    """The FakeResult class, for building scripted responses."""
    return FakeResult


@pytest.fixture
def cql_session() -> Mock:
    """Session whose prepared statements are their whitespace-collapsed CQL."""
    session = Mock(spec=Session)
    session.prepare.side_effect = lambda query: " ".join(query.split())
    session.aexecute = AsyncMock(return_value=FakeResult())
    return session


@pytest.fixture
def route_cql(cql_session: Mock) -> Callable[[dict[str, Any]], None]:
    """Script ``cql_session.aexecute`` by CQL fragment.

    Each value is a FakeResult, a callable taking the bound parameters, or a
    list of either consumed in order (the last one repeats). The first
    fragment found in the statement wins; unmatched statements get an empty
    applied result.
    """

    def _route(routes: dict[str, Any]) -> None:
        queues = {
            fragment: list(outcome) if isinstance(outcome, list) else [outcome]
            for fragment, outcome in routes.items()
        }

        async def aexecute(statement: str, params: Any = None) -> FakeResult:
            for fragment, queue in queues.items():
                if fragment in statement:
                    outcome = queue.pop(0) if len(queue) > 1 else queue[0]
                    return outcome(params) if callable(outcome) else outcome
            return FakeResult()

        cql_session.aexecute.side_effect = aexecute

    return _route


def executed(session: Mock, fragment: str) -> list[Any]:
    """Parameters of every executed statement containing ``fragment``."""
    return [
        call.args[1] if len(call.args) > 1 else None
        for call in session.aexecute.await_args_list
        if fragment in call.args[0]
    ]


@pytest.fixture
def executed_cql() -> Callable[[Mock, str], list[Any]]:
    """Helper returning the parameters of statements matching a fragment."""
    return executed
