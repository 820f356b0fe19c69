"""Test configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest
import pytest_asyncio

from projects_board.core.board import Board, Credentials, SessionProvider
from projects_board.core.cache import DataCache
from projects_board.core.orchestrator import MutationOrchestrator
from projects_board.core.reconciler import ensure_system_columns
from projects_board.db.memory_store import MemoryProjectStore
from projects_board.integrations.github import StaticGitHubSource
from projects_board.schemas import ExternalProject

USER_ID = "octocat"
BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def user_id() -> str:
    return USER_ID


@pytest.fixture
def make_external() -> Callable[..., ExternalProject]:
    """Factory for GitHub projects with sensible defaults."""

    def _make(project_id: str, number: int = 1, closed: bool = False, **overrides):
        data = {
            "id": project_id,
            "number": number,
            "title": f"Project {project_id}",
            "url": f"https://github.com/users/{USER_ID}/projects/{number}",
            "is_public": False,
            "is_closed": closed,
            "created_at": BASE_TIME,
            "updated_at": BASE_TIME + timedelta(days=number),
            "closed_at": BASE_TIME + timedelta(days=30) if closed else None,
            "items": 0,
        }
        data.update(overrides)
        return ExternalProject(**data)

    return _make


@pytest.fixture
def store() -> MemoryProjectStore:
    return MemoryProjectStore()


@pytest_asyncio.fixture
async def columns(store, user_id):
    """System columns bootstrapped into the store."""
    result = await ensure_system_columns(store, user_id)
    store.writes.clear()
    return result


@pytest.fixture
def source() -> StaticGitHubSource:
    return StaticGitHubSource()


@pytest.fixture
def session(user_id) -> SessionProvider:
    return SessionProvider(Credentials(token="test-token", user_id=user_id))


@pytest.fixture
def board(source, store, session) -> Board:
    return Board(source, store, session)


@pytest.fixture
def cache() -> DataCache:
    return DataCache()


@pytest.fixture
def orchestrator(cache, store, user_id) -> MutationOrchestrator:
    return MutationOrchestrator(cache, store, user_id)
