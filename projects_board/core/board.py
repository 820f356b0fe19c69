"""
Application facade.

Wires the session, the GitHub source, the persistent store and the cache
together: initial load, manual GitHub reloads, logout, and access to the
projected view and the mutation orchestrator.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog

from ..config import Settings, get_settings
from ..db.store import ProjectStore, create_project_store
from ..errors import AuthExpired, BoardError, ReloadInProgress
from ..integrations.github import GitHubProjectsClient, GitHubSource, StaticGitHubSource
from .cache import DataCache
from .filter import filter_board
from .orchestrator import MutationOrchestrator
from .reconciler import ReconcileResult, ensure_system_columns, reconcile
from .view import BoardView, project_board

logger = structlog.get_logger()


@dataclass(frozen=True)
class Credentials:
    """Bearer token for GitHub plus the owner id scoping store rows."""

    token: str
    user_id: str


class NotAuthenticated(BoardError):
    """An operation needed credentials but the session holds none."""

    code = "NOT_AUTHENTICATED"

    def __init__(self) -> None:
        super().__init__("No active session")


class SessionProvider:
    """Holds the current credentials; invalidated on logout or expiry."""

    def __init__(self, credentials: Optional[Credentials] = None):
        self._credentials = credentials

    @property
    def is_authenticated(self) -> bool:
        return self._credentials is not None

    def login(self, credentials: Credentials) -> None:
        self._credentials = credentials

    def require(self) -> Credentials:
        if self._credentials is None:
            raise NotAuthenticated()
        return self._credentials

    def invalidate(self) -> None:
        self._credentials = None


class Board:
    """
    Personal kanban board over GitHub Projects.

    The board manages:
    - Bootstrap of the system columns
    - Reconciliation of GitHub projects into the store
    - The in-memory cache and its projected view
    - User mutations through the orchestrator
    """

    def __init__(
        self,
        source: GitHubSource,
        store: ProjectStore,
        session: SessionProvider,
        cache: Optional[DataCache] = None,
    ):
        self.source = source
        self.store = store
        self.session = session
        self.cache = cache or DataCache()
        self.is_reloading = False
        self.last_result: Optional[ReconcileResult] = None
        self._orchestrator: Optional[MutationOrchestrator] = None

    @classmethod
    def from_settings(
        cls, session: SessionProvider, settings: Optional[Settings] = None
    ) -> "Board":
        """Build a board with the adapters selected by configuration."""
        settings = settings or get_settings()
        if settings.mock_mode:
            source: GitHubSource = StaticGitHubSource()
            store = create_project_store("memory://")
        else:
            source = GitHubProjectsClient(
                graphql_url=settings.github_graphql_url,
                timeout=settings.github_timeout_seconds,
                page_size=settings.github_page_size,
            )
            store = create_project_store(settings.database_url)
        return cls(source, store, session)

    @property
    def orchestrator(self) -> MutationOrchestrator:
        credentials = self.session.require()
        if self._orchestrator is None or self._orchestrator.user_id != credentials.user_id:
            self._orchestrator = MutationOrchestrator(
                self.cache, self.store, credentials.user_id
            )
        return self._orchestrator

    async def load(self) -> ReconcileResult:
        """Initial load: fetch, bootstrap, reconcile and populate the cache.

        Raises:
            AuthExpired: After logging out.
            ReconcileError: After publishing the re-read state, when some
                reconciliation effects failed.
        """
        credentials = self.session.require()
        user_id = credentials.user_id
        log = logger.bind(user_id=user_id)
        log.info("board_load_start")

        try:
            github, columns, projects, labels, relations = await asyncio.gather(
                self.source.fetch_projects(credentials.token),
                self.store.column_read(user_id),
                self.store.project_read(user_id),
                self.store.label_read(user_id),
                self.store.relation_read(user_id),
            )
        except AuthExpired:
            self.logout()
            raise

        columns = await ensure_system_columns(self.store, user_id, columns)
        result = await reconcile(self.store, user_id, github, projects, columns)
        self.last_result = result
        if result.deleted:
            # Deleted projects took their relation rows with them
            relations = await self.store.relation_read(user_id)

        self.cache.init(
            github=github,
            columns=columns,
            projects=result.projects,
            labels=labels,
            relations=relations,
        )
        log.info(
            "board_load_complete",
            projects=len(result.projects),
            columns=len(columns),
            labels=len(labels),
        )
        result.raise_for_failures()
        return result

    async def reload_github(self) -> ReconcileResult:
        """Re-fetch GitHub and reconcile against the cached state.

        Raises:
            ReloadInProgress: Another reload is still running.
            AuthExpired: After logging out.
            ReconcileError: After publishing the re-read state, when some
                reconciliation effects failed.
        """
        if self.is_reloading:
            raise ReloadInProgress()
        self.is_reloading = True
        try:
            credentials = self.session.require()
            log = logger.bind(user_id=credentials.user_id)
            try:
                github = await self.source.fetch_projects(credentials.token)
            except AuthExpired:
                log.warning("github_auth_expired")
                self.logout()
                raise

            result = await reconcile(
                self.store,
                credentials.user_id,
                github,
                self.cache.get_projects(),
                self.cache.get_columns(),
            )
            self.last_result = result
            relations = self.cache.get_relations()
            if result.deleted:
                # Deleted projects took their relation rows with them
                relations = await self.store.relation_read(credentials.user_id)

            self.cache.set_github(github)
            self.cache.set_projects(result.projects)
            self.cache.set_relations(relations)
            log.info("github_reload_complete", effects=result.effect_count)
            result.raise_for_failures()
            return result
        finally:
            self.is_reloading = False

    def logout(self) -> None:
        """Drop the credentials and everything cached for them."""
        self.session.invalidate()
        self.cache.clear()
        self._orchestrator = None
        logger.info("board_logout")

    def view(self, query: str = "") -> BoardView:
        """The projected board, optionally narrowed by a filter query."""
        return filter_board(project_board(self.cache.snapshot()), query)

    async def close(self) -> None:
        await self.source.close()
        await self.store.close()
