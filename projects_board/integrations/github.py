"""
GitHub Projects (v2) source.

Fetches the authenticated user's projects through the GraphQL API. The source
is read-only and never retries: a 401 ends the session, everything else is a
transport error for the caller to handle.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..errors import AuthExpired, BoardError, TransportError
from ..schemas import ExternalProject


logger = logging.getLogger(__name__)


PROJECTS_QUERY = """
  query($first: Int!) {
    viewer {
      projectsV2(first: $first) {
        nodes {
          id
          number
          title
          url
          public
          closed
          createdAt
          updatedAt
          closedAt
          items {
            totalCount
          }
        }
      }
    }
  }"""


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    # GitHub returns "Z"-suffixed ISO 8601 timestamps
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_project_node(node: Dict[str, Any]) -> ExternalProject:
    """Map one ``projectsV2`` node onto an ExternalProject."""
    return ExternalProject(
        id=node["id"],
        number=node["number"],
        title=node["title"],
        url=node["url"],
        is_public=bool(node.get("public")),
        is_closed=bool(node.get("closed")),
        created_at=_parse_datetime(node["createdAt"]),
        updated_at=_parse_datetime(node.get("updatedAt")),
        closed_at=_parse_datetime(node.get("closedAt")),
        items=(node.get("items") or {}).get("totalCount", 0),
    )


class GitHubSource(ABC):
    """Abstract source of the authoritative external project set."""

    @abstractmethod
    async def fetch_projects(self, credential: str) -> List[ExternalProject]:
        """Return the user's projects in no particular order.

        Raises:
            AuthExpired: The credential was rejected.
            TransportError: Any other failure.
        """

    async def close(self) -> None:
        """Release any held resources."""


class GitHubProjectsClient(GitHubSource):
    """
    GraphQL client for the GitHub Projects API.
    """

    def __init__(
        self,
        graphql_url: str = "https://api.github.com/graphql",
        timeout: float = 30.0,
        page_size: int = 100,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.graphql_url = graphql_url
        self.page_size = page_size
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def fetch_projects(self, credential: str) -> List[ExternalProject]:
        """Fetch the viewer's projects from GitHub."""
        try:
            response = await self.client.post(
                self.graphql_url,
                headers={
                    "Authorization": f"bearer {credential}",
                    "Content-Type": "application/json",
                },
                json={
                    "query": PROJECTS_QUERY,
                    "variables": {"first": self.page_size},
                },
            )
        except httpx.RequestError as e:
            logger.error(f"Failed to reach GitHub: {e}")
            raise TransportError(f"GitHub request failed: {e}") from e

        if response.status_code == 401:
            logger.warning("GitHub rejected the credential")
            raise AuthExpired()
        if not response.is_success:
            logger.error(f"GitHub API error: {response.status_code}")
            raise TransportError(
                f"GitHub API error: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError("GitHub returned invalid JSON") from e

        if payload.get("errors"):
            messages = "; ".join(
                str(err.get("message", err)) for err in payload["errors"]
            )
            logger.error(f"GitHub GraphQL errors: {messages}")
            raise TransportError(f"GitHub GraphQL error: {messages}")

        nodes = (
            ((payload.get("data") or {}).get("viewer") or {}).get("projectsV2") or {}
        ).get("nodes") or []

        try:
            projects = [parse_project_node(node) for node in nodes if node]
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"Unexpected GitHub response shape: {e}") from e

        logger.debug(f"Fetched {len(projects)} GitHub projects")
        return projects


class StaticGitHubSource(GitHubSource):
    """In-memory project list used in mock mode and tests."""

    def __init__(self, projects: Optional[Sequence[ExternalProject]] = None):
        self.projects: List[ExternalProject] = list(projects or [])
        self.calls = 0
        self._next_error: Optional[BoardError] = None

    def set_projects(self, projects: Sequence[ExternalProject]) -> None:
        self.projects = list(projects)

    def fail_next(self, error: BoardError) -> None:
        """Raise ``error`` from the next fetch only."""
        self._next_error = error

    async def fetch_projects(self, credential: str) -> List[ExternalProject]:
        self.calls += 1
        if self._next_error is not None:
            error, self._next_error = self._next_error, None
            raise error
        return list(self.projects)
