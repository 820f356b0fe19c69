"""Tests for the GitHub Projects source."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from projects_board.errors import AuthExpired, TransportError
from projects_board.integrations.github import (
    GitHubProjectsClient,
    StaticGitHubSource,
    parse_project_node,
)

GRAPHQL_URL = "https://api.github.test/graphql"


def make_node(**overrides):
    node = {
        "id": "PVT_1",
        "number": 3,
        "title": "Roadmap",
        "url": "https://github.com/users/octocat/projects/3",
        "public": True,
        "closed": False,
        "createdAt": "2024-05-01T10:00:00Z",
        "updatedAt": "2024-06-01T12:30:00Z",
        "closedAt": None,
        "items": {"totalCount": 7},
    }
    node.update(overrides)
    return node


def make_client(handler) -> GitHubProjectsClient:
    transport = httpx.MockTransport(handler)
    return GitHubProjectsClient(
        graphql_url=GRAPHQL_URL, client=httpx.AsyncClient(transport=transport)
    )


def projects_payload(*nodes):
    return {"data": {"viewer": {"projectsV2": {"nodes": list(nodes)}}}}


class TestParseProjectNode:
    def test_maps_all_fields(self):
        project = parse_project_node(make_node())

        assert project.id == "PVT_1"
        assert project.number == 3
        assert project.title == "Roadmap"
        assert project.is_public is True
        assert project.is_closed is False
        assert project.created_at == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        assert project.updated_at == datetime(2024, 6, 1, 12, 30, tzinfo=timezone.utc)
        assert project.closed_at is None
        assert project.items == 7

    def test_null_timestamps_become_none(self):
        project = parse_project_node(make_node(updatedAt=None, closedAt=None))
        assert project.updated_at is None
        assert project.closed_at is None


class TestGitHubProjectsClient:
    @pytest.mark.asyncio
    async def test_fetch_projects_sends_bearer_query(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=projects_payload(make_node()))

        client = make_client(handler)
        projects = await client.fetch_projects("secret")
        await client.close()

        assert seen["auth"] == "bearer secret"
        assert "projectsV2" in seen["body"]["query"]
        assert seen["body"]["variables"] == {"first": 100}
        assert [p.id for p in projects] == ["PVT_1"]

    @pytest.mark.asyncio
    async def test_closed_project(self):
        node = make_node(closed=True, closedAt="2024-07-01T00:00:00Z")
        client = make_client(lambda r: httpx.Response(200, json=projects_payload(node)))

        (project,) = await client.fetch_projects("t")

        assert project.is_closed is True
        assert project.closed_at == datetime(2024, 7, 1, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_401_raises_auth_expired(self):
        client = make_client(lambda r: httpx.Response(401, json={"message": "Bad credentials"}))

        with pytest.raises(AuthExpired):
            await client.fetch_projects("expired")

    @pytest.mark.asyncio
    async def test_other_status_raises_transport_error(self):
        client = make_client(lambda r: httpx.Response(502, text="bad gateway"))

        with pytest.raises(TransportError) as exc_info:
            await client.fetch_projects("t")

        assert exc_info.value.status_code == 502
        assert not isinstance(exc_info.value, AuthExpired)

    @pytest.mark.asyncio
    async def test_network_failure_raises_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(TransportError):
            await client.fetch_projects("t")

    @pytest.mark.asyncio
    async def test_graphql_errors_raise_transport_error(self):
        payload = {"errors": [{"message": "Something went wrong"}]}
        client = make_client(lambda r: httpx.Response(200, json=payload))

        with pytest.raises(TransportError, match="Something went wrong"):
            await client.fetch_projects("t")

    @pytest.mark.asyncio
    async def test_missing_nodes_yield_empty_list(self):
        client = make_client(lambda r: httpx.Response(200, json={"data": {"viewer": None}}))

        assert await client.fetch_projects("t") == []

    @pytest.mark.asyncio
    async def test_does_not_retry(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        client = make_client(handler)
        with pytest.raises(TransportError):
            await client.fetch_projects("t")

        assert len(calls) == 1


class TestStaticGitHubSource:
    @pytest.mark.asyncio
    async def test_returns_copy_of_projects(self, make_external):
        source = StaticGitHubSource([make_external("p1")])

        projects = await source.fetch_projects("t")
        projects.clear()

        assert [p.id for p in await source.fetch_projects("t")] == ["p1"]
        assert source.calls == 2

    @pytest.mark.asyncio
    async def test_fail_next_raises_once(self):
        source = StaticGitHubSource()
        source.fail_next(AuthExpired())

        with pytest.raises(AuthExpired):
            await source.fetch_projects("t")
        assert await source.fetch_projects("t") == []
