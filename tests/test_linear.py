"""
Tests for the Linear GraphQL adapter.
"""
import json

import httpx
import pytest

from aurelius.integrations.errors import IntegrationError
from aurelius.integrations.linear import LinearIntegration
from aurelius.integrations.webhooks import compute_signature

VIEWER = {"id": "u1", "name": "Ada", "email": "ada@example.com", "admin": True}

ISSUE = {
    "id": "i1",
    "identifier": "ENG-1",
    "title": "Fix login",
    "description": "Users cannot sign in",
    "priority": 2,
    "state": {"id": "s1", "name": "Todo", "type": "unstarted"},
    "labels": {"nodes": [{"id": "l1", "name": "bug"}]},
}


class GraphQLStub:
    """Answers POST /graphql by the first root field found in the query."""

    def __init__(self):
        self.responses: dict[str, dict] = {}
        self.payloads: list[dict] = []

    def on(self, field: str, data: dict) -> None:
        self.responses[field] = data

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.payloads.append(payload)
        for field, body in self.responses.items():
            if field in payload["query"]:
                return httpx.Response(200, json=body)
        return httpx.Response(200, json={"errors": [{"message": "unexpected query"}]})


@pytest.fixture
def graphql(vendor):
    stub = GraphQLStub()
    stub.on("viewer", {"data": {"viewer": VIEWER}})
    vendor.add("POST", "/graphql", handler=stub)
    return stub


@pytest.fixture
def linear(make_integration, graphql):
    return make_integration(LinearIntegration, webhook_secret="whsec")


class TestViewer:
    @pytest.mark.asyncio
    async def test_authenticate_caches_viewer(self, linear, graphql):
        result = await linear.authenticate()

        assert result.success is True
        assert linear.cache.get("users", "me").email == "ada@example.com"
        assert linear.cache.get("users", "u1") is linear.cache.get("users", "me")

    @pytest.mark.asyncio
    async def test_viewer_served_from_cache(self, linear, graphql):
        await linear.get_viewer()
        await linear.get_viewer()
        assert len(graphql.payloads) == 1

    @pytest.mark.asyncio
    async def test_connection_details(self, linear):
        status = await linear.test_connection()
        assert status.details == {
            "user_id": "u1",
            "user_name": "Ada",
            "user_email": "ada@example.com",
            "is_admin": True,
        }

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self, make_integration, vendor):
        vendor.add("POST", "/graphql", {"errors": [{"message": "Authentication required"}]})
        linear = make_integration(LinearIntegration)

        with pytest.raises(IntegrationError, match="GraphQL errors: Authentication required"):
            await linear.get_teams()


class TestIssues:
    """Tests for issue queries and mutations."""

    @pytest.mark.asyncio
    async def test_get_issues_flattens_connections(self, linear, graphql):
        graphql.on("issues(", {"data": {"issues": {"nodes": [ISSUE]}}})

        issues = await linear.get_issues(first=10)

        assert issues[0].labels[0].name == "bug"
        assert issues[0].state.name == "Todo"
        assert linear.cache.get("issues", "i1") is issues[0]
        assert graphql.payloads[-1]["variables"] == {"first": 10}

    @pytest.mark.asyncio
    async def test_create_issue_input(self, linear, graphql):
        graphql.on("issueCreate", {"data": {"issueCreate": {"success": True, "issue": ISSUE}}})

        issue = await linear.create_issue("team-1", "Fix login", priority=2, assigneeId="u1")

        assert graphql.payloads[-1]["variables"]["input"] == {
            "teamId": "team-1",
            "title": "Fix login",
            "priority": 2,
            "assigneeId": "u1",
        }
        assert issue.identifier == "ENG-1"
        assert linear.cache.get("issues", "i1") is issue

    @pytest.mark.asyncio
    async def test_unsuccessful_mutation(self, linear, graphql):
        graphql.on("issueUpdate", {"data": {"issueUpdate": {"success": False}}})

        with pytest.raises(IntegrationError, match="issueUpdate"):
            await linear.update_issue("i1", title="New")

    @pytest.mark.asyncio
    async def test_delete_issue_evicts(self, linear, graphql):
        linear.cache.set("issues", "i1", object())
        graphql.on("issueDelete", {"data": {"issueDelete": {"success": True}}})

        assert await linear.delete_issue("i1") is True
        assert linear.cache.get("issues", "i1") is None

    @pytest.mark.asyncio
    async def test_search_matches_identifier(self, linear, graphql):
        other = {**ISSUE, "id": "i2", "identifier": "OPS-9", "title": "Rotate keys", "description": None}
        graphql.on("issues(", {"data": {"issues": {"nodes": [ISSUE, other]}}})

        found = await linear.search_issues("ops-9", team_id="team-1")

        assert [i.id for i in found] == ["i2"]
        assert graphql.payloads[-1]["variables"]["filter"] == {"team": {"id": {"eq": "team-1"}}}

    @pytest.mark.asyncio
    async def test_unread_notifications(self, linear, graphql):
        graphql.on(
            "notifications",
            {"data": {"notifications": {"nodes": [
                {"id": "n1", "type": "issueAssigned", "readAt": "2024-01-01T00:00:00Z"},
                {"id": "n2", "type": "issueComment"},
            ]}}},
        )

        unread = await linear.get_notifications(include_read=False)

        assert [n.id for n in unread] == ["n2"]


class TestSyncAndWebhooks:
    @pytest.mark.asyncio
    async def test_sync_branches(self, linear, graphql):
        graphql.on("query { teams", {"data": {"teams": {"nodes": [{"id": "t1", "name": "Eng"}]}}})
        graphql.on("projects(", {"data": {"projects": {"nodes": []}}})
        graphql.on("issues(", {"data": {"issues": {"nodes": [ISSUE]}}})

        result = await linear.sync_data()

        assert result.success is True
        assert result.metadata["branches"] == {"teams": 1, "projects": 0, "issues": 1}

    def test_hex_signature(self, linear):
        body = b'{"type": "Issue", "action": "update"}'
        assert linear.validate_webhook_signature(body, compute_signature("whsec", body)) is True
        assert linear.validate_webhook_signature(body, "deadbeef") is False

    @pytest.mark.asyncio
    async def test_comment_event_clears_issues(self, linear, graphql):
        graphql.on("issues(", {"data": {"issues": {"nodes": [ISSUE]}}})
        await linear.get_issues()

        payload = LinearIntegration.parse_webhook({}, b'{"type": "Comment", "action": "create"}')
        response = await linear.handle_webhook(payload)

        assert response.success is True
        assert response.data["invalidated"] == ["issues"]
        assert linear.cache.size("issues") == 0
