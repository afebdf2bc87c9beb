"""
Linear GraphQL adapter.

Every call is a POST to /graphql. GraphQL-level failures come back with
HTTP 200 and an "errors" array; those are raised as IntegrationError.

Webhooks carry the entity in "type" (Issue, Project, Comment, Team) and are
signed with a hex HMAC-SHA256 in the Linear-Signature header.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Awaitable

from aurelius.integrations.base import BaseIntegration, IntegrationError
from aurelius.integrations.schemas import IntegrationCapability

from .schemas import (
    LinearComment,
    LinearCycle,
    LinearIssue,
    LinearLabel,
    LinearNotification,
    LinearProject,
    LinearTeam,
    LinearUser,
    LinearWorkflowState,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Queries
# =============================================================================

VIEWER_QUERY = """
query {
  viewer { id name displayName email avatarUrl admin active timezone createdAt }
}
"""

TEAM_FIELDS = "id name key description icon color private cycleDuration createdAt updatedAt organization { id name }"

PROJECT_FIELDS = (
    "id name description slugId icon color state priority progress startDate targetDate "
    "completedAt url createdAt updatedAt lead { id name email } teams { nodes { id name key } }"
)

ISSUE_FIELDS = (
    "id identifier number title description priority estimate url dueDate createdAt updatedAt "
    "completedAt assignee { id name email } creator { id name email } team { id name key } "
    "project { id name } state { id name color type } labels { nodes { id name color } }"
)

TEAMS_QUERY = f"query {{ teams {{ nodes {{ {TEAM_FIELDS} }} }} }}"

TEAM_QUERY = f"query($id: String!) {{ team(id: $id) {{ {TEAM_FIELDS} }} }}"

PROJECTS_QUERY = f"""
query($first: Int, $after: String) {{
  projects(first: $first, after: $after) {{ nodes {{ {PROJECT_FIELDS} }} }}
}}
"""

PROJECT_QUERY = f"query($id: String!) {{ project(id: $id) {{ {PROJECT_FIELDS} }} }}"

ISSUES_QUERY = f"""
query($first: Int, $after: String, $filter: IssueFilter) {{
  issues(first: $first, after: $after, filter: $filter) {{ nodes {{ {ISSUE_FIELDS} }} }}
}}
"""

ISSUE_QUERY = f"query($id: String!) {{ issue(id: $id) {{ {ISSUE_FIELDS} }} }}"

CREATE_ISSUE = f"""
mutation($input: IssueCreateInput!) {{
  issueCreate(input: $input) {{ success issue {{ {ISSUE_FIELDS} }} }}
}}
"""

UPDATE_ISSUE = f"""
mutation($id: String!, $input: IssueUpdateInput!) {{
  issueUpdate(id: $id, input: $input) {{ success issue {{ {ISSUE_FIELDS} }} }}
}}
"""

DELETE_ISSUE = "mutation($id: String!) { issueDelete(id: $id) { success } }"

CREATE_PROJECT = f"""
mutation($input: ProjectCreateInput!) {{
  projectCreate(input: $input) {{ success project {{ {PROJECT_FIELDS} }} }}
}}
"""

UPDATE_PROJECT = f"""
mutation($id: String!, $input: ProjectUpdateInput!) {{
  projectUpdate(id: $id, input: $input) {{ success project {{ {PROJECT_FIELDS} }} }}
}}
"""

CREATE_COMMENT = """
mutation($input: CommentCreateInput!) {
  commentCreate(input: $input) {
    success
    comment { id body url createdAt user { id name } issue { id identifier title } }
  }
}
"""

WORKFLOW_STATES_QUERY = """
query($teamId: String!) {
  team(id: $teamId) { states { nodes { id name color description type position } } }
}
"""

TEAM_LABELS_QUERY = """
query($teamId: String!) {
  team(id: $teamId) { labels { nodes { id name color description } } }
}
"""

LABELS_QUERY = "query { issueLabels { nodes { id name color description team { id name } } } }"

CYCLES_QUERY = """
query($teamId: String!) {
  team(id: $teamId) {
    cycles { nodes { id number name description startsAt endsAt completedAt progress url } }
  }
}
"""

NOTIFICATIONS_QUERY = """
query($first: Int) {
  notifications(first: $first) {
    nodes {
      id type readAt createdAt
      ... on IssueNotification { issue { id identifier title } }
      ... on ProjectNotification { project { id name } }
    }
  }
}
"""


class LinearIntegration(BaseIntegration):
    provider = "linear"
    name = "Linear"
    api_base_url = "https://api.linear.app"
    token_url = "https://api.linear.app/oauth/token"

    default_scopes = ("read", "write", "issues:create", "comments:create")
    cache_resources = ("users", "teams", "projects", "issues")

    webhook_events = {
        "Issue": ("issues",),
        "Project": ("projects",),
        "Comment": ("issues",),
        "Team": ("teams",),
    }
    webhook_event_fields = ("type",)

    signature_header = "linear-signature"

    # =========================================================================
    # GraphQL transport
    # =========================================================================

    async def _graphql(
        self,
        operation: str,
        query: str,
        variables: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run a query or mutation and return its "data" object."""
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = {k: v for k, v in variables.items() if v is not None}

        body = await self._call(operation, "POST", "/graphql", json=payload) or {}

        errors = body.get("errors")
        if errors:
            messages = "; ".join(e.get("message", str(e)) for e in errors)
            raise IntegrationError(
                f"GraphQL errors: {messages}",
                self.provider,
                response_body=str(errors),
            )

        return body.get("data") or {}

    def _mutation_result(self, data: dict[str, Any], field: str, key: str) -> dict[str, Any]:
        result = data.get(field) or {}
        if not result.get("success"):
            raise IntegrationError(f"{field} was not successful", self.provider)
        return result.get(key) or {}

    # =========================================================================
    # Contract
    # =========================================================================

    async def _verify_credentials(self) -> dict[str, Any]:
        viewer = await self.get_viewer(refresh=True)
        return viewer.model_dump()

    def _connection_details(self, profile: dict[str, Any]) -> dict[str, Any]:
        return {
            "user_id": profile.get("id"),
            "user_name": profile.get("name"),
            "user_email": profile.get("email"),
            "is_admin": profile.get("admin", False),
        }

    def get_capabilities(self) -> list[IntegrationCapability]:
        return [
            IntegrationCapability(name="issues", description="Create, update and search issues", required_scopes=["read", "issues:create"]),
            IntegrationCapability(name="projects", description="Manage projects", required_scopes=["read", "write"]),
            IntegrationCapability(name="teams", description="Teams, workflow states, labels and cycles", required_scopes=["read"]),
            IntegrationCapability(name="comments", description="Comment on issues", required_scopes=["comments:create"]),
            IntegrationCapability(name="notifications", description="Read the inbox", required_scopes=["read"]),
            IntegrationCapability(name="webhooks", description="Issue, project, comment and team events", required_scopes=["read"]),
        ]

    def _sync_branches(self, last_sync_time: datetime | None) -> dict[str, Awaitable[Any]]:
        issue_filter = None
        if last_sync_time is not None:
            issue_filter = {"updatedAt": {"gte": last_sync_time.isoformat()}}
        return {
            "teams": self.get_teams(),
            "projects": self.get_projects(first=50),
            "issues": self.get_issues(first=100, issue_filter=issue_filter),
        }

    # =========================================================================
    # Viewer
    # =========================================================================

    async def get_viewer(self, refresh: bool = False) -> LinearUser:
        if not refresh:
            cached = self.cache.get("users", "me")
            if cached is not None:
                return cached

        data = await self._graphql("get_viewer", VIEWER_QUERY)
        viewer = LinearUser.model_validate(data.get("viewer") or {})
        self.cache.set("users", "me", viewer)
        self.cache.set("users", viewer.id, viewer)
        return viewer

    # =========================================================================
    # Teams
    # =========================================================================

    async def get_teams(self) -> list[LinearTeam]:
        data = await self._graphql("get_teams", TEAMS_QUERY)
        teams = [LinearTeam.model_validate(t) for t in (data.get("teams") or {}).get("nodes", [])]
        self.cache.set_many("teams", teams)
        return teams

    async def get_team(self, team_id: str) -> LinearTeam:
        cached = self.cache.get("teams", team_id)
        if cached is not None:
            return cached
        data = await self._graphql("get_team", TEAM_QUERY, {"id": team_id})
        team = LinearTeam.model_validate(data.get("team") or {})
        self.cache.set("teams", team.id, team)
        return team

    async def get_workflow_states(self, team_id: str) -> list[LinearWorkflowState]:
        data = await self._graphql("get_workflow_states", WORKFLOW_STATES_QUERY, {"teamId": team_id})
        nodes = ((data.get("team") or {}).get("states") or {}).get("nodes", [])
        return [LinearWorkflowState.model_validate(s) for s in nodes]

    async def get_labels(self, team_id: str | None = None) -> list[LinearLabel]:
        if team_id:
            data = await self._graphql("get_labels", TEAM_LABELS_QUERY, {"teamId": team_id})
            nodes = ((data.get("team") or {}).get("labels") or {}).get("nodes", [])
        else:
            data = await self._graphql("get_labels", LABELS_QUERY)
            nodes = (data.get("issueLabels") or {}).get("nodes", [])
        return [LinearLabel.model_validate(label) for label in nodes]

    async def get_cycles(self, team_id: str) -> list[LinearCycle]:
        data = await self._graphql("get_cycles", CYCLES_QUERY, {"teamId": team_id})
        nodes = ((data.get("team") or {}).get("cycles") or {}).get("nodes", [])
        return [LinearCycle.model_validate(c) for c in nodes]

    # =========================================================================
    # Projects
    # =========================================================================

    async def get_projects(self, first: int = 50, after: str | None = None) -> list[LinearProject]:
        data = await self._graphql("get_projects", PROJECTS_QUERY, {"first": first, "after": after})
        projects = [LinearProject.model_validate(p) for p in (data.get("projects") or {}).get("nodes", [])]
        self.cache.set_many("projects", projects)
        return projects

    async def get_project(self, project_id: str) -> LinearProject:
        cached = self.cache.get("projects", project_id)
        if cached is not None:
            return cached
        data = await self._graphql("get_project", PROJECT_QUERY, {"id": project_id})
        project = LinearProject.model_validate(data.get("project") or {})
        self.cache.set("projects", project.id, project)
        return project

    async def create_project(self, name: str, team_ids: list[str], **fields: Any) -> LinearProject:
        data = await self._graphql(
            "create_project",
            CREATE_PROJECT,
            {"input": {"name": name, "teamIds": team_ids, **fields}},
        )
        project = LinearProject.model_validate(self._mutation_result(data, "projectCreate", "project"))
        self.cache.set("projects", project.id, project)
        return project

    async def update_project(self, project_id: str, **fields: Any) -> LinearProject:
        data = await self._graphql("update_project", UPDATE_PROJECT, {"id": project_id, "input": fields})
        project = LinearProject.model_validate(self._mutation_result(data, "projectUpdate", "project"))
        self.cache.set("projects", project.id, project)
        return project

    # =========================================================================
    # Issues
    # =========================================================================

    async def get_issues(
        self,
        first: int = 50,
        after: str | None = None,
        issue_filter: dict[str, Any] | None = None,
    ) -> list[LinearIssue]:
        data = await self._graphql(
            "get_issues", ISSUES_QUERY, {"first": first, "after": after, "filter": issue_filter}
        )
        issues = [LinearIssue.model_validate(i) for i in (data.get("issues") or {}).get("nodes", [])]
        self.cache.set_many("issues", issues)
        return issues

    async def get_issue(self, issue_id: str) -> LinearIssue:
        cached = self.cache.get("issues", issue_id)
        if cached is not None:
            return cached
        data = await self._graphql("get_issue", ISSUE_QUERY, {"id": issue_id})
        issue = LinearIssue.model_validate(data.get("issue") or {})
        self.cache.set("issues", issue.id, issue)
        return issue

    async def create_issue(self, team_id: str, title: str, **fields: Any) -> LinearIssue:
        """
        Create an issue.

        Extra fields are passed through to IssueCreateInput (description,
        assigneeId, projectId, priority, estimate, dueDate, labelIds, stateId).
        """
        data = await self._graphql(
            "create_issue",
            CREATE_ISSUE,
            {"input": {"teamId": team_id, "title": title, **fields}},
        )
        issue = LinearIssue.model_validate(self._mutation_result(data, "issueCreate", "issue"))
        self.cache.set("issues", issue.id, issue)
        logger.info(f"[linear] Created issue {issue.identifier or issue.id}")
        return issue

    async def update_issue(self, issue_id: str, **fields: Any) -> LinearIssue:
        data = await self._graphql("update_issue", UPDATE_ISSUE, {"id": issue_id, "input": fields})
        issue = LinearIssue.model_validate(self._mutation_result(data, "issueUpdate", "issue"))
        self.cache.set("issues", issue.id, issue)
        return issue

    async def delete_issue(self, issue_id: str) -> bool:
        data = await self._graphql("delete_issue", DELETE_ISSUE, {"id": issue_id})
        if not (data.get("issueDelete") or {}).get("success"):
            raise IntegrationError(f"Failed to delete issue {issue_id}", self.provider)
        self.cache.delete("issues", issue_id)
        return True

    async def search_issues(
        self,
        query: str,
        *,
        team_id: str | None = None,
        include_canceled: bool = True,
        first: int = 50,
    ) -> list[LinearIssue]:
        """
        Match query against title, description and identifier.

        The issues connection has no free-text filter, so matching happens
        client-side over the first page.
        """
        issue_filter: dict[str, Any] = {}
        if team_id:
            issue_filter["team"] = {"id": {"eq": team_id}}
        if not include_canceled:
            issue_filter["state"] = {"type": {"neq": "canceled"}}

        issues = await self.get_issues(first=first, issue_filter=issue_filter or None)
        needle = query.lower()
        return [
            issue
            for issue in issues
            if needle in issue.title.lower()
            or needle in (issue.description or "").lower()
            or needle in issue.identifier.lower()
        ]

    async def create_comment(self, issue_id: str, body: str, parent_id: str | None = None) -> LinearComment:
        comment_input: dict[str, Any] = {"issueId": issue_id, "body": body}
        if parent_id:
            comment_input["parentId"] = parent_id
        data = await self._graphql("create_comment", CREATE_COMMENT, {"input": comment_input})
        return LinearComment.model_validate(self._mutation_result(data, "commentCreate", "comment"))

    async def get_notifications(self, first: int = 50, include_read: bool = True) -> list[LinearNotification]:
        data = await self._graphql("get_notifications", NOTIFICATIONS_QUERY, {"first": first})
        nodes = (data.get("notifications") or {}).get("nodes", [])
        notifications = [LinearNotification.model_validate(n) for n in nodes]
        if not include_read:
            notifications = [n for n in notifications if not n.is_read]
        return notifications
