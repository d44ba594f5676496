"""Linear GraphQL API provider."""

import logging
from datetime import datetime, timezone

import httpx

from threadsync.errors import NotFound, UpstreamFailure
from threadsync.models import CreatedIssue, Cycle, Issue, Team, TrackerUser, WorkflowState
from threadsync.providers.base import TicketProvider
from threadsync.settings import BridgeSettings

logger = logging.getLogger(__name__)

ENDPOINT = "https://api.linear.app/graphql"

DONE_STATE_NAMES = ["Done", "Completed", "완료"]

_ISSUE_FIELDS = """
    id
    identifier
    title
    url
    state { name }
    assignee { id name }
    team { key }
"""

_GET_ISSUE = f"""
query GetIssue($id: String!) {{
  issue(id: $id) {{ {_ISSUE_FIELDS} }}
}}
"""

_ISSUE_BY_NUMBER = f"""
query IssueByNumber($teamKey: String!, $number: Float!) {{
  issues(filter: {{ team: {{ key: {{ eq: $teamKey }} }}, number: {{ eq: $number }} }}, first: 1) {{
    nodes {{ {_ISSUE_FIELDS} }}
  }}
}}
"""

_LIST_OPEN_ISSUES = f"""
query ListOpenIssues($assigneeIds: [ID!], $after: String) {{
  issues(
    filter: {{
      assignee: {{ id: {{ in: $assigneeIds }} }}
      state: {{ type: {{ in: ["started", "unstarted"] }} }}
    }}
    orderBy: updatedAt
    first: 250
    after: $after
  ) {{
    nodes {{ {_ISSUE_FIELDS} }}
    pageInfo {{ hasNextPage endCursor }}
  }}
}}
"""

_CREATE_ISSUE = """
mutation CreateIssue($title: String!, $teamId: String!, $assigneeId: String, $cycleId: String) {
  issueCreate(input: {
    title: $title
    teamId: $teamId
    assigneeId: $assigneeId
    cycleId: $cycleId
  }) {
    success
    issue {
      id
      identifier
      title
      url
    }
  }
}
"""

_UPDATE_ISSUE = """
mutation UpdateIssue($id: String!, $input: IssueUpdateInput!) {
  issueUpdate(id: $id, input: $input) {
    success
  }
}
"""

_CREATE_COMMENT = """
mutation CreateComment($issueId: String!, $body: String!) {
  commentCreate(input: { issueId: $issueId, body: $body }) {
    success
  }
}
"""

_USER_BY_EMAIL = """
query UserByEmail($email: String!) {
  users(filter: { email: { eq: $email } }) {
    nodes { id name email active }
  }
}
"""

_LIST_USERS = """
query ListUsers {
  users(first: 250) {
    nodes { id name email active }
  }
}
"""

_GET_TEAM = """
query GetTeam($id: String!) {
  team(id: $id) { id name key }
}
"""

_ACTIVE_CYCLE = """
query ActiveCycle($teamId: ID!) {
  cycles(filter: { team: { id: { eq: $teamId } }, isActive: { eq: true } }) {
    nodes { id number name }
  }
}
"""

_UPCOMING_CYCLE = """
query UpcomingCycle($teamId: ID!, $now: DateTimeOrDuration!) {
  cycles(filter: { team: { id: { eq: $teamId } }, endsAt: { gt: $now } }, first: 1) {
    nodes { id number name }
  }
}
"""

_ISSUE_TEAM = """
query IssueTeam($id: String!) {
  issue(id: $id) { team { id } }
}
"""

_STATES_BY_NAME = """
query StatesByName($teamId: ID!, $names: [String!]) {
  workflowStates(filter: { team: { id: { eq: $teamId } }, name: { in: $names } }) {
    nodes { id name type }
  }
}
"""

_COMPLETED_STATES = """
query CompletedStates($teamId: ID!) {
  workflowStates(filter: { team: { id: { eq: $teamId } }, type: { eq: "completed" } }) {
    nodes { id name type }
  }
}
"""


class LinearProvider(TicketProvider):
    def __init__(self, settings: BridgeSettings, client: httpx.AsyncClient | None = None) -> None:
        if not settings.linear_api_key:
            raise RuntimeError("linear_api_key is required")
        self._api_key = settings.linear_api_key.get_secret_value()
        self._client = client or httpx.AsyncClient(timeout=30)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _gql(self, query: str, variables: dict | None = None) -> dict:
        try:
            response = await self._client.post(
                ENDPOINT,
                json={"query": query, "variables": variables or {}},
                headers={
                    "Authorization": self._api_key,
                    "Content-Type": "application/json",
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamFailure(f"Linear request failed: {exc}") from exc
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamFailure(f"Linear returned a non-JSON response: {exc}") from exc
        if not isinstance(data, dict):
            raise UpstreamFailure("Linear returned an unexpected response body")
        if "errors" in data:
            messages = " ".join(str(e.get("message", "")) for e in data["errors"]).lower()
            code = "not_found" if "not found" in messages else None
            raise UpstreamFailure(f"Linear API error: {data['errors']}", code=code)
        if not isinstance(data.get("data"), dict):
            raise UpstreamFailure("Linear response has no data")
        return data["data"]

    def _issue_from_node(self, node: dict) -> Issue:
        assignee = node.get("assignee")
        return Issue(
            id=node["id"],
            identifier=node["identifier"],
            title=node["title"],
            url=node["url"],
            state=node["state"]["name"] if node.get("state") else "Unknown",
            assignee=assignee["name"] if assignee else None,
            assignee_id=assignee["id"] if assignee else None,
            team_key=node["team"]["key"] if node.get("team") else None,
        )

    @staticmethod
    def _user_from_node(node: dict) -> TrackerUser:
        return TrackerUser(
            id=node["id"],
            name=node["name"],
            email=node.get("email"),
            active=node.get("active", True),
        )

    async def get_issue(self, issue_id: str) -> Issue:
        try:
            data = await self._gql(_GET_ISSUE, {"id": issue_id})
        except UpstreamFailure as exc:
            if exc.code == "not_found":
                raise NotFound(f"Issue '{issue_id}' not found in Linear") from exc
            raise
        node = data["issue"]
        if not node:
            raise NotFound(f"Issue '{issue_id}' not found in Linear")
        return self._issue_from_node(node)

    async def issue_by_number(self, team_key: str, number: int) -> Issue | None:
        data = await self._gql(_ISSUE_BY_NUMBER, {"teamKey": team_key, "number": number})
        nodes = data["issues"]["nodes"]
        return self._issue_from_node(nodes[0]) if nodes else None

    async def list_open_issues(self, assignee_ids: list[str]) -> list[Issue]:
        issues: list[Issue] = []
        after = None
        while True:
            data = await self._gql(_LIST_OPEN_ISSUES, {"assigneeIds": assignee_ids, "after": after})
            page = data["issues"]
            issues.extend(self._issue_from_node(n) for n in page["nodes"])
            page_info = page.get("pageInfo") or {}
            if not page_info.get("hasNextPage") or not page_info.get("endCursor"):
                return issues
            after = page_info["endCursor"]

    async def create_issue(
        self,
        title: str,
        team_id: str,
        assignee_id: str | None,
        cycle_id: str | None,
    ) -> CreatedIssue:
        data = await self._gql(
            _CREATE_ISSUE,
            {
                "title": title,
                "teamId": team_id,
                "assigneeId": assignee_id,
                "cycleId": cycle_id,
            },
        )
        result = data["issueCreate"]
        if not result["success"] or not result.get("issue"):
            raise UpstreamFailure("Linear issueCreate returned success=false")
        issue = result["issue"]
        return CreatedIssue(
            id=issue["id"],
            identifier=issue["identifier"],
            title=issue["title"],
            url=issue["url"],
        )

    async def update_issue(
        self,
        issue_id: str,
        assignee_id: str | None = None,
        state_id: str | None = None,
    ) -> None:
        update: dict[str, str] = {}
        if assignee_id is not None:
            update["assigneeId"] = assignee_id
        if state_id is not None:
            update["stateId"] = state_id
        if not update:
            return
        data = await self._gql(_UPDATE_ISSUE, {"id": issue_id, "input": update})
        if not data["issueUpdate"]["success"]:
            raise UpstreamFailure("Linear issueUpdate returned success=false")

    async def create_comment(self, issue_id: str, body: str) -> None:
        data = await self._gql(_CREATE_COMMENT, {"issueId": issue_id, "body": body})
        if not data["commentCreate"]["success"]:
            raise UpstreamFailure("Linear commentCreate returned success=false")

    async def user_by_email(self, email: str) -> TrackerUser | None:
        data = await self._gql(_USER_BY_EMAIL, {"email": email})
        nodes = data["users"]["nodes"]
        return self._user_from_node(nodes[0]) if nodes else None

    async def list_users(self) -> list[TrackerUser]:
        data = await self._gql(_LIST_USERS)
        return [self._user_from_node(n) for n in data["users"]["nodes"]]

    async def resolve_team(self, key_or_id: str) -> Team | None:
        try:
            data = await self._gql(_GET_TEAM, {"id": key_or_id})
        except UpstreamFailure as exc:
            if exc.code == "not_found":
                return None
            raise
        node = data.get("team")
        if not node:
            return None
        return Team(id=node["id"], name=node["name"], key=node["key"])

    async def current_cycle(self, team_id: str) -> Cycle | None:
        """Active cycle of the team, else the next cycle that has not ended yet."""
        data = await self._gql(_ACTIVE_CYCLE, {"teamId": team_id})
        nodes = data["cycles"]["nodes"]
        if not nodes:
            now = datetime.now(timezone.utc).isoformat()
            data = await self._gql(_UPCOMING_CYCLE, {"teamId": team_id, "now": now})
            nodes = data["cycles"]["nodes"]
        if not nodes:
            return None
        node = nodes[0]
        return Cycle(id=node["id"], number=int(node["number"]), name=node.get("name"))

    async def done_state(self, issue_id: str) -> WorkflowState | None:
        data = await self._gql(_ISSUE_TEAM, {"id": issue_id})
        issue = data.get("issue") or {}
        team = issue.get("team")
        if not team:
            raise NotFound(f"Team not found for issue '{issue_id}'")

        data = await self._gql(_STATES_BY_NAME, {"teamId": team["id"], "names": DONE_STATE_NAMES})
        nodes = data["workflowStates"]["nodes"]
        if not nodes:
            data = await self._gql(_COMPLETED_STATES, {"teamId": team["id"]})
            nodes = data["workflowStates"]["nodes"]
        if not nodes:
            return None
        node = nodes[0]
        return WorkflowState(id=node["id"], name=node["name"], type=node["type"])
