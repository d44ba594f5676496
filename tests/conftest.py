"""Shared test fixtures and in-memory provider fakes."""

from pathlib import Path

import pytest

from threadsync.errors import NotFound, UpstreamFailure
from threadsync.models import (
    ChatMessage,
    ChatUser,
    CreatedIssue,
    Cycle,
    Issue,
    Team,
    TrackerUser,
    WorkflowState,
)
from threadsync.providers.base import ChatProvider, TicketProvider
from threadsync.settings import BridgeSettings
from threadsync.store import MappingStore


class FakeTracker(TicketProvider):
    def __init__(self) -> None:
        self.issues: dict[str, Issue] = {}
        self.users: list[TrackerUser] = []
        self.teams: dict[str, Team] = {}
        self.cycle: Cycle | None = None
        self.done: WorkflowState | None = None
        self.comments: list[tuple[str, str]] = []
        self.updates: list[tuple[str, str | None, str | None]] = []
        self.created: list[dict] = []
        self.list_calls: list[list[str]] = []

    async def get_issue(self, issue_id: str) -> Issue:
        for issue in self.issues.values():
            if issue.id == issue_id:
                return issue
        raise NotFound(f"Issue '{issue_id}' not found in Linear")

    async def issue_by_number(self, team_key: str, number: int) -> Issue | None:
        return self.issues.get(f"{team_key}-{number}")

    async def list_open_issues(self, assignee_ids: list[str]) -> list[Issue]:
        self.list_calls.append(assignee_ids)
        return [i for i in self.issues.values() if i.assignee_id in assignee_ids]

    async def create_issue(self, title, team_id, assignee_id, cycle_id) -> CreatedIssue:
        self.created.append({"title": title, "team_id": team_id, "assignee_id": assignee_id, "cycle_id": cycle_id})
        return CreatedIssue(id="new_issue", identifier="1SW-99", title=title, url="https://linear.app/t/1SW-99")

    async def update_issue(self, issue_id, assignee_id=None, state_id=None) -> None:
        self.updates.append((issue_id, assignee_id, state_id))

    async def create_comment(self, issue_id: str, body: str) -> None:
        self.comments.append((issue_id, body))

    async def user_by_email(self, email: str) -> TrackerUser | None:
        return next((u for u in self.users if u.email == email), None)

    async def list_users(self) -> list[TrackerUser]:
        return list(self.users)

    async def resolve_team(self, key_or_id: str) -> Team | None:
        return self.teams.get(key_or_id)

    async def current_cycle(self, team_id: str) -> Cycle | None:
        return self.cycle

    async def done_state(self, issue_id: str) -> WorkflowState | None:
        return self.done


class FakeChat(ChatProvider):
    def __init__(self) -> None:
        self.messages: dict[tuple[str, str], ChatMessage] = {}
        self.users: dict[str, ChatUser] = {}
        self.posts: list[dict] = []
        self.updates: list[dict] = []
        self.search_result: ChatMessage | None = None
        self.search_queries: list[str] = []
        self.post_errors: dict[str, UpstreamFailure] = {}
        self.directory_error: UpstreamFailure | None = None
        self.directory_pages_read = 0
        self._ts = 1000

    async def post_message(self, channel_id, text, blocks=None, thread_ts=None) -> str:
        if channel_id in self.post_errors:
            raise self.post_errors[channel_id]
        self._ts += 1
        ts = f"{self._ts}.000100"
        self.posts.append({"channel": channel_id, "text": text, "blocks": blocks, "thread_ts": thread_ts, "ts": ts})
        return ts

    async def update_message(self, channel_id, ts, text, blocks) -> None:
        self.updates.append({"channel": channel_id, "ts": ts, "text": text, "blocks": blocks})

    async def fetch_message(self, channel_id, ts) -> ChatMessage | None:
        return self.messages.get((channel_id, ts))

    async def search_latest(self, query: str) -> ChatMessage | None:
        self.search_queries.append(query)
        return self.search_result

    async def get_user(self, user_id: str) -> ChatUser | None:
        return self.users.get(user_id)

    async def iter_directory(self, max_pages: int):
        if self.directory_error is not None:
            raise self.directory_error
        members = list(self.users.values())
        for page_start in range(0, len(members), 2):
            if self.directory_pages_read >= max_pages:
                return
            self.directory_pages_read += 1
            for user in members[page_start : page_start + 2]:
                yield user


@pytest.fixture
def tracker() -> FakeTracker:
    return FakeTracker()


@pytest.fixture
def chat() -> FakeChat:
    return FakeChat()


@pytest.fixture
def store(tmp_path: Path) -> MappingStore:
    return MappingStore(tmp_path / "mappings.toml")


@pytest.fixture
def settings(tmp_path: Path) -> BridgeSettings:
    return BridgeSettings(  # type: ignore[call-arg]
        slack_bot_token="xoxb-test",
        slack_app_token="xapp-test",
        linear_api_key="lin_api_test",
        linear_team_id="1SW",
        mapping_path=tmp_path / "mappings.toml",
    )


@pytest.fixture
def linear_issue() -> Issue:
    return Issue(
        id="issue_abc123",
        identifier="1SW-42",
        title="[QA] Fix login redirect",
        url="https://linear.app/team/issue/1SW-42",
        state="In Progress",
        assignee="Jane Doe",
        assignee_id="U1",
        team_key="1SW",
    )


@pytest.fixture
def jane() -> TrackerUser:
    return TrackerUser(id="U1", name="Jane Doe", email="a@x.com")


@pytest.fixture
def jane_slack() -> ChatUser:
    return ChatUser(id="S1", name="jane", display_name="Jane", real_name="Jane Doe", email="a@x.com")
