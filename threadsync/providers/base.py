"""Abstract interfaces for the two systems the bridge connects."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

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


class TicketProvider(ABC):
    @abstractmethod
    async def get_issue(self, issue_id: str) -> Issue: ...

    @abstractmethod
    async def issue_by_number(self, team_key: str, number: int) -> Issue | None: ...

    @abstractmethod
    async def list_open_issues(self, assignee_ids: list[str]) -> list[Issue]: ...

    @abstractmethod
    async def create_issue(
        self,
        title: str,
        team_id: str,
        assignee_id: str | None,
        cycle_id: str | None,
    ) -> CreatedIssue: ...

    @abstractmethod
    async def update_issue(
        self,
        issue_id: str,
        assignee_id: str | None = None,
        state_id: str | None = None,
    ) -> None: ...

    @abstractmethod
    async def create_comment(self, issue_id: str, body: str) -> None: ...

    @abstractmethod
    async def user_by_email(self, email: str) -> TrackerUser | None: ...

    @abstractmethod
    async def list_users(self) -> list[TrackerUser]: ...

    @abstractmethod
    async def resolve_team(self, key_or_id: str) -> Team | None: ...

    @abstractmethod
    async def current_cycle(self, team_id: str) -> Cycle | None: ...

    @abstractmethod
    async def done_state(self, issue_id: str) -> WorkflowState | None: ...


class ChatProvider(ABC):
    @abstractmethod
    async def post_message(
        self,
        channel_id: str,
        text: str,
        blocks: list[dict] | None = None,
        thread_ts: str | None = None,
    ) -> str: ...

    @abstractmethod
    async def update_message(self, channel_id: str, ts: str, text: str, blocks: list[dict]) -> None: ...

    @abstractmethod
    async def fetch_message(self, channel_id: str, ts: str) -> ChatMessage | None: ...

    @abstractmethod
    async def search_latest(self, query: str) -> ChatMessage | None: ...

    @abstractmethod
    async def get_user(self, user_id: str) -> ChatUser | None: ...

    @abstractmethod
    def iter_directory(self, max_pages: int) -> AsyncIterator[ChatUser]: ...
