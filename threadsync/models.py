"""Shared pydantic models: the contract between providers, the router and the renderers."""

from pydantic import BaseModel, ConfigDict, Field


class Issue(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str  # Linear-native UUID
    identifier: str  # 1SW-42
    title: str
    url: str
    state: str
    assignee: str | None = None
    assignee_id: str | None = None
    team_key: str | None = None


class ThreadAnchor(BaseModel):
    """Root message of a Slack thread."""

    model_config = ConfigDict(frozen=True)

    channel_id: str
    thread_ts: str


class TrackerUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str | None = None
    active: bool = True


class Team(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    key: str


class WorkflowState(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: str


class Cycle(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    number: int
    name: str | None = None

    @property
    def build_label(self) -> str:
        return self.name or f"V.1.0.{self.number}"


class CreatedIssue(BaseModel):
    """Returned by create_issue: just what the caller needs."""

    model_config = ConfigDict(frozen=True)

    id: str
    identifier: str
    title: str
    url: str


class ChatUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    display_name: str = ""
    real_name: str = ""
    email: str | None = None
    is_bot: bool = False

    @property
    def label(self) -> str:
        return self.display_name or self.real_name or self.name or self.id


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    ts: str
    text: str = ""
    user: str | None = None
    channel_id: str | None = None
    thread_ts: str | None = None
    bot_id: str | None = None
    blocks: list[dict] = []


class Row(BaseModel):
    """One issue line of a listing, with its derived tags."""

    model_config = ConfigDict(frozen=True)

    issue: Issue
    assignee_name: str
    tags: tuple[str, ...] = ()
    state_name: str


class WebhookEvent(BaseModel):
    """Inbound Linear webhook delivery."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    action: str
    type: str
    data: dict = {}
    updated_from: dict | None = Field(default=None, alias="updatedFrom")
    url: str | None = None


class ListingMessage(BaseModel):
    """Summary post plus the threaded detail post of one listing."""

    model_config = ConfigDict(frozen=True)

    summary_text: str
    summary_blocks: list[dict]
    detail_text: str
    detail_blocks: list[dict]
