"""Bidirectional Slack thread ↔ Linear issue synchronization."""

import logging

from threadsync.errors import ParseError, SyncError, UpstreamFailure
from threadsync.identifiers import extract, split
from threadsync.models import Issue, ThreadAnchor, WebhookEvent
from threadsync.providers.base import ChatProvider, TicketProvider
from threadsync.store import MappingStore
from threadsync.users import UserResolver

logger = logging.getLogger(__name__)

PROVENANCE_MARKER = "(from Slack by"

# Upstream codes proving a stored anchor no longer exists.
STALE_ANCHOR_CODES = frozenset({"channel_not_found", "thread_not_found", "message_not_found", "is_archived"})

# Message subtypes that still carry a fresh user-authored reply.
USER_REPLY_SUBTYPES = frozenset({"thread_broadcast", "file_share"})


def provenance_suffix(name: str) -> str:
    return f"{PROVENANCE_MARKER} {name})"


def has_provenance(body: str) -> bool:
    return PROVENANCE_MARKER.lower() in body.lower()


class SyncRouter:
    """Relays thread replies to Linear comments and Linear webhooks to Slack threads.

    Comments created here carry the provenance marker; any inbound comment
    webhook containing it is dropped before anything else, which is what keeps
    the two directions from echoing each other forever.
    """

    def __init__(
        self,
        tracker: TicketProvider,
        chat: ChatProvider,
        store: MappingStore,
        users: UserResolver,
    ) -> None:
        self._tracker = tracker
        self._chat = chat
        self._store = store
        self._users = users

    # ------------------------------------------------------------------
    # Slack → Linear
    # ------------------------------------------------------------------

    async def handle_chat_message(self, event: dict) -> bool:
        """Forward a thread reply as a Linear comment. Returns True if a comment was created."""
        if event.get("bot_id"):
            return False
        subtype = event.get("subtype")
        if subtype and subtype not in USER_REPLY_SUBTYPES:
            return False
        thread_ts = event.get("thread_ts")
        if not thread_ts or thread_ts == event.get("ts"):
            return False
        channel_id = event.get("channel")
        user_id = event.get("user")
        text = (event.get("text") or "").strip()
        if not channel_id or not user_id or not text:
            return False

        try:
            return await self._forward_reply(channel_id, thread_ts, user_id, text)
        except SyncError as exc:
            logger.warning("Reply in %s/%s not synced: %s", channel_id, thread_ts, exc)
            return False

    async def _forward_reply(self, channel_id: str, thread_ts: str, user_id: str, text: str) -> bool:
        root = await self._chat.fetch_message(channel_id, thread_ts)
        identifier = extract(root.text) if root else None
        if not identifier:
            logger.debug("Thread %s/%s has no issue identifier", channel_id, thread_ts)
            return False
        try:
            team_key, number = split(identifier)
        except ParseError:
            return False

        issue = await self._tracker.issue_by_number(team_key, number)
        if issue is None:
            logger.info("Thread %s/%s names %s, which does not exist in Linear", channel_id, thread_ts, identifier)
            return False

        name = await self._users.display_name(user_id)
        await self._tracker.create_comment(issue.id, f"{text}\n\n{provenance_suffix(name)}")
        logger.info("Synced reply by %s to %s", name, identifier)
        return True

    # ------------------------------------------------------------------
    # Linear → Slack
    # ------------------------------------------------------------------

    async def handle_webhook(self, event: WebhookEvent) -> bool:
        """Post a webhook-described change into the issue's thread. Returns True if posted."""
        if event.type == "Comment" and has_provenance(str(event.data.get("body") or "")):
            logger.debug("Dropping comment that originated in Slack")
            return False

        try:
            prepared = await self._describe(event)
            if prepared is None:
                return False
            identifier, text = prepared

            anchor = await self.resolve_anchor(identifier)
            if anchor is None:
                logger.info("No Slack thread found for %s; dropping %s %s", identifier, event.type, event.action)
                return False
            return await self._post(identifier, anchor, text)
        except SyncError as exc:
            logger.warning("Webhook %s %s not synced: %s", event.type, event.action, exc)
            return False

    async def _describe(self, event: WebhookEvent) -> tuple[str, str] | None:
        if event.type == "Comment" and event.action == "create":
            return await self._describe_comment(event.data)
        if event.type == "Issue" and event.action == "update":
            return await self._describe_issue_update(event.data, event.updated_from or {})
        return None

    async def _describe_comment(self, data: dict) -> tuple[str, str] | None:
        body = str(data.get("body") or "").strip()
        if not body:
            return None
        issue_node = data.get("issue") or {}
        identifier = issue_node.get("identifier")
        if not identifier:
            issue_id = data.get("issueId") or issue_node.get("id")
            if not issue_id:
                return None
            identifier = (await self._tracker.get_issue(issue_id)).identifier
        author = (data.get("user") or {}).get("name") or "Someone"
        return identifier, f"💬 *{author}* commented on {identifier}:\n{body}"

    async def _describe_issue_update(self, data: dict, updated_from: dict) -> tuple[str, str] | None:
        state_changed = "stateId" in updated_from
        assignee_changed = "assigneeId" in updated_from
        if not state_changed and not assignee_changed:
            return None

        identifier = data.get("identifier")
        state_name = (data.get("state") or {}).get("name")
        assignee_name = (data.get("assignee") or {}).get("name")
        needs_fetch = (
            not identifier
            or (state_changed and not state_name)
            or (assignee_changed and data.get("assigneeId") and not assignee_name)
        )
        if needs_fetch:
            if not data.get("id"):
                return None
            issue: Issue = await self._tracker.get_issue(data["id"])
            identifier = issue.identifier
            state_name = state_name or issue.state
            assignee_name = assignee_name or issue.assignee

        lines = []
        if state_changed:
            lines.append(f"🔄 {identifier} moved to *{state_name}*")
        if assignee_changed:
            lines.append(f"👤 {identifier} assigned to *{assignee_name or 'Unassigned'}*")
        return identifier, "\n".join(lines)

    async def resolve_anchor(self, identifier: str) -> ThreadAnchor | None:
        """Stored mapping first; otherwise search Slack and write the hit back."""
        anchor = self._store.get(identifier)
        if anchor is not None:
            return anchor
        return await self._search_anchor(identifier)

    async def _search_anchor(self, identifier: str, exclude: ThreadAnchor | None = None) -> ThreadAnchor | None:
        try:
            match = await self._chat.search_latest(f'"{identifier}"')
        except UpstreamFailure as exc:
            logger.warning("Slack search for %s failed: %s", identifier, exc)
            return None
        if match is None or not match.channel_id:
            return None
        anchor = ThreadAnchor(channel_id=match.channel_id, thread_ts=match.thread_ts or match.ts)
        if anchor == exclude:
            return None
        self._store.set(identifier, anchor)
        return anchor

    async def _post(self, identifier: str, anchor: ThreadAnchor, text: str) -> bool:
        try:
            await self._chat.post_message(anchor.channel_id, text, thread_ts=anchor.thread_ts)
            return True
        except UpstreamFailure as exc:
            if exc.code not in STALE_ANCHOR_CODES:
                raise
            logger.info("Thread for %s is gone (%s); searching for another", identifier, exc.code)

        fresh = await self._search_anchor(identifier, exclude=anchor)
        if fresh is None:
            return False
        await self._chat.post_message(fresh.channel_id, text, thread_ts=fresh.thread_ts)
        return True
