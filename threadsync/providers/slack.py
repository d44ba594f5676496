"""Slack Web API provider."""

import logging
from collections.abc import AsyncIterator
from urllib.parse import parse_qs, urlparse

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from threadsync.errors import UpstreamFailure
from threadsync.models import ChatMessage, ChatUser
from threadsync.providers.base import ChatProvider

logger = logging.getLogger(__name__)

DIRECTORY_PAGE_SIZE = 200


def _upstream(exc: SlackApiError) -> UpstreamFailure:
    code = exc.response.get("error") if exc.response is not None else None
    return UpstreamFailure(f"Slack API error: {code or exc}", code=code)


def _thread_ts_from_permalink(permalink: str | None) -> str | None:
    """Search matches only expose the thread root through the permalink query string."""
    if not permalink:
        return None
    values = parse_qs(urlparse(permalink).query).get("thread_ts")
    return values[0] if values else None


class SlackProvider(ChatProvider):
    def __init__(self, client: AsyncWebClient, user_client: AsyncWebClient | None = None) -> None:
        self._client = client
        self._user_client = user_client

    async def post_message(
        self,
        channel_id: str,
        text: str,
        blocks: list[dict] | None = None,
        thread_ts: str | None = None,
    ) -> str:
        kwargs: dict = {"channel": channel_id, "text": text}
        if blocks is not None:
            kwargs["blocks"] = blocks
        if thread_ts is not None:
            kwargs["thread_ts"] = thread_ts
        try:
            response = await self._client.chat_postMessage(**kwargs)
        except SlackApiError as exc:
            raise _upstream(exc) from exc
        ts = response.get("ts")
        if not ts:
            raise UpstreamFailure("Slack chat.postMessage returned no ts")
        return ts

    async def update_message(self, channel_id: str, ts: str, text: str, blocks: list[dict]) -> None:
        try:
            await self._client.chat_update(channel=channel_id, ts=ts, text=text, blocks=blocks)
        except SlackApiError as exc:
            raise _upstream(exc) from exc

    async def fetch_message(self, channel_id: str, ts: str) -> ChatMessage | None:
        """Fetch a single message by ts (the root of a thread when ts is a thread_ts)."""
        try:
            response = await self._client.conversations_replies(
                channel=channel_id, ts=ts, latest=ts, limit=1, inclusive=True
            )
        except SlackApiError as exc:
            raise _upstream(exc) from exc
        messages = response.get("messages") or []
        if not messages:
            return None
        msg = messages[0]
        return ChatMessage(
            ts=msg["ts"],
            text=msg.get("text", ""),
            user=msg.get("user"),
            channel_id=channel_id,
            thread_ts=msg.get("thread_ts"),
            bot_id=msg.get("bot_id"),
            blocks=msg.get("blocks") or [],
        )

    async def search_latest(self, query: str) -> ChatMessage | None:
        """Most recent message matching query, or None when search is unavailable."""
        if self._user_client is None:
            logger.debug("No user token configured; skipping message search for %s", query)
            return None
        try:
            response = await self._user_client.search_messages(
                query=query, sort="timestamp", sort_dir="desc", count=1
            )
        except SlackApiError as exc:
            raise _upstream(exc) from exc
        matches = (response.get("messages") or {}).get("matches") or []
        if not matches:
            return None
        match = matches[0]
        return ChatMessage(
            ts=match["ts"],
            text=match.get("text", ""),
            user=match.get("user"),
            channel_id=(match.get("channel") or {}).get("id"),
            thread_ts=_thread_ts_from_permalink(match.get("permalink")),
        )

    @staticmethod
    def _user_from_member(member: dict) -> ChatUser:
        profile = member.get("profile") or {}
        return ChatUser(
            id=member["id"],
            name=member.get("name", ""),
            display_name=profile.get("display_name", ""),
            real_name=member.get("real_name") or profile.get("real_name", ""),
            email=profile.get("email"),
            is_bot=bool(member.get("is_bot")),
        )

    async def get_user(self, user_id: str) -> ChatUser | None:
        try:
            response = await self._client.users_info(user=user_id)
        except SlackApiError as exc:
            if exc.response.get("error") == "user_not_found":
                return None
            raise _upstream(exc) from exc
        member = response.get("user")
        return self._user_from_member(member) if member else None

    async def iter_directory(self, max_pages: int) -> AsyncIterator[ChatUser]:
        """Yield workspace members page by page, stopping after max_pages."""
        cursor: str | None = None
        for _ in range(max_pages):
            kwargs: dict = {"limit": DIRECTORY_PAGE_SIZE}
            if cursor:
                kwargs["cursor"] = cursor
            try:
                response = await self._client.users_list(**kwargs)
            except SlackApiError as exc:
                raise _upstream(exc) from exc
            for member in response.get("members") or []:
                yield self._user_from_member(member)
            cursor = (response.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                return
