"""Cross-system user resolution: Slack handles and ids ↔ Linear users."""

import logging
import re

from threadsync.errors import UpstreamFailure
from threadsync.models import ChatUser, TrackerUser
from threadsync.providers.base import ChatProvider, TicketProvider

logger = logging.getLogger(__name__)

# <@U123ABC> or <@U123ABC|jane>
_MENTION_RE = re.compile(r"^<@([A-Z0-9]+)(?:\|[^>]*)?>$")


def is_handle_token(token: str) -> bool:
    return token.startswith("@") or token.startswith("<@")


class UserResolver:
    def __init__(self, tracker: TicketProvider, chat: ChatProvider, directory_page_limit: int = 10) -> None:
        self._tracker = tracker
        self._chat = chat
        self._directory_page_limit = directory_page_limit

    async def by_email(self, email: str) -> TrackerUser | None:
        return await self._tracker.user_by_email(email)

    async def by_chat_id(self, user_id: str) -> str | None:
        """Email on the Slack profile of user_id."""
        user = await self._chat.get_user(user_id)
        return user.email if user else None

    async def tracker_user_for(self, chat_user_id: str) -> TrackerUser | None:
        email = await self.by_chat_id(chat_user_id)
        if not email:
            return None
        return await self.by_email(email)

    async def display_name(self, chat_user_id: str) -> str:
        user = await self._chat.get_user(chat_user_id)
        return user.label if user else chat_user_id

    async def by_handle_token(self, token: str) -> str | None:
        """Resolve <@U123> or @handle to a Slack user id.

        An explicit mention parses without any API call. A plain handle walks
        the workspace directory, bounded by directory_page_limit pages, and
        matches case-insensitively against name, display name and real name.
        """
        token = token.strip()
        mention = _MENTION_RE.match(token)
        if mention:
            return mention.group(1)
        if not token.startswith("@"):
            return None
        handle = token[1:].strip().lower()
        if not handle:
            return None

        try:
            async for user in self._chat.iter_directory(self._directory_page_limit):
                if _matches(user, handle):
                    return user.id
        except UpstreamFailure as exc:
            logger.warning("User directory unavailable while resolving @%s: %s", handle, exc)
            return None
        logger.info("No Slack user matched @%s", handle)
        return None


def _matches(user: ChatUser, handle: str) -> bool:
    candidates = (user.name, user.display_name, user.real_name)
    return any(c and handle in (c.lower(), c.lower().replace(" ", "")) for c in candidates)
