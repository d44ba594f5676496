"""Slash command and interactive action handlers."""

import logging
from collections.abc import Awaitable, Callable

from threadsync.blocks import (
    ACTION_MARK_DONE,
    decode_assignment,
    issue_card,
    patch_slot,
    remove_action,
    thread_notice,
)
from threadsync.errors import ConfigurationMissing, NotFound, SyncError
from threadsync.listing import ListingEngine, parse_list_args
from threadsync.models import ThreadAnchor
from threadsync.providers.base import ChatProvider, TicketProvider
from threadsync.settings import BridgeSettings
from threadsync.store import MappingStore
from threadsync.users import UserResolver

logger = logging.getLogger(__name__)

Respond = Callable[..., Awaitable[object]]

# Values this short are team keys (1SW), anything longer is taken as a team UUID.
TEAM_KEY_MAX_LEN = 5


async def _ephemeral(respond: Respond, text: str) -> None:
    await respond(text=text, response_type="ephemeral")


def _error_text(exc: SyncError) -> str:
    if getattr(exc, "code", None) == "channel_not_found":
        return "❌ The bot is not in this channel. Invite it with `/invite @<bot name>` and try again."
    return f"❌ Something went wrong: {exc}"


class CommandHandlers:
    def __init__(
        self,
        settings: BridgeSettings,
        tracker: TicketProvider,
        chat: ChatProvider,
        store: MappingStore,
        users: UserResolver,
        listing: ListingEngine,
    ) -> None:
        self._settings = settings
        self._tracker = tracker
        self._chat = chat
        self._store = store
        self._users = users
        self._listing = listing

    # ------------------------------------------------------------------
    # Slash commands
    # ------------------------------------------------------------------

    async def create_issue(self, command: dict, respond: Respond) -> None:
        title = (command.get("text") or "").strip()
        if not title:
            await _ephemeral(
                respond,
                f"❌ Please give the issue a title. Example: `{self._settings.create_command} Fix login redirect`",
            )
            return

        try:
            team_setting = self._settings.linear_team_id
            if not team_setting:
                raise ConfigurationMissing("linear_team_id is not configured")

            requester = await self._chat.get_user(command["user_id"])
            if requester is None or not requester.email:
                await _ephemeral(respond, "❌ No email address found on your Slack profile.")
                return
            tracker_user = await self._users.by_email(requester.email)
            if tracker_user is None:
                await _ephemeral(respond, f"❌ No Linear user found for {requester.email}.")
                return

            team_id = await self._team_id(team_setting)
            cycle = await self._tracker.current_cycle(team_id)
            logger.debug("Current cycle for %s: %s", team_id, cycle.number if cycle else None)

            created = await self._tracker.create_issue(
                title=title,
                team_id=team_id,
                assignee_id=tracker_user.id,
                cycle_id=cycle.id if cycle else None,
            )
            members = await self._tracker.list_users()
            blocks = issue_card(
                created,
                assignee=tracker_user.name,
                build=cycle.build_label if cycle else "None",
                state="Todo",
                users=members,
            )

            channel_id = command["channel_id"]
            root_ts = await self._chat.post_message(
                channel_id, f"✅ New issue created: {created.identifier} {created.title}", blocks
            )
            self._store.set(created.identifier, ThreadAnchor(channel_id=channel_id, thread_ts=root_ts))
            await self._chat.post_message(
                channel_id, f"Syncing with {created.identifier}", thread_notice(created.identifier), thread_ts=root_ts
            )
            logger.info("Created %s for %s in %s", created.identifier, tracker_user.name, channel_id)
        except ConfigurationMissing as exc:
            await _ephemeral(respond, f"❌ Server configuration error: {exc}")
        except NotFound as exc:
            await _ephemeral(respond, f"❌ {exc}")
        except SyncError as exc:
            logger.warning("Issue creation failed: %s", exc)
            await _ephemeral(respond, _error_text(exc))

    async def _team_id(self, team_setting: str) -> str:
        if len(team_setting) > TEAM_KEY_MAX_LEN:
            return team_setting
        team = await self._tracker.resolve_team(team_setting)
        if team is None:
            raise NotFound(f"Linear team '{team_setting}' not found. Check the team key.")
        return team.id

    async def list_issues(self, command: dict, respond: Respond) -> None:
        request = parse_list_args(command.get("text") or "")
        try:
            if request.handle_tokens:
                chat_ids: list[str] = []
                for token in request.handle_tokens:
                    user_id = await self._users.by_handle_token(token)
                    if user_id is None:
                        await _ephemeral(respond, f"❌ Could not find Slack user {token}.")
                        return
                    chat_ids.append(user_id)
            else:
                chat_ids = [command["user_id"]]

            assignee_ids: list[str] = []
            owners: list[str] = []
            for user_id in dict.fromkeys(chat_ids):
                tracker_user = await self._users.tracker_user_for(user_id)
                if tracker_user is None:
                    await _ephemeral(respond, f"❌ No Linear user matches the email of <@{user_id}>.")
                    return
                assignee_ids.append(tracker_user.id)
                owners.append(tracker_user.name)

            listing = await self._listing.build_listing(
                assignee_ids, owners, by_tag=request.by_tag, tag_filter=request.tag_filter
            )
            channel_id = command["channel_id"]
            summary_ts = await self._chat.post_message(channel_id, listing.summary_text, listing.summary_blocks)
            await self._chat.post_message(
                channel_id, listing.detail_text, listing.detail_blocks, thread_ts=summary_ts
            )
        except SyncError as exc:
            logger.warning("Issue listing failed: %s", exc)
            await _ephemeral(respond, _error_text(exc))

    # ------------------------------------------------------------------
    # Interactive actions
    # ------------------------------------------------------------------

    async def assign_to_self(self, body: dict) -> None:
        try:
            issue_id = body["actions"][0].get("value")
            if not issue_id:
                return
            tracker_user = await self._users.tracker_user_for(body["user"]["id"])
            if tracker_user is None:
                logger.info("No Linear user for Slack user %s", body["user"]["id"])
                return
            await self._tracker.update_issue(issue_id, assignee_id=tracker_user.id)
            await self._patch_card(body, "assignee", tracker_user.name, f"✅ Assignee changed: {tracker_user.name}")
        except SyncError as exc:
            logger.warning("assign_to_self failed: %s", exc)

    async def assign_to_user(self, body: dict) -> None:
        try:
            option = body["actions"][0].get("selected_option") or {}
            if not option.get("value"):
                return
            issue_id, user_id = decode_assignment(option["value"])
            user_name = (option.get("text") or {}).get("text") or user_id
            await self._tracker.update_issue(issue_id, assignee_id=user_id)
            await self._patch_card(body, "assignee", user_name, f"✅ Assignee changed: {user_name}")
        except SyncError as exc:
            logger.warning("assign_to_user failed: %s", exc)

    async def mark_done(self, body: dict) -> None:
        try:
            issue_id = body["actions"][0].get("value")
            if not issue_id:
                return
            done = await self._tracker.done_state(issue_id)
            if done is None:
                logger.warning("No completed workflow state for issue %s", issue_id)
                return
            await self._tracker.update_issue(issue_id, state_id=done.id)
            await self._patch_card(body, "state", done.name, f"✅ Issue done: {done.name}", remove=ACTION_MARK_DONE)
        except SyncError as exc:
            logger.warning("mark_done failed: %s", exc)

    async def _patch_card(self, body: dict, slot: str, value: str, text: str, remove: str | None = None) -> None:
        """Rewrite one slot of the issue card the action was triggered from."""
        channel_id = (body.get("channel") or {}).get("id")
        message = body.get("message") or {}
        ts = message.get("ts")
        if not channel_id or not ts:
            return

        thread_ts = message.get("thread_ts")
        blocks = message.get("blocks") or []
        if thread_ts and thread_ts != ts:
            root = await self._chat.fetch_message(channel_id, thread_ts)
            if root is None:
                return
            ts, blocks = root.ts, root.blocks

        patched = patch_slot(blocks, slot, value)
        if remove:
            patched = remove_action(patched, remove)
        await self._chat.update_message(channel_id, ts, text, patched)
