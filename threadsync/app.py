"""Wiring: Bolt socket-mode app, the Linear webhook endpoint, and the serve loop."""

import asyncio
import logging

from aiohttp import web
from pydantic import ValidationError
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.async_app import AsyncApp
from slack_sdk.web.async_client import AsyncWebClient

from threadsync.blocks import ACTION_ASSIGN_SELF, ACTION_ASSIGN_USER, ACTION_MARK_DONE, ACTION_VIEW
from threadsync.commands import CommandHandlers
from threadsync.listing import ListingEngine
from threadsync.models import WebhookEvent
from threadsync.providers.base import ChatProvider, TicketProvider
from threadsync.providers.linear import LinearProvider
from threadsync.providers.slack import SlackProvider
from threadsync.settings import BridgeSettings
from threadsync.store import MappingStore
from threadsync.sync import SyncRouter
from threadsync.users import UserResolver

logger = logging.getLogger(__name__)

PENDING_WEBHOOKS = web.AppKey("pending_webhooks", set)


class Bridge:
    """All components of one running bridge, sharing the same providers and store."""

    def __init__(
        self,
        settings: BridgeSettings,
        tracker: TicketProvider,
        chat: ChatProvider,
        store: MappingStore,
    ) -> None:
        self.settings = settings
        self.tracker = tracker
        self.chat = chat
        self.store = store
        self.users = UserResolver(tracker, chat, settings.directory_page_limit)
        self.router = SyncRouter(tracker, chat, store, self.users)
        self.listing = ListingEngine(tracker)
        self.commands = CommandHandlers(settings, tracker, chat, store, self.users, self.listing)


def register_handlers(app: AsyncApp, bridge: Bridge) -> None:
    """Register commands, actions and the thread-reply listener on the Bolt app."""
    settings = bridge.settings

    @app.command(settings.create_command)
    async def handle_create(ack, command, respond) -> None:
        await ack()
        logger.debug("Command %s: %s", command.get("command"), command.get("text"))
        await bridge.commands.create_issue(command, respond)

    @app.command(settings.list_command)
    async def handle_list(ack, command, respond) -> None:
        await ack()
        await bridge.commands.list_issues(command, respond)

    @app.action(ACTION_VIEW)
    async def handle_view(ack) -> None:
        # Link buttons still deliver an action payload that must be acknowledged
        await ack()

    @app.action(ACTION_ASSIGN_SELF)
    async def handle_assign_self(ack, body) -> None:
        await ack()
        await bridge.commands.assign_to_self(body)

    @app.action(ACTION_ASSIGN_USER)
    async def handle_assign_user(ack, body) -> None:
        await ack()
        await bridge.commands.assign_to_user(body)

    @app.action(ACTION_MARK_DONE)
    async def handle_mark_done(ack, body) -> None:
        await ack()
        await bridge.commands.mark_done(body)

    @app.event("message")
    async def handle_message(event) -> None:
        await bridge.router.handle_chat_message(event)


async def _process_webhook(router: SyncRouter, event: WebhookEvent) -> None:
    try:
        await router.handle_webhook(event)
    except Exception:
        logger.exception("Unhandled error while processing %s %s webhook", event.type, event.action)


def create_webhook_app(router: SyncRouter, path: str) -> web.Application:
    """aiohttp app that acknowledges every delivery at once and syncs in the background."""
    app = web.Application()
    app[PENDING_WEBHOOKS] = set()

    async def handle_webhook(request: web.Request) -> web.Response:
        try:
            payload = await request.json()
            event = WebhookEvent.model_validate(payload)
        except (ValueError, ValidationError) as exc:
            logger.warning("Ignoring malformed webhook delivery: %s", exc)
            return web.Response(status=200)

        task = asyncio.create_task(_process_webhook(router, event))
        app[PENDING_WEBHOOKS].add(task)
        task.add_done_callback(app[PENDING_WEBHOOKS].discard)
        return web.Response(status=200)

    app.router.add_post(path, handle_webhook)
    return app


async def serve(settings: BridgeSettings) -> None:
    """Run the socket-mode Slack app and the webhook HTTP server until cancelled."""
    bolt = AsyncApp(token=settings.slack_bot_token.get_secret_value())
    user_client = (
        AsyncWebClient(token=settings.slack_user_token.get_secret_value()) if settings.slack_user_token else None
    )
    if user_client is None:
        logger.warning("No Slack user token configured; thread search fallback is disabled")

    tracker = LinearProvider(settings)
    chat = SlackProvider(bolt.client, user_client)
    bridge = Bridge(settings, tracker, chat, MappingStore(settings.mapping_path))
    register_handlers(bolt, bridge)

    runner = web.AppRunner(create_webhook_app(bridge.router, settings.webhook_path))
    await runner.setup()
    site = web.TCPSite(runner, settings.webhook_host, settings.webhook_port)
    await site.start()
    logger.info(
        "Webhook endpoint listening on %s:%s%s", settings.webhook_host, settings.webhook_port, settings.webhook_path
    )

    handler = AsyncSocketModeHandler(bolt, settings.slack_app_token.get_secret_value())
    try:
        logger.info("⚡️ Slack app is running")
        await handler.start_async()
    finally:
        await runner.cleanup()
        await tracker.aclose()
