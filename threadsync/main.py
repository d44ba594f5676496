"""threadsync CLI commands."""

import asyncio
import logging
from typing import Annotated

import typer
from rich import print as rprint
from rich.logging import RichHandler
from rich.table import Table

from threadsync.app import serve
from threadsync.errors import ParseError
from threadsync.identifiers import split
from threadsync.models import ThreadAnchor
from threadsync.settings import get_settings
from threadsync.store import MappingStore

app = typer.Typer(help="threadsync: keep Slack threads and Linear issues in sync", no_args_is_help=True)

ProfileOpt = Annotated[
    str | None,
    typer.Option("--profile", "-p", help="Profile name from ~/.config/threadsync/config.toml"),
]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)],
    )


@app.command("serve")
def serve_cmd(profile: ProfileOpt = None) -> None:
    """Run the Slack bot and the Linear webhook endpoint."""
    settings = get_settings(profile=profile)
    _configure_logging(settings.log_level)
    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        rprint("[dim]Stopped.[/dim]")


@app.command("config-show")
def config_show(profile: ProfileOpt = None) -> None:
    """Show resolved configuration (masks credentials)."""
    settings = get_settings(profile=profile, require_credentials=False)

    def mask(val: str | None, prefix: str = "") -> str:
        if val is None:
            return "[dim](not set)[/dim]"
        if len(val) <= 5:
            return "***"
        return f"{prefix}...{val[-5:]}"

    def secret(name: str, prefix: str) -> str:
        value = getattr(settings, name)
        return mask(value.get_secret_value() if value else None, prefix=prefix)

    table = Table(title="threadsync Configuration")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("slack_bot_token", secret("slack_bot_token", "xoxb-"))
    table.add_row("slack_app_token", secret("slack_app_token", "xapp-"))
    table.add_row("slack_user_token", secret("slack_user_token", "xoxp-"))
    table.add_row("linear_api_key", secret("linear_api_key", "lin_api_"))
    table.add_row("linear_team_id", settings.linear_team_id or "[dim](not set)[/dim]")
    table.add_row("mapping_path", str(settings.mapping_path))
    table.add_row("webhook", f"{settings.webhook_host}:{settings.webhook_port}{settings.webhook_path}")
    table.add_row("commands", f"{settings.create_command}  {settings.list_command}")

    rprint(table)


@app.command("mappings")
def mappings(profile: ProfileOpt = None) -> None:
    """List stored issue → thread mappings."""
    settings = get_settings(profile=profile, require_credentials=False)
    table_data = MappingStore(settings.mapping_path).all()

    table = Table(title="Issue Threads")
    table.add_column("Issue", style="cyan")
    table.add_column("Channel")
    table.add_column("Thread", style="dim")

    for identifier, anchor in sorted(table_data.items()):
        table.add_row(identifier, anchor.channel_id, anchor.thread_ts)

    rprint(table)


@app.command("map")
def map_cmd(
    identifier: Annotated[str, typer.Argument(help="Issue identifier (e.g. 1SW-42)")],
    channel_id: Annotated[str, typer.Argument(help="Slack channel ID")],
    thread_ts: Annotated[str, typer.Argument(help="Timestamp of the thread's root message")],
    profile: ProfileOpt = None,
) -> None:
    """Point an issue at a Slack thread, replacing any existing mapping."""
    try:
        split(identifier)
    except ParseError as exc:
        rprint(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    settings = get_settings(profile=profile, require_credentials=False)
    MappingStore(settings.mapping_path).set(identifier, ThreadAnchor(channel_id=channel_id, thread_ts=thread_ts))
    rprint(f"[green]✓[/green] [bold]{identifier}[/bold] → {channel_id}/{thread_ts}")
