"""
slackgate - Command Line Interface

Operator commands for the Slack action layer. Built with Typer for the
command line and Rich for output.

Usage:
    $ slackgate --help
    $ slackgate download F0123ABCD --channel C0123 --thread 1712345678.000100
    $ slackgate read C0123 --thread 1712345678.000100 --limit 20
    $ slackgate react C0123 1712345678.000100 eyes
    $ slackgate pins C0123

Credentials come from SLACK_BOT_TOKEN / SLACK_ACCOUNTS (see .env), or
from --token for a single invocation.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Coroutine, Optional

import typer
from slack_sdk.errors import SlackApiError

from slackgate import __version__
from slackgate.config.settings import settings
from slackgate.slack.actions import SlackActions
from slackgate.slack.errors import SlackActionError, SlackConfigError

from .output import (
    console,
    format_bytes,
    print_error,
    print_json,
    print_key_value,
    print_success,
    print_table,
    print_warning,
)

app = typer.Typer(
    name="slackgate",
    help="slackgate - Slack actions for chat-bot runtimes",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"slackgate version {__version__}")
        raise typer.Exit()


def verbose_callback(value: bool) -> None:
    """Set verbose mode."""
    if value:
        logging.basicConfig(level=logging.DEBUG)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        callback=verbose_callback,
        help="Enable debug logging.",
    ),
) -> None:
    """
    slackgate - Slack actions for chat-bot runtimes

    Use --help on any command for detailed information.
    """
    pass


def _build_actions(token: Optional[str], account: Optional[str]) -> SlackActions:
    try:
        return SlackActions(token=token, account_id=account)
    except SlackConfigError as e:
        print_error(str(e), hint="Set SLACK_BOT_TOKEN in .env or pass --token.")
        raise typer.Exit(1)


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    try:
        return asyncio.run(coro)
    except SlackApiError as e:
        print_error("Slack API call failed", details=str(e.response.get("error", e)))
        raise typer.Exit(1)
    except (SlackActionError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)


@app.command()
def download(
    file_id: str = typer.Argument(..., help="Slack file id (F...)."),
    channel: Optional[str] = typer.Option(
        None, "--channel", "-c", help="Conversation the file must be shared in."
    ),
    thread: Optional[str] = typer.Option(
        None, "--thread", "-t", help="Thread timestamp the file must be shared in."
    ),
    max_bytes: Optional[int] = typer.Option(
        None, "--max-bytes", min=1, help="Size cap in bytes (default: SLACK_MEDIA_MAX_BYTES)."
    ),
    token: Optional[str] = typer.Option(None, "--token", help="Bot token override."),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account id."),
) -> None:
    """Download a Slack file into the local media directory."""
    actions = _build_actions(token, account)
    result = _run(
        actions.download_file(
            file_id,
            max_bytes=max_bytes if max_bytes is not None else settings.SLACK_MEDIA_MAX_BYTES,
            channel_id=channel,
            thread_id=thread,
        )
    )
    if result is None:
        print_warning(
            f"File {file_id} not found",
            details="It has no private URL, is not shared in this conversation, or could not be downloaded.",
        )
        raise typer.Exit(1)

    print_success(f"Downloaded {file_id}")
    print_key_value(
        [
            ("Path", result.path),
            ("Content type", result.content_type or "-"),
            ("Size", format_bytes(os.path.getsize(result.path))),
        ]
    )


@app.command()
def read(
    channel: str = typer.Argument(..., help="Channel id."),
    thread: Optional[str] = typer.Option(None, "--thread", "-t", help="Read replies of this thread."),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum messages."),
    before: Optional[str] = typer.Option(None, "--before", help="Only messages before this ts."),
    after: Optional[str] = typer.Option(None, "--after", help="Only messages after this ts."),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON."),
    token: Optional[str] = typer.Option(None, "--token", help="Bot token override."),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account id."),
) -> None:
    """Read channel history or thread replies."""
    actions = _build_actions(token, account)
    page = _run(
        actions.read_messages(channel, limit=limit, before=before, after=after, thread_id=thread)
    )

    if as_json:
        print_json({"messages": page.messages, "hasMore": page.has_more})
        return

    rows = [
        [
            m.get("ts", ""),
            m.get("user", m.get("bot_id", "")),
            (m.get("text") or "").replace("\n", " "),
            str(m.get("reply_count", "")),
        ]
        for m in page.messages
    ]
    print_table(
        f"Messages in {channel}" + (f" (thread {thread})" if thread else ""),
        ["ts", "user", "text", "replies"],
        rows,
        styles=["dim", "cyan", None, "dim"],
        max_width=80,
    )
    if page.has_more:
        console.print("[dim]More messages available.[/dim]")


@app.command()
def react(
    channel: str = typer.Argument(..., help="Channel id."),
    message_id: str = typer.Argument(..., help="Message timestamp."),
    emoji: Optional[str] = typer.Argument(None, help="Emoji name, with or without colons."),
    remove: bool = typer.Option(
        False, "--remove", "-r", help="Remove the reaction (all of the bot's when no emoji given)."
    ),
    token: Optional[str] = typer.Option(None, "--token", help="Bot token override."),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account id."),
) -> None:
    """Add or remove a reaction on a message."""
    actions = _build_actions(token, account)

    if remove and not emoji:
        removed = _run(actions.remove_own_reactions(channel, message_id))
        if removed:
            print_success("Removed reactions", details=", ".join(removed))
        else:
            print_warning("No reactions from the bot on this message")
        return

    if remove:
        _run(actions.remove_reaction(channel, message_id, emoji or ""))
        print_success(f"Removed :{emoji.strip(':')}:")
    else:
        _run(actions.react(channel, message_id, emoji or ""))
        print_success(f"Added :{(emoji or '').strip(':')}:")


@app.command()
def pins(
    channel: str = typer.Argument(..., help="Channel id."),
    token: Optional[str] = typer.Option(None, "--token", help="Bot token override."),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account id."),
) -> None:
    """List pinned items in a channel."""
    actions = _build_actions(token, account)
    items = _run(actions.list_pins(channel))

    rows = []
    for item in items:
        message = item.get("message") or {}
        file = item.get("file") or {}
        rows.append(
            [
                item.get("type", ""),
                message.get("ts") or file.get("id", ""),
                (message.get("text") or file.get("name") or "").replace("\n", " "),
            ]
        )
    print_table(f"Pins in {channel}", ["type", "id", "text"], rows, max_width=80)


if __name__ == "__main__":
    app()
