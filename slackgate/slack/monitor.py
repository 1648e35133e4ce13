"""Inbound Slack event handling.

Payloads from the Events API and from interactive components pass through
the identity filter first; payloads for another app or workspace are
dropped before any session logic sees them. Surviving message events are
normalized and forwarded to the runtime's callbacks.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from .config import SlackConfig
from .identity import (
    IdentityClaim,
    extract_api_app_id,
    extract_team_id,
    should_drop_mismatched_event,
)

logger = logging.getLogger(__name__)

MESSAGE_EVENT_TYPES = ("message", "app_mention")

# Subtypes that still carry a user-authored message.
_FORWARDED_SUBTYPES = (None, "file_share", "thread_broadcast")

_MENTION = re.compile(r"<@([UW][A-Z0-9]+)(?:\|[^>]*)?>")


@dataclass
class SlackMonitorContext:
    """Per-session state of a Slack monitor.

    Attributes:
        api_app_id: Expected app id of inbound payloads.
        team_id: Expected workspace id of inbound payloads.
        bot_user_id: The bot's own user id, used to skip its own messages.
        allowed_channel_types: Channel types messages are forwarded from.
        media_max_bytes: Download cap handed to file actions.
    """

    api_app_id: Optional[str] = None
    team_id: Optional[str] = None
    bot_user_id: Optional[str] = None
    allowed_channel_types: list[str] = field(
        default_factory=lambda: ["im", "mpim", "channel", "group"]
    )
    media_max_bytes: int = 20 * 1024 * 1024

    @classmethod
    def from_config(
        cls, config: SlackConfig, bot_user_id: Optional[str] = None
    ) -> "SlackMonitorContext":
        return cls(
            api_app_id=config.api_app_id,
            team_id=config.team_id,
            bot_user_id=bot_user_id,
            allowed_channel_types=list(config.allowed_channel_types),
            media_max_bytes=config.media_max_bytes,
        )

    @property
    def identity(self) -> IdentityClaim:
        return IdentityClaim(app_id=self.api_app_id, team_id=self.team_id)

    def is_channel_type_allowed(self, channel_type: str) -> bool:
        return channel_type in self.allowed_channel_types

    def should_drop_mismatched_event(self, body: Any) -> bool:
        """Return True when ``body`` belongs to another app or workspace."""
        if not should_drop_mismatched_event(body, self.identity):
            return False
        logger.debug(
            "slack: drop event with api_app_id=%s team_id=%s (expected %s/%s)",
            extract_api_app_id(body),
            extract_team_id(body),
            self.api_app_id or "-",
            self.team_id or "-",
        )
        return True


@dataclass
class SlackInboundMessage:
    """A user message received from Slack, normalized for the runtime."""

    channel_id: str
    user_id: str
    text: str
    ts: str
    thread_ts: Optional[str] = None
    channel_type: str = "unknown"
    team_id: Optional[str] = None
    event_type: str = "message"
    mentions: list[str] = field(default_factory=list)
    files: list[dict[str, Any]] = field(default_factory=list)

    @property
    def reply_thread_ts(self) -> str:
        """Thread to reply in: the existing thread, or a new one on this message."""
        return self.thread_ts or self.ts


MessageCallback = Callable[[SlackInboundMessage], Awaitable[Any]]
InteractionCallback = Callable[[dict[str, Any]], Awaitable[Any]]


def normalize_message(event: dict[str, Any], team_id: Optional[str] = None) -> SlackInboundMessage:
    """Convert a Slack ``message``/``app_mention`` event to a SlackInboundMessage."""
    text = event.get("text") or ""
    files = [
        {"id": f.get("id"), "name": f.get("name"), "mimetype": f.get("mimetype")}
        for f in event.get("files") or []
        if isinstance(f, dict)
    ]
    return SlackInboundMessage(
        channel_id=event.get("channel", ""),
        user_id=event.get("user", ""),
        text=text,
        ts=event.get("ts", ""),
        thread_ts=event.get("thread_ts"),
        channel_type=event.get("channel_type", "unknown"),
        team_id=event.get("team") or team_id,
        event_type=event.get("type", "message"),
        mentions=_MENTION.findall(text),
        files=files,
    )


class SlackEventHandler:
    """Routes inbound Slack payloads to the runtime.

    Example:
        >>> handler = SlackEventHandler(context)
        >>> handler.set_message_callback(on_message)
        >>> await handler.handle_event(body)
    """

    def __init__(
        self,
        context: SlackMonitorContext,
        message_callback: Optional[MessageCallback] = None,
        interaction_callback: Optional[InteractionCallback] = None,
    ) -> None:
        self._context = context
        self._message_callback = message_callback
        self._interaction_callback = interaction_callback

    @property
    def context(self) -> SlackMonitorContext:
        return self._context

    def set_message_callback(self, callback: MessageCallback) -> None:
        self._message_callback = callback

    def set_interaction_callback(self, callback: InteractionCallback) -> None:
        self._interaction_callback = callback

    async def handle_event(self, body: dict[str, Any]) -> bool:
        """Handle an Events API envelope.

        Returns:
            True if a message was forwarded to the message callback.
        """
        if self._context.should_drop_mismatched_event(body):
            return False

        if body.get("type") != "event_callback":
            logger.debug("Ignoring envelope type: %s", body.get("type"))
            return False

        event = body.get("event")
        if not isinstance(event, dict):
            return False

        if event.get("type") not in MESSAGE_EVENT_TYPES:
            logger.debug("Ignoring event type: %s", event.get("type"))
            return False

        return await self._handle_message(event, extract_team_id(body))

    async def handle_interaction(self, body: dict[str, Any]) -> bool:
        """Handle an interactive component payload (block actions, views).

        Returns:
            True if the payload was forwarded to the interaction callback.
        """
        if self._context.should_drop_mismatched_event(body):
            return False

        if self._interaction_callback is None:
            logger.warning("No interaction callback configured")
            return False

        await self._interaction_callback(body)
        return True

    async def _handle_message(self, event: dict[str, Any], team_id: Optional[str]) -> bool:
        # Ignore bot messages to prevent loops
        if event.get("bot_id") or event.get("subtype") == "bot_message":
            logger.debug("Ignoring bot message")
            return False

        if event.get("subtype") not in _FORWARDED_SUBTYPES:
            logger.debug("Ignoring message subtype: %s", event.get("subtype"))
            return False

        user_id = event.get("user")
        if not user_id or user_id == self._context.bot_user_id:
            return False

        # app_mention events carry no channel_type
        if event.get("type") == "app_mention" and "channel_type" not in event:
            event = {**event, "channel_type": "channel"}

        channel_type = event.get("channel_type", "")
        if not self._context.is_channel_type_allowed(channel_type):
            logger.debug("Ignoring message in disallowed channel type: %s", channel_type)
            return False

        if self._message_callback is None:
            logger.warning("No message callback configured")
            return False

        await self._message_callback(normalize_message(event, team_id))
        return True
