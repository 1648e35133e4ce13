"""Slack actions for chat-bot runtimes.

This module wraps the Slack Web API calls a runtime needs to act in a
workspace: messages, reactions, pins, history, member and emoji lookups,
and file downloads. Downloads are scope-checked against the file's share
metadata before any bytes are fetched.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from slackgate.config.accounts import resolve_bot_token, resolve_slack_account
from slackgate.config.settings import Settings

from .blocks import build_blocks_fallback_text, validate_blocks
from .client import create_slack_web_client
from .errors import SlackActionError, SlackConfigError
from .media import SlackMediaFile, SlackMediaResult, resolve_slack_media
from .scope import ScopeQuery, evaluate_scope_mismatch

if TYPE_CHECKING:
    from slack_sdk.web.async_client import AsyncWebClient

logger = logging.getLogger(__name__)

MediaResolver = Callable[..., Awaitable[list[SlackMediaResult]]]

_EMOJI_COLONS = re.compile(r"^:+|:+$")
_USER_MENTION = re.compile(r"^<@([UW][A-Z0-9]+)(?:\|[^>]*)?>$")


def normalize_emoji(raw: str) -> str:
    """Strip whitespace and surrounding colons from an emoji name.

    Raises:
        ValueError: If nothing is left.
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        raise ValueError("Emoji is required for Slack reactions")
    name = _EMOJI_COLONS.sub("", trimmed)
    if not name:
        raise ValueError("Emoji is required for Slack reactions")
    return name


@dataclass(frozen=True)
class SlackTarget:
    """Where an outbound message goes."""

    kind: str  # "channel" or "user"
    id: str


def parse_slack_target(raw: str) -> SlackTarget:
    """Parse a send target.

    Accepted forms: ``channel:C123``, ``user:U123``, ``<@U123>``, ``@U123``,
    ``#C123`` and a bare id (treated as a channel).

    Raises:
        ValueError: If the target is empty.
    """
    value = (raw or "").strip()
    if not value:
        raise ValueError("Recipient is required for Slack sends")

    mention = _USER_MENTION.match(value)
    if mention:
        return SlackTarget("user", mention.group(1))

    prefix, sep, rest = value.partition(":")
    if sep and prefix.lower() in ("channel", "user") and rest.strip():
        return SlackTarget(prefix.lower(), rest.strip())

    if value.startswith("@") and len(value) > 1:
        return SlackTarget("user", value[1:])
    if value.startswith("#") and len(value) > 1:
        return SlackTarget("channel", value[1:])
    return SlackTarget("channel", value)


@dataclass
class SlackMessagePage:
    """A page of channel or thread history."""

    messages: list[dict[str, Any]] = field(default_factory=list)
    has_more: bool = False


@dataclass(frozen=True)
class SlackSendResult:
    message_id: str
    channel_id: str


class SlackActions:
    """Slack Web API actions for one bot account.

    The bot token is resolved once at construction: an explicit ``token``
    wins, otherwise the token of ``account_id`` (or the default account)
    from settings. A preconfigured ``client`` is used as-is; otherwise an
    AsyncWebClient is created lazily on first use.

    Example:
        >>> actions = SlackActions(token="xoxb-...")
        >>> await actions.react("C123", "1712345678.000100", ":eyes:")
        >>> result = await actions.download_file("F123", max_bytes=1024, channel_id="C123")
    """

    def __init__(
        self,
        token: Optional[str] = None,
        account_id: Optional[str] = None,
        client: Optional[AsyncWebClient] = None,
        settings: Optional[Settings] = None,
        media_resolver: Optional[MediaResolver] = None,
    ) -> None:
        self._token = self._resolve_token(token, account_id, settings)
        self._client = client
        self._media_resolver = media_resolver or resolve_slack_media
        self._bot_user_id: Optional[str] = None

    @staticmethod
    def _resolve_token(
        explicit: Optional[str],
        account_id: Optional[str],
        settings: Optional[Settings],
    ) -> str:
        account = resolve_slack_account(account_id, settings)
        token = resolve_bot_token(explicit) or account.bot_token
        if not token:
            logger.debug(
                "slack actions: missing bot token for account=%s explicit=%s source=%s",
                account.account_id,
                explicit is not None,
                account.bot_token_source,
            )
            raise SlackConfigError(
                "SLACK_BOT_TOKEN or an account bot token is required for Slack actions"
            )
        return token

    @property
    def token(self) -> str:
        return self._token

    @property
    def client(self) -> AsyncWebClient:
        """The Web API client, created on first access."""
        if self._client is None:
            self._client = create_slack_web_client(self._token)
        return self._client

    async def _call_api(self, method: str, **kwargs: Any) -> dict[str, Any]:
        """Call a Slack API method by its dotted name (e.g. ``chat.update``)."""
        api_method = getattr(self.client, method.replace(".", "_"))
        response = await api_method(**kwargs)
        return dict(response.data)

    async def resolve_bot_user_id(self) -> str:
        """Return the bot's user id from ``auth.test``, cached after the first call."""
        if self._bot_user_id is None:
            auth = await self._call_api("auth.test")
            user_id = auth.get("user_id")
            if not user_id:
                raise SlackActionError("Failed to resolve Slack bot user id")
            self._bot_user_id = user_id
        return self._bot_user_id

    # -- reactions -----------------------------------------------------------

    async def react(self, channel_id: str, message_id: str, emoji: str) -> None:
        await self._call_api(
            "reactions.add",
            channel=channel_id,
            timestamp=message_id,
            name=normalize_emoji(emoji),
        )

    async def remove_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        await self._call_api(
            "reactions.remove",
            channel=channel_id,
            timestamp=message_id,
            name=normalize_emoji(emoji),
        )

    async def list_reactions(self, channel_id: str, message_id: str) -> list[dict[str, Any]]:
        result = await self._call_api(
            "reactions.get",
            channel=channel_id,
            timestamp=message_id,
            full=True,
        )
        message = result.get("message") or {}
        return list(message.get("reactions") or [])

    async def remove_own_reactions(self, channel_id: str, message_id: str) -> list[str]:
        """Remove every reaction the bot itself left on a message.

        Returns:
            The names of the removed reactions.
        """
        user_id = await self.resolve_bot_user_id()
        reactions = await self.list_reactions(channel_id, message_id)

        to_remove: list[str] = []
        for reaction in reactions:
            name = reaction.get("name")
            if not name or name in to_remove:
                continue
            if user_id in (reaction.get("users") or []):
                to_remove.append(name)

        if not to_remove:
            return []

        await asyncio.gather(
            *(
                self._call_api(
                    "reactions.remove",
                    channel=channel_id,
                    timestamp=message_id,
                    name=name,
                )
                for name in to_remove
            )
        )
        return to_remove

    # -- messages ------------------------------------------------------------

    async def send_message(
        self,
        to: str,
        content: str,
        thread_ts: Optional[str] = None,
        blocks: Optional[list[dict[str, Any]]] = None,
    ) -> SlackSendResult:
        """Post a message to a channel or, for user targets, to a DM.

        Raises:
            ValueError: If the target is empty, the blocks are invalid, or
                there is neither text nor blocks to send.
        """
        target = parse_slack_target(to)
        checked_blocks = None if blocks is None else validate_blocks(blocks)
        text = (content or "").strip()
        if not text and not checked_blocks:
            raise ValueError("Slack send requires text or blocks")

        channel_id = target.id
        if target.kind == "user":
            conv = await self._call_api("conversations.open", users=target.id)
            channel_id = conv["channel"]["id"]

        kwargs: dict[str, Any] = {
            "channel": channel_id,
            "text": text or build_blocks_fallback_text(checked_blocks or []),
        }
        if thread_ts:
            kwargs["thread_ts"] = thread_ts
        if checked_blocks:
            kwargs["blocks"] = checked_blocks

        result = await self._call_api("chat.postMessage", **kwargs)
        return SlackSendResult(
            message_id=result.get("ts", ""),
            channel_id=result.get("channel", channel_id),
        )

    async def edit_message(
        self,
        channel_id: str,
        message_id: str,
        content: str,
        blocks: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        checked_blocks = None if blocks is None else validate_blocks(blocks)
        text = (content or "").strip()
        if not text:
            text = build_blocks_fallback_text(checked_blocks) if checked_blocks else " "

        kwargs: dict[str, Any] = {"channel": channel_id, "ts": message_id, "text": text}
        if checked_blocks:
            kwargs["blocks"] = checked_blocks
        await self._call_api("chat.update", **kwargs)

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        await self._call_api("chat.delete", channel=channel_id, ts=message_id)

    async def read_messages(
        self,
        channel_id: str,
        limit: Optional[int] = None,
        before: Optional[str] = None,
        after: Optional[str] = None,
        thread_id: Optional[str] = None,
    ) -> SlackMessagePage:
        """Read channel history, or the replies of a thread.

        For threads the parent message is dropped so only replies are
        returned.
        """
        if thread_id:
            result = await self._call_api(
                "conversations.replies",
                channel=channel_id,
                ts=thread_id,
                limit=limit,
                latest=before,
                oldest=after,
            )
            messages = [
                m for m in result.get("messages") or [] if m.get("ts") != thread_id
            ]
            return SlackMessagePage(messages=messages, has_more=bool(result.get("has_more")))

        result = await self._call_api(
            "conversations.history",
            channel=channel_id,
            limit=limit,
            latest=before,
            oldest=after,
        )
        return SlackMessagePage(
            messages=list(result.get("messages") or []),
            has_more=bool(result.get("has_more")),
        )

    # -- lookups -------------------------------------------------------------

    async def get_member_info(self, user_id: str) -> dict[str, Any]:
        return await self._call_api("users.info", user=user_id)

    async def list_emojis(self) -> dict[str, Any]:
        return await self._call_api("emoji.list")

    # -- pins ----------------------------------------------------------------

    async def pin_message(self, channel_id: str, message_id: str) -> None:
        await self._call_api("pins.add", channel=channel_id, timestamp=message_id)

    async def unpin_message(self, channel_id: str, message_id: str) -> None:
        await self._call_api("pins.remove", channel=channel_id, timestamp=message_id)

    async def list_pins(self, channel_id: str) -> list[dict[str, Any]]:
        result = await self._call_api("pins.list", channel=channel_id)
        return list(result.get("items") or [])

    # -- files ---------------------------------------------------------------

    async def download_file(
        self,
        file_id: str,
        max_bytes: int,
        channel_id: Optional[str] = None,
        thread_id: Optional[str] = None,
    ) -> Optional[SlackMediaResult]:
        """Download a Slack file into the local media store.

        File metadata is fetched from ``files.info`` on every call, since
        private download URLs expire. Returns None when the file has no
        private URL, when its shares contradict ``channel_id``/``thread_id``,
        or when nothing could be downloaded.
        """
        info = await self._call_api("files.info", file=file_id)
        file = info.get("file")
        if not isinstance(file, Mapping):
            return None

        if not file.get("url_private_download") and not file.get("url_private"):
            return None

        if evaluate_scope_mismatch(file, ScopeQuery(channel_id=channel_id, thread_id=thread_id)):
            logger.debug(
                "slack download: file=%s outside scope channel=%s thread=%s",
                file_id,
                channel_id,
                thread_id,
            )
            return None

        results = await self._media_resolver(
            files=[
                SlackMediaFile(
                    id=file.get("id"),
                    name=file.get("name"),
                    mimetype=file.get("mimetype"),
                    url_private=file.get("url_private"),
                    url_private_download=file.get("url_private_download"),
                )
            ],
            token=self._token,
            max_bytes=max_bytes,
        )
        return results[0] if results else None
