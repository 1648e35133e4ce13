"""Runtime message actions mapped onto Slack actions.

The chat-bot runtime names actions in kebab-case (``download-file``) and
uses generic parameter names (``to``, ``replyTo``). This module translates
those into internal action dicts (``{"action": "downloadFile", ...}``) and
executes internal actions against :class:`SlackActions`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import asdict
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from .actions import SlackActions, parse_slack_target

if TYPE_CHECKING:
    from .monitor import SlackMonitorContext

logger = logging.getLogger(__name__)

Invoke = Callable[[dict[str, Any], Mapping[str, Any]], Awaitable[Any]]

SUPPORTED_ACTIONS = (
    "send",
    "react",
    "reactions",
    "edit",
    "delete",
    "read",
    "pin",
    "unpin",
    "list-pins",
    "member-info",
    "emoji-list",
    "download-file",
)


def _first(params: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        value = params.get(name)
        if isinstance(value, str):
            value = value.strip()
        if value not in (None, ""):
            return value
    return None


def _require(params: Mapping[str, Any], action: str, *names: str) -> Any:
    value = _first(params, *names)
    if value is None:
        raise ValueError(f"{action} requires {names[0]}")
    return value


def build_slack_action(action: str, params: Mapping[str, Any]) -> dict[str, Any]:
    """Translate a runtime action into an internal Slack action dict.

    Raises:
        ValueError: For unknown actions or missing required parameters.
    """
    if action not in SUPPORTED_ACTIONS:
        raise ValueError(f"Unsupported Slack action: {action}")

    if action == "send":
        built = {
            "action": "sendMessage",
            "to": _require(params, action, "to", "channelId"),
            "content": _first(params, "message", "content", "text") or "",
            "threadTs": _first(params, "threadId", "replyTo"),
            "blocks": params.get("blocks"),
        }
    elif action == "react":
        built = {
            "action": "react",
            "channelId": _require(params, action, "channelId", "to"),
            "messageId": _require(params, action, "messageId"),
            "emoji": _first(params, "emoji"),
            "remove": bool(params.get("remove")),
        }
    elif action == "reactions":
        built = {
            "action": "reactions",
            "channelId": _require(params, action, "channelId", "to"),
            "messageId": _require(params, action, "messageId"),
        }
    elif action == "edit":
        built = {
            "action": "editMessage",
            "channelId": _require(params, action, "channelId", "to"),
            "messageId": _require(params, action, "messageId"),
            "content": _first(params, "message", "content", "text") or "",
            "blocks": params.get("blocks"),
        }
    elif action == "delete":
        built = {
            "action": "deleteMessage",
            "channelId": _require(params, action, "channelId", "to"),
            "messageId": _require(params, action, "messageId"),
        }
    elif action == "read":
        built = {
            "action": "readMessages",
            "channelId": _require(params, action, "channelId", "to"),
            "limit": params.get("limit"),
            "before": _first(params, "before"),
            "after": _first(params, "after"),
            "threadId": _first(params, "threadId", "replyTo"),
        }
    elif action in ("pin", "unpin"):
        built = {
            "action": "pinMessage" if action == "pin" else "unpinMessage",
            "channelId": _require(params, action, "channelId", "to"),
            "messageId": _require(params, action, "messageId"),
        }
    elif action == "list-pins":
        built = {
            "action": "listPins",
            "channelId": _require(params, action, "channelId", "to"),
        }
    elif action == "member-info":
        built = {
            "action": "memberInfo",
            "userId": _require(params, action, "userId"),
        }
    elif action == "download-file":
        built = {
            "action": "downloadFile",
            "fileId": _require(params, action, "fileId"),
            "channelId": _first(params, "channelId", "to"),
            "threadId": _first(params, "threadId", "replyTo", "messageId"),
            "maxBytes": params.get("maxBytes"),
        }
    else:
        built = {"action": "emojiList"}

    return {key: value for key, value in built.items() if value is not None}


async def handle_slack_message_action(
    action: str,
    params: Mapping[str, Any],
    invoke: Invoke,
    cfg: Optional[Mapping[str, Any]] = None,
) -> Any:
    """Map a runtime action and hand it to ``invoke``.

    Args:
        action: Runtime action name, e.g. ``download-file``.
        params: Runtime action parameters.
        invoke: Executes the internal action; receives the action dict and ``cfg``.
        cfg: Runtime configuration passed through to ``invoke``.
    """
    built = build_slack_action(action, params)
    logger.debug("slack message action %s -> %s", action, built["action"])
    return await invoke(built, cfg or {})


def _channel_id(value: str) -> str:
    """Strip a ``channel:``/``#`` prefix from a channel target.

    Raises:
        ValueError: If the target names a user.
    """
    target = parse_slack_target(value)
    if target.kind != "channel":
        raise ValueError(f"Expected a channel target, got user target: {value}")
    return target.id


class SlackActionDispatcher:
    """Executes internal Slack action dicts.

    Usable as the ``invoke`` argument of :func:`handle_slack_message_action`.

    Example:
        >>> dispatcher = SlackActionDispatcher(SlackActions(token="xoxb-..."))
        >>> await handle_slack_message_action("read", {"to": "channel:C1"}, dispatcher)
    """

    def __init__(self, actions: SlackActions, default_max_bytes: Optional[int] = None) -> None:
        self._actions = actions
        self._default_max_bytes = default_max_bytes

    @classmethod
    def from_context(
        cls, actions: SlackActions, context: SlackMonitorContext
    ) -> "SlackActionDispatcher":
        """Dispatcher whose download cap defaults to the monitor's media cap."""
        return cls(actions, default_max_bytes=context.media_max_bytes)

    def _max_bytes(self, requested: Any) -> int:
        if requested is not None:
            return int(requested)
        if self._default_max_bytes is not None:
            return self._default_max_bytes
        from slackgate.config.settings import settings

        return settings.SLACK_MEDIA_MAX_BYTES

    async def __call__(
        self, action: dict[str, Any], cfg: Optional[Mapping[str, Any]] = None
    ) -> dict[str, Any]:
        name = action.get("action")
        a = self._actions

        if name == "sendMessage":
            sent = await a.send_message(
                action["to"],
                action.get("content", ""),
                thread_ts=action.get("threadTs"),
                blocks=action.get("blocks"),
            )
            return {"ok": True, "messageId": sent.message_id, "channelId": sent.channel_id}

        if name == "react":
            channel_id = _channel_id(action["channelId"])
            if action.get("remove"):
                if action.get("emoji"):
                    await a.remove_reaction(channel_id, action["messageId"], action["emoji"])
                    return {"ok": True, "removed": [action["emoji"]]}
                removed = await a.remove_own_reactions(channel_id, action["messageId"])
                return {"ok": True, "removed": removed}
            await a.react(channel_id, action["messageId"], action.get("emoji", ""))
            return {"ok": True, "added": action.get("emoji")}

        if name == "reactions":
            reactions = await a.list_reactions(_channel_id(action["channelId"]), action["messageId"])
            return {"ok": True, "reactions": reactions}

        if name == "editMessage":
            await a.edit_message(
                _channel_id(action["channelId"]),
                action["messageId"],
                action.get("content", ""),
                blocks=action.get("blocks"),
            )
            return {"ok": True}

        if name == "deleteMessage":
            await a.delete_message(_channel_id(action["channelId"]), action["messageId"])
            return {"ok": True}

        if name == "readMessages":
            page = await a.read_messages(
                _channel_id(action["channelId"]),
                limit=action.get("limit"),
                before=action.get("before"),
                after=action.get("after"),
                thread_id=action.get("threadId"),
            )
            return {"ok": True, "messages": page.messages, "hasMore": page.has_more}

        if name == "pinMessage":
            await a.pin_message(_channel_id(action["channelId"]), action["messageId"])
            return {"ok": True}

        if name == "unpinMessage":
            await a.unpin_message(_channel_id(action["channelId"]), action["messageId"])
            return {"ok": True}

        if name == "listPins":
            return {"ok": True, "pins": await a.list_pins(_channel_id(action["channelId"]))}

        if name == "memberInfo":
            return {"ok": True, "info": await a.get_member_info(action["userId"])}

        if name == "emojiList":
            return {"ok": True, "emojis": await a.list_emojis()}

        if name == "downloadFile":
            channel = action.get("channelId")
            result = await a.download_file(
                action["fileId"],
                max_bytes=self._max_bytes(action.get("maxBytes")),
                channel_id=_channel_id(channel) if channel else None,
                thread_id=action.get("threadId"),
            )
            if result is None:
                return {"ok": False, "error": "file_not_found"}
            return {"ok": True, "file": asdict(result)}

        raise ValueError(f"Unknown Slack action: {name}")
