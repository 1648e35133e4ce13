"""Slack integration for slackgate.

This package lets a chat-bot runtime act in a Slack workspace and receive
its events.

Main Components:
    - SlackActions: Web API actions (messages, reactions, pins, history, files)
    - SlackActionDispatcher: Executes internal action dicts against SlackActions
    - handle_slack_message_action: Maps runtime action names to internal actions
    - SlackEventHandler / SlackMonitorContext: Inbound event routing
    - SlackConfig: Configuration dataclass for the monitor

Scope and identity checks:
    - evaluate_scope_mismatch / has_scope_mismatch: file share scoping
    - should_drop_mismatched_event: app/workspace identity filtering

Example:
    >>> from slackgate.slack import SlackActions
    >>>
    >>> actions = SlackActions(token="xoxb-...")
    >>> result = await actions.download_file(
    ...     "F123", max_bytes=1024 * 1024, channel_id="C123", thread_id="1712.0001"
    ... )
    >>> if result is None:
    ...     print("file not found in this conversation")
"""

from .actions import (
    SlackActions,
    SlackMessagePage,
    SlackSendResult,
    SlackTarget,
    normalize_emoji,
    parse_slack_target,
)
from .blocks import build_blocks_fallback_text, validate_blocks
from .client import create_slack_web_client
from .config import SlackConfig
from .errors import SlackActionError, SlackConfigError
from .identity import (
    IdentityClaim,
    extract_api_app_id,
    extract_team_id,
    should_drop_mismatched_event,
)
from .media import SlackMediaFile, SlackMediaResult, resolve_slack_media
from .message_actions import (
    SlackActionDispatcher,
    build_slack_action,
    handle_slack_message_action,
)
from .monitor import (
    SlackEventHandler,
    SlackInboundMessage,
    SlackMonitorContext,
    normalize_message,
)
from .scope import (
    FileShareMetadata,
    ScopeQuery,
    ThreadShare,
    evaluate_scope_mismatch,
    has_scope_mismatch,
)

__all__ = [
    # Actions
    "SlackActions",
    "SlackMessagePage",
    "SlackSendResult",
    "SlackTarget",
    "normalize_emoji",
    "parse_slack_target",
    "create_slack_web_client",
    # Errors
    "SlackActionError",
    "SlackConfigError",
    # Blocks
    "build_blocks_fallback_text",
    "validate_blocks",
    # Media
    "SlackMediaFile",
    "SlackMediaResult",
    "resolve_slack_media",
    # Runtime action mapping
    "SlackActionDispatcher",
    "build_slack_action",
    "handle_slack_message_action",
    # Monitor
    "SlackConfig",
    "SlackEventHandler",
    "SlackInboundMessage",
    "SlackMonitorContext",
    "normalize_message",
    # Identity
    "IdentityClaim",
    "extract_api_app_id",
    "extract_team_id",
    "should_drop_mismatched_event",
    # Scope
    "FileShareMetadata",
    "ScopeQuery",
    "ThreadShare",
    "evaluate_scope_mismatch",
    "has_scope_mismatch",
]
