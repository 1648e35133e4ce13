"""slackgate configuration -- settings and account resolution."""

from .accounts import (
    DEFAULT_ACCOUNT_ID,
    SlackAccount,
    resolve_bot_token,
    resolve_slack_account,
)
from .settings import Settings, settings

__all__ = [
    "DEFAULT_ACCOUNT_ID",
    "Settings",
    "SlackAccount",
    "resolve_bot_token",
    "resolve_slack_account",
    "settings",
]
