"""Slack account and bot token resolution.

An account is either the default one (token from ``SLACK_BOT_TOKEN``) or a
named entry in ``SLACK_ACCOUNTS``. Resolution never raises; callers decide
whether a missing token is fatal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from .settings import Settings

DEFAULT_ACCOUNT_ID = "default"

TokenSource = Literal["config", "env", "none"]


@dataclass(frozen=True)
class SlackAccount:
    """A resolved Slack account.

    Attributes:
        account_id: The account identifier ("default" when unnamed).
        bot_token: The trimmed bot token, or None when not configured.
        bot_token_source: Where the token came from.
    """

    account_id: str
    bot_token: Optional[str]
    bot_token_source: TokenSource


def resolve_bot_token(raw: Optional[str]) -> Optional[str]:
    """Return the trimmed token, or None for missing/blank values."""
    if raw is None:
        return None
    trimmed = raw.strip()
    return trimmed or None


def resolve_slack_account(
    account_id: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> SlackAccount:
    """Resolve an account id to its bot token.

    Args:
        account_id: Named account to look up. None or blank means default.
        settings: Settings to read from. Defaults to the module singleton.

    Returns:
        The resolved SlackAccount. ``bot_token`` is None when nothing is
        configured for the account.
    """
    if settings is None:
        from .settings import settings as default_settings

        settings = default_settings

    normalized = (account_id or "").strip() or DEFAULT_ACCOUNT_ID

    if normalized in settings.SLACK_ACCOUNTS:
        token = resolve_bot_token(settings.SLACK_ACCOUNTS[normalized])
        if token:
            return SlackAccount(normalized, token, "config")

    if normalized == DEFAULT_ACCOUNT_ID:
        token = resolve_bot_token(settings.SLACK_BOT_TOKEN)
        if token:
            return SlackAccount(normalized, token, "env")

    return SlackAccount(normalized, None, "none")
