"""Slack Web API client construction."""

from __future__ import annotations

from slack_sdk.web.async_client import AsyncWebClient


def create_slack_web_client(token: str) -> AsyncWebClient:
    """Create an async Slack Web API client for a bot token."""
    return AsyncWebClient(token=token)
