"""slackgate configuration via environment / .env file."""

from __future__ import annotations

import os
import tempfile

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Credentials (default account) ---
    SLACK_BOT_TOKEN: str = ""
    SLACK_SIGNING_SECRET: str = ""

    # --- Expected identity for inbound events ---
    SLACK_API_APP_ID: str = ""
    SLACK_TEAM_ID: str = ""

    # --- Extra accounts: account id -> bot token ---
    SLACK_ACCOUNTS: dict[str, str] = {}

    # --- Media ---
    SLACK_MEDIA_DIR: str = os.path.join(tempfile.gettempdir(), "slackgate-media")
    SLACK_MEDIA_MAX_BYTES: int = 20 * 1024 * 1024

    @field_validator(
        "SLACK_BOT_TOKEN",
        "SLACK_SIGNING_SECRET",
        "SLACK_API_APP_ID",
        "SLACK_TEAM_ID",
        mode="before",
    )
    @classmethod
    def _strip(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("SLACK_MEDIA_MAX_BYTES")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v


settings = Settings()
