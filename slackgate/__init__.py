"""slackgate -- Slack action and event layer for chat-bot runtimes."""

__version__ = "0.1.0"
