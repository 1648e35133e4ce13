"""Exceptions raised by the Slack action layer."""


class SlackActionError(Exception):
    """A Slack action could not be carried out."""


class SlackConfigError(SlackActionError):
    """Required Slack configuration (usually the bot token) is missing."""
