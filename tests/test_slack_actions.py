"""Tests for slackgate.slack.actions - Slack Web API actions.

Tests cover:
- token resolution and client construction
- reactions, messages, history, pins, lookups
- download_file scope gating and media resolver hand-off
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from slackgate.config.settings import Settings
from slackgate.slack.actions import (
    SlackActions,
    SlackTarget,
    normalize_emoji,
    parse_slack_target,
)
from slackgate.slack.errors import SlackActionError, SlackConfigError
from slackgate.slack.media import SlackMediaFile, SlackMediaResult

DOWNLOAD_URL = "https://files.slack.com/files-pri/T1-F123/image.png"


def _resp(**data):
    """Build a stand-in for a slack_sdk response object."""
    return SimpleNamespace(data={"ok": True, **data})


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def media_resolver():
    return AsyncMock(return_value=[])


@pytest.fixture
def actions(client, media_resolver):
    return SlackActions(token="xoxb-test", client=client, media_resolver=media_resolver)


# ==============================================================================
# HELPERS
# ==============================================================================


class TestNormalizeEmoji:
    @pytest.mark.parametrize(
        "raw,expected",
        [(":thumbsup:", "thumbsup"), ("eyes", "eyes"), ("  ::fire:: ", "fire")],
    )
    def test_strips_colons(self, raw, expected):
        assert normalize_emoji(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "::"])
    def test_empty_raises(self, raw):
        with pytest.raises(ValueError, match="Emoji is required"):
            normalize_emoji(raw)


class TestParseSlackTarget:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("channel:C1", SlackTarget("channel", "C1")),
            ("user:U1", SlackTarget("user", "U1")),
            ("<@U12AB>", SlackTarget("user", "U12AB")),
            ("@U1", SlackTarget("user", "U1")),
            ("#C1", SlackTarget("channel", "C1")),
            ("C1", SlackTarget("channel", "C1")),
            ("  channel: C1 ", SlackTarget("channel", "C1")),
        ],
    )
    def test_forms(self, raw, expected):
        assert parse_slack_target(raw) == expected

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            parse_slack_target("  ")


# ==============================================================================
# TOKEN / CLIENT
# ==============================================================================


class TestTokenResolution:
    def test_explicit_token_wins(self):
        actions = SlackActions(token=" xoxb-explicit ", settings=Settings(SLACK_BOT_TOKEN="xoxb-env"))
        assert actions.token == "xoxb-explicit"

    def test_default_account_token(self):
        actions = SlackActions(settings=Settings(SLACK_BOT_TOKEN="xoxb-env"))
        assert actions.token == "xoxb-env"

    def test_named_account_token(self):
        settings = Settings(SLACK_BOT_TOKEN="", SLACK_ACCOUNTS={"ops": "xoxb-ops"})
        assert SlackActions(account_id="ops", settings=settings).token == "xoxb-ops"

    def test_missing_token_raises(self):
        with pytest.raises(SlackConfigError, match="SLACK_BOT_TOKEN"):
            SlackActions(settings=Settings(SLACK_BOT_TOKEN=""))

    def test_blank_explicit_token_falls_back_then_raises(self):
        with pytest.raises(SlackConfigError):
            SlackActions(token="  ", settings=Settings(SLACK_BOT_TOKEN=""))

    def test_config_error_is_action_error(self):
        assert issubclass(SlackConfigError, SlackActionError)

    def test_client_created_lazily(self):
        actions = SlackActions(token="xoxb-test")
        with patch("slackgate.slack.actions.create_slack_web_client") as factory:
            factory.return_value = MagicMock()
            assert actions.client is factory.return_value
            assert actions.client is factory.return_value
            factory.assert_called_once_with("xoxb-test")

    def test_injected_client_used(self, client):
        assert SlackActions(token="xoxb-test", client=client).client is client


# ==============================================================================
# REACTIONS
# ==============================================================================


class TestReactions:
    @pytest.mark.asyncio
    async def test_react_normalizes_emoji(self, actions, client):
        client.reactions_add = AsyncMock(return_value=_resp())
        await actions.react("C1", "1.1", ":eyes:")
        client.reactions_add.assert_awaited_once_with(channel="C1", timestamp="1.1", name="eyes")

    @pytest.mark.asyncio
    async def test_react_empty_emoji_raises_before_api_call(self, actions, client):
        client.reactions_add = AsyncMock(return_value=_resp())
        with pytest.raises(ValueError):
            await actions.react("C1", "1.1", " ")
        client.reactions_add.assert_not_called()

    @pytest.mark.asyncio
    async def test_remove_reaction(self, actions, client):
        client.reactions_remove = AsyncMock(return_value=_resp())
        await actions.remove_reaction("C1", "1.1", "fire")
        client.reactions_remove.assert_awaited_once_with(channel="C1", timestamp="1.1", name="fire")

    @pytest.mark.asyncio
    async def test_list_reactions(self, actions, client):
        reactions = [{"name": "eyes", "count": 1, "users": ["U1"]}]
        client.reactions_get = AsyncMock(return_value=_resp(message={"reactions": reactions}))
        assert await actions.list_reactions("C1", "1.1") == reactions
        client.reactions_get.assert_awaited_once_with(channel="C1", timestamp="1.1", full=True)

    @pytest.mark.asyncio
    async def test_list_reactions_without_message(self, actions, client):
        client.reactions_get = AsyncMock(return_value=_resp())
        assert await actions.list_reactions("C1", "1.1") == []

    @pytest.mark.asyncio
    async def test_remove_own_reactions(self, actions, client):
        client.auth_test = AsyncMock(return_value=_resp(user_id="U_BOT"))
        client.reactions_get = AsyncMock(
            return_value=_resp(
                message={
                    "reactions": [
                        {"name": "eyes", "users": ["U_BOT", "U1"]},
                        {"name": "fire", "users": ["U1"]},
                        {"name": "white_check_mark", "users": ["U_BOT"]},
                        {"users": ["U_BOT"]},
                    ]
                }
            )
        )
        client.reactions_remove = AsyncMock(return_value=_resp())

        removed = await actions.remove_own_reactions("C1", "1.1")

        assert removed == ["eyes", "white_check_mark"]
        assert client.reactions_remove.await_count == 2
        client.reactions_remove.assert_any_await(channel="C1", timestamp="1.1", name="eyes")
        client.reactions_remove.assert_any_await(
            channel="C1", timestamp="1.1", name="white_check_mark"
        )

    @pytest.mark.asyncio
    async def test_remove_own_reactions_none_found(self, actions, client):
        client.auth_test = AsyncMock(return_value=_resp(user_id="U_BOT"))
        client.reactions_get = AsyncMock(
            return_value=_resp(message={"reactions": [{"name": "fire", "users": ["U1"]}]})
        )
        client.reactions_remove = AsyncMock(return_value=_resp())
        assert await actions.remove_own_reactions("C1", "1.1") == []
        client.reactions_remove.assert_not_called()

    @pytest.mark.asyncio
    async def test_bot_user_id_cached(self, actions, client):
        client.auth_test = AsyncMock(return_value=_resp(user_id="U_BOT"))
        assert await actions.resolve_bot_user_id() == "U_BOT"
        assert await actions.resolve_bot_user_id() == "U_BOT"
        client.auth_test.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_bot_user_id_missing_raises(self, actions, client):
        client.auth_test = AsyncMock(return_value=_resp())
        with pytest.raises(SlackActionError, match="bot user id"):
            await actions.resolve_bot_user_id()


# ==============================================================================
# MESSAGES
# ==============================================================================


class TestMessages:
    @pytest.mark.asyncio
    async def test_send_to_channel(self, actions, client):
        client.chat_postMessage = AsyncMock(return_value=_resp(ts="9.9", channel="C1"))
        result = await actions.send_message("channel:C1", " hello ", thread_ts="1.1")
        client.chat_postMessage.assert_awaited_once_with(channel="C1", text="hello", thread_ts="1.1")
        assert result.message_id == "9.9"
        assert result.channel_id == "C1"

    @pytest.mark.asyncio
    async def test_send_to_user_opens_dm(self, actions, client):
        client.conversations_open = AsyncMock(return_value=_resp(channel={"id": "D1"}))
        client.chat_postMessage = AsyncMock(return_value=_resp(ts="9.9", channel="D1"))
        result = await actions.send_message("user:U1", "hi")
        client.conversations_open.assert_awaited_once_with(users="U1")
        client.chat_postMessage.assert_awaited_once_with(channel="D1", text="hi")
        assert result.channel_id == "D1"

    @pytest.mark.asyncio
    async def test_send_blocks_only_uses_fallback_text(self, actions, client):
        client.chat_postMessage = AsyncMock(return_value=_resp(ts="9.9", channel="C1"))
        blocks = [{"type": "section", "text": {"type": "mrkdwn", "text": "Build passed"}}]
        await actions.send_message("C1", "", blocks=blocks)
        kwargs = client.chat_postMessage.await_args.kwargs
        assert kwargs["text"] == "Build passed"
        assert kwargs["blocks"] == blocks

    @pytest.mark.asyncio
    async def test_send_nothing_raises(self, actions, client):
        client.chat_postMessage = AsyncMock()
        with pytest.raises(ValueError, match="text or blocks"):
            await actions.send_message("C1", "   ")
        client.chat_postMessage.assert_not_called()

    @pytest.mark.asyncio
    async def test_edit_message_trims_content(self, actions, client):
        client.chat_update = AsyncMock(return_value=_resp())
        await actions.edit_message("C1", "1.1", "  new text  ")
        client.chat_update.assert_awaited_once_with(channel="C1", ts="1.1", text="new text")

    @pytest.mark.asyncio
    async def test_edit_message_blocks_fallback(self, actions, client):
        client.chat_update = AsyncMock(return_value=_resp())
        blocks = [{"type": "header", "text": {"type": "plain_text", "text": "Status"}}]
        await actions.edit_message("C1", "1.1", "", blocks=blocks)
        client.chat_update.assert_awaited_once_with(
            channel="C1", ts="1.1", text="Status", blocks=blocks
        )

    @pytest.mark.asyncio
    async def test_edit_message_empty_uses_space(self, actions, client):
        client.chat_update = AsyncMock(return_value=_resp())
        await actions.edit_message("C1", "1.1", "")
        client.chat_update.assert_awaited_once_with(channel="C1", ts="1.1", text=" ")

    @pytest.mark.asyncio
    async def test_edit_message_invalid_blocks(self, actions, client):
        client.chat_update = AsyncMock(return_value=_resp())
        with pytest.raises(ValueError):
            await actions.edit_message("C1", "1.1", "x", blocks=[{"text": "no type"}])
        client.chat_update.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_message(self, actions, client):
        client.chat_delete = AsyncMock(return_value=_resp())
        await actions.delete_message("C1", "1.1")
        client.chat_delete.assert_awaited_once_with(channel="C1", ts="1.1")


class TestReadMessages:
    @pytest.mark.asyncio
    async def test_channel_history(self, actions, client):
        messages = [{"ts": "2.2", "text": "b"}, {"ts": "1.1", "text": "a"}]
        client.conversations_history = AsyncMock(
            return_value=_resp(messages=messages, has_more=True)
        )
        page = await actions.read_messages("C1", limit=2, before="3.3", after="0.1")
        client.conversations_history.assert_awaited_once_with(
            channel="C1", limit=2, latest="3.3", oldest="0.1"
        )
        assert page.messages == messages
        assert page.has_more is True

    @pytest.mark.asyncio
    async def test_thread_replies_drop_parent(self, actions, client):
        client.conversations_replies = AsyncMock(
            return_value=_resp(
                messages=[
                    {"ts": "1.1", "text": "parent"},
                    {"ts": "1.2", "text": "reply", "thread_ts": "1.1"},
                ]
            )
        )
        page = await actions.read_messages("C1", thread_id="1.1")
        client.conversations_replies.assert_awaited_once_with(
            channel="C1", ts="1.1", limit=None, latest=None, oldest=None
        )
        assert [m["ts"] for m in page.messages] == ["1.2"]
        assert page.has_more is False


class TestLookupsAndPins:
    @pytest.mark.asyncio
    async def test_member_info(self, actions, client):
        client.users_info = AsyncMock(return_value=_resp(user={"id": "U1"}))
        info = await actions.get_member_info("U1")
        assert info["user"]["id"] == "U1"
        client.users_info.assert_awaited_once_with(user="U1")

    @pytest.mark.asyncio
    async def test_list_emojis(self, actions, client):
        client.emoji_list = AsyncMock(return_value=_resp(emoji={"party": "https://x"}))
        assert (await actions.list_emojis())["emoji"] == {"party": "https://x"}

    @pytest.mark.asyncio
    async def test_pin_unpin(self, actions, client):
        client.pins_add = AsyncMock(return_value=_resp())
        client.pins_remove = AsyncMock(return_value=_resp())
        await actions.pin_message("C1", "1.1")
        await actions.unpin_message("C1", "1.1")
        client.pins_add.assert_awaited_once_with(channel="C1", timestamp="1.1")
        client.pins_remove.assert_awaited_once_with(channel="C1", timestamp="1.1")

    @pytest.mark.asyncio
    async def test_list_pins(self, actions, client):
        items = [{"type": "message", "message": {"ts": "1.1", "text": "pinned"}}]
        client.pins_list = AsyncMock(return_value=_resp(items=items))
        assert await actions.list_pins("C1") == items


# ==============================================================================
# DOWNLOAD FILE
# ==============================================================================


class TestDownloadFile:
    RESULT = SlackMediaResult(
        path="/tmp/image.png",
        content_type="image/png",
        placeholder="[Slack file: image.png]",
    )

    @pytest.mark.asyncio
    async def test_no_private_url_returns_none(self, actions, client, media_resolver):
        client.files_info = AsyncMock(return_value=_resp(file={"id": "F123", "name": "image.png"}))
        assert await actions.download_file("F123", max_bytes=1024) is None
        media_resolver.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_file_returns_none(self, actions, client, media_resolver):
        client.files_info = AsyncMock(return_value=_resp())
        assert await actions.download_file("F123", max_bytes=1024) is None
        media_resolver.assert_not_called()

    @pytest.mark.asyncio
    async def test_downloads_with_fresh_metadata(self, actions, client, media_resolver):
        client.files_info = AsyncMock(
            return_value=_resp(
                file={
                    "id": "F123",
                    "name": "image.png",
                    "mimetype": "image/png",
                    "url_private_download": DOWNLOAD_URL,
                }
            )
        )
        media_resolver.return_value = [self.RESULT]

        result = await actions.download_file("F123", max_bytes=1024)

        client.files_info.assert_awaited_once_with(file="F123")
        media_resolver.assert_awaited_once_with(
            files=[
                SlackMediaFile(
                    id="F123",
                    name="image.png",
                    mimetype="image/png",
                    url_private=None,
                    url_private_download=DOWNLOAD_URL,
                )
            ],
            token="xoxb-test",
            max_bytes=1024,
        )
        assert result == self.RESULT

    @pytest.mark.asyncio
    async def test_metadata_fetched_on_every_call(self, actions, client, media_resolver):
        client.files_info = AsyncMock(
            return_value=_resp(file={"id": "F123", "url_private": DOWNLOAD_URL})
        )
        media_resolver.return_value = [self.RESULT]
        await actions.download_file("F123", max_bytes=1024)
        await actions.download_file("F123", max_bytes=1024)
        assert client.files_info.await_count == 2

    @pytest.mark.asyncio
    async def test_channel_mismatch_returns_none(self, actions, client, media_resolver):
        client.files_info = AsyncMock(
            return_value=_resp(
                file={
                    "id": "F123",
                    "name": "image.png",
                    "url_private_download": DOWNLOAD_URL,
                    "channels": ["C999"],
                }
            )
        )
        assert await actions.download_file("F123", max_bytes=1024, channel_id="C123") is None
        media_resolver.assert_not_called()

    @pytest.mark.asyncio
    async def test_thread_mismatch_returns_none(self, actions, client, media_resolver):
        client.files_info = AsyncMock(
            return_value=_resp(
                file={
                    "id": "F123",
                    "url_private_download": DOWNLOAD_URL,
                    "shares": {"private": {"C123": [{"ts": "111.111", "thread_ts": "111.111"}]}},
                }
            )
        )
        result = await actions.download_file(
            "F123", max_bytes=1024, channel_id="C123", thread_id="222.222"
        )
        assert result is None
        media_resolver.assert_not_called()

    @pytest.mark.asyncio
    async def test_legacy_metadata_without_shares_downloads(self, actions, client, media_resolver):
        client.files_info = AsyncMock(
            return_value=_resp(file={"id": "F123", "url_private_download": DOWNLOAD_URL})
        )
        media_resolver.return_value = [self.RESULT]
        result = await actions.download_file(
            "F123", max_bytes=1024, channel_id="C123", thread_id="222.222"
        )
        assert result == self.RESULT
        media_resolver.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_resolver_returning_nothing(self, actions, client, media_resolver):
        client.files_info = AsyncMock(
            return_value=_resp(file={"id": "F123", "url_private": DOWNLOAD_URL})
        )
        media_resolver.return_value = []
        assert await actions.download_file("F123", max_bytes=1024) is None
