"""Unit tests for the discord.py adapter that need no network."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from notebridge.errors import AuthenticationFailure, NetworkFailure, NotConnected, SendFailure
from notebridge.transport import (
    DiscordTransport,
    inbound_event_from_message,
    normalize_token,
    token_shape_error,
)


class TestTokenHelpers:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("a.b.c", "a.b.c"),
            ("  Bot a.b.c  ", "a.b.c"),
            ('"a.b.c"', "a.b.c"),
            ("a.b\n.c", "a.b.c"),
        ],
    )
    def test_normalize_token(self, raw, expected):
        assert normalize_token(raw) == expected

    def test_shape_accepts_three_parts(self):
        assert token_shape_error("aaa.bbb.ccc") is None

    @pytest.mark.parametrize("token", ["abc", "a..c", "a.b.c.d", "abc...xyz"])
    def test_shape_rejects_malformed(self, token):
        assert token_shape_error(token) is not None


class TestInboundConversion:
    def test_dm_message(self):
        created = datetime(2024, 12, 3, 9, 30, tzinfo=timezone.utc)
        message = MagicMock()
        message.author.id = 123456789012345678
        message.author.bot = False
        message.content = "hi"
        message.created_at = created
        message.channel = MagicMock(spec=discord.DMChannel)

        event = inbound_event_from_message(message)

        assert event.sender_id == "123456789012345678"
        assert event.content == "hi"
        assert event.timestamp == created
        assert event.is_direct_message
        assert not event.is_from_bot

    def test_guild_message_from_bot(self):
        message = MagicMock()
        message.author.id = 1
        message.author.bot = True
        message.channel = MagicMock(spec=discord.TextChannel)

        event = inbound_event_from_message(message)

        assert not event.is_direct_message
        assert event.is_from_bot


class TestDiscordTransport:
    @pytest.mark.asyncio
    async def test_empty_token_rejected_locally(self):
        with pytest.raises(AuthenticationFailure):
            await DiscordTransport().start("   ")

    @pytest.mark.asyncio
    async def test_malformed_token_rejected_locally(self):
        with pytest.raises(AuthenticationFailure, match="invalid"):
            await DiscordTransport().start("not-a-token")

    @pytest.mark.asyncio
    async def test_resolve_requires_session(self):
        with pytest.raises(NotConnected):
            await DiscordTransport().resolve_user("1")

    @pytest.mark.asyncio
    async def test_stop_without_session_is_noop(self):
        await DiscordTransport().stop()

    @pytest.mark.asyncio
    async def test_resolve_rejects_non_numeric_peer(self):
        transport = DiscordTransport()
        transport._client = MagicMock()
        transport._ready = True

        with pytest.raises(SendFailure):
            await transport.resolve_user("someone")

    @pytest.mark.asyncio
    async def test_resolve_prefers_cached_user(self):
        transport = DiscordTransport()
        client = MagicMock()
        client.get_user.return_value = "cached-user"
        client.fetch_user = AsyncMock()
        transport._client = client
        transport._ready = True

        assert await transport.resolve_user("42") == "cached-user"
        client.get_user.assert_called_once_with(42)
        client.fetch_user.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_forbidden_send_becomes_send_failure(self):
        transport = DiscordTransport()
        transport._client = MagicMock()
        transport._ready = True
        recipient = MagicMock()
        recipient.send = AsyncMock(
            side_effect=discord.Forbidden(MagicMock(status=403, reason="Forbidden"), "no DMs")
        )

        with pytest.raises(SendFailure, match="does not accept"):
            await transport.send_direct_message(recipient, "ok")

    @pytest.mark.asyncio
    async def test_disconnect_signalled_once_after_ready(self):
        transport = DiscordTransport()
        listener = MagicMock()
        transport.set_listener(listener)
        transport._ready = True

        await transport._handle_discord_disconnect()
        await transport._handle_discord_disconnect()

        listener.on_transport_disconnected.assert_called_once()

    @pytest.mark.asyncio
    async def test_stop_cancels_gateway_when_close_fails(self):
        transport = DiscordTransport()
        client = MagicMock()
        client.close = AsyncMock(side_effect=RuntimeError("close failed"))
        gateway = asyncio.create_task(asyncio.sleep(3600))
        transport._client = client
        transport._gateway_task = gateway
        transport._ready = True

        await transport.stop()

        client.close.assert_awaited_once()
        assert gateway.cancelled()
        assert transport._client is None

    @pytest.mark.asyncio
    async def test_stop_during_login_discards_session(self, monkeypatch):
        transport = DiscordTransport()
        client = MagicMock()
        client.close = AsyncMock()

        async def login_interrupted_by_stop(token):
            await transport.stop()

        client.login = AsyncMock(side_effect=login_interrupted_by_stop)
        monkeypatch.setattr(
            "notebridge.transport.DiscordGatewayClient", lambda **kwargs: client
        )

        with pytest.raises(NetworkFailure, match="stopped"):
            await transport.start("aaa.bbb.ccc")

        client.close.assert_awaited_once()
        client.connect.assert_not_called()
        assert transport._client is None
