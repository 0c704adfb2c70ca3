"""
Discord transport: the only module that talks to discord.py.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Awaitable, Callable, Optional, Protocol

import aiohttp
import discord

from notebridge.errors import AuthenticationFailure, NetworkFailure, NotConnected, SendFailure
from notebridge.logger import get_logger
from notebridge.models import InboundEvent

_LOGGER = get_logger()

PRIVILEGED_INTENTS_CLOSE_CODE = 4014


class TransportListener(Protocol):
    def on_inbound(self, event: InboundEvent) -> None: ...

    def on_transport_disconnected(self, reason: str) -> None: ...


class Transport(Protocol):
    """
    Surface the connection manager and sender rely on. ``start`` resolves
    once the session is ready and returns the account's display identity.
    """

    def set_listener(self, listener: TransportListener) -> None: ...

    async def start(self, token: str) -> str: ...

    async def stop(self) -> None: ...

    async def resolve_user(self, peer_id: str) -> Any: ...

    async def send_direct_message(self, recipient: Any, text: str) -> None: ...


def normalize_token(raw_token: str) -> str:
    """
    Normalizes token input without logging it.
    Accepts pasted values with optional leading 'Bot ' prefix.
    """

    token = raw_token.strip()
    if len(token) >= 2 and token[0] == token[-1] and token[0] in {"'", '"', "`"}:
        token = token[1:-1].strip()
    if token.lower().startswith("bot "):
        token = token[4:].strip()
    token = "".join(token.split())
    return token


def token_shape_error(token: str) -> Optional[str]:
    lowered = token.lower()
    if "..." in token or "[redacted]" in lowered or "(redacted)" in lowered:
        return "Token appears redacted or truncated."

    parts = token.split(".")
    if len(parts) != 3 or any(not part for part in parts):
        return "Token format looks invalid."

    return None


def inbound_event_from_message(message: discord.Message) -> InboundEvent:
    return InboundEvent(
        sender_id=str(message.author.id),
        content=message.content,
        timestamp=message.created_at,
        is_direct_message=isinstance(message.channel, discord.DMChannel),
        is_from_bot=bool(message.author.bot),
    )


class DiscordGatewayClient(discord.Client):
    """
    Discord client that forwards readiness, messages and disconnects.
    """

    def __init__(
        self,
        *,
        message_callback: Callable[[discord.Message], Awaitable[None]],
        disconnect_callback: Callable[[], Awaitable[None]],
    ) -> None:
        intents = discord.Intents.none()
        intents.dm_messages = True
        intents.message_content = True
        super().__init__(intents=intents)

        self.ready_event = asyncio.Event()
        self._message_callback = message_callback
        self._disconnect_callback = disconnect_callback

    async def on_ready(self) -> None:
        _LOGGER.info("Discord session ready as {}", self.user)
        self.ready_event.set()

    async def on_disconnect(self) -> None:
        await self._disconnect_callback()

    async def on_message(self, message: discord.Message) -> None:
        await self._message_callback(message)


class DiscordTransport:
    def __init__(self, *, connect_timeout: float = 30.0) -> None:
        self._connect_timeout = connect_timeout
        self._listener: Optional[TransportListener] = None
        self._client: Optional[DiscordGatewayClient] = None
        self._gateway_task: Optional[asyncio.Task[None]] = None
        self._ready = False
        # Bumped by stop(); a start() that sees it move was stopped mid-login.
        self._generation = 0

    def set_listener(self, listener: TransportListener) -> None:
        self._listener = listener

    def _require_client(self) -> DiscordGatewayClient:
        if self._client is None or not self._ready:
            raise NotConnected("Not connected to Discord.")
        return self._client

    def _signal_disconnected(self, reason: str) -> None:
        if not self._ready:
            return
        self._ready = False
        if self._listener is not None:
            self._listener.on_transport_disconnected(reason)

    def _handle_gateway_task_done(self, task: asyncio.Task[None]) -> None:
        if task is not self._gateway_task:
            # Superseded or stopped deliberately.
            return
        if task.cancelled():
            self._signal_disconnected("Gateway task cancelled")
            return
        exception = task.exception()
        if exception is not None:
            _LOGGER.warning("Discord gateway stopped: {!r}", exception)
            self._signal_disconnected(str(exception) or type(exception).__name__)
            return
        self._signal_disconnected("Gateway closed")

    async def _handle_discord_disconnect(self) -> None:
        self._signal_disconnected("Gateway connection lost")

    async def _handle_discord_message(self, message: discord.Message) -> None:
        if self._listener is None or not self._ready:
            return
        self._listener.on_inbound(inbound_event_from_message(message))

    async def _close_client(self, client: DiscordGatewayClient) -> None:
        with contextlib.suppress(Exception):
            await client.close()

    async def start(self, token: str) -> str:
        token = normalize_token(token)
        if not token:
            raise AuthenticationFailure("No bot token configured.")
        shape_error = token_shape_error(token)
        if shape_error is not None:
            raise AuthenticationFailure(shape_error)

        await self.stop()
        generation = self._generation

        client = DiscordGatewayClient(
            message_callback=self._handle_discord_message,
            disconnect_callback=self._handle_discord_disconnect,
        )

        try:
            await client.login(token)
        except discord.LoginFailure as exc:
            await self._close_client(client)
            raise AuthenticationFailure("Invalid token.") from exc
        except discord.HTTPException as exc:
            await self._close_client(client)
            if exc.status == 401:
                raise AuthenticationFailure("Invalid token.") from exc
            raise NetworkFailure("Discord API request failed while validating the token.") from exc
        except (aiohttp.ClientError, OSError) as exc:
            await self._close_client(client)
            raise NetworkFailure("Discord is unreachable.") from exc

        if client.user is None:
            await self._close_client(client)
            raise NetworkFailure("Discord did not return account details.")

        if self._generation != generation:
            await self._close_client(client)
            raise NetworkFailure("Connection attempt was stopped.")

        self._client = client
        gateway_task = asyncio.create_task(
            client.connect(reconnect=False), name="discord_gateway"
        )
        self._gateway_task = gateway_task
        gateway_task.add_done_callback(self._handle_gateway_task_done)

        ready_task = asyncio.create_task(client.ready_event.wait())
        done, pending = await asyncio.wait(
            {ready_task, gateway_task},
            timeout=self._connect_timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )

        if ready_task in done and client.ready_event.is_set() and self._client is client:
            self._ready = True
            return client.user.name

        if ready_task in pending:
            ready_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await ready_task

        failure_message = "Timed out connecting to the Discord gateway."
        if gateway_task in done and not gateway_task.cancelled():
            gateway_exception = gateway_task.exception()
            code = getattr(gateway_exception, "code", None)
            if isinstance(gateway_exception, discord.PrivilegedIntentsRequired) or (
                code == PRIVILEGED_INTENTS_CLOSE_CODE
            ):
                failure_message = (
                    "Gateway rejected requested intents. Enable the Message Content intent "
                    "for your Application in the Discord Developer Portal."
                )
            else:
                failure_message = "Failed to connect to the Discord gateway."
        elif self._client is not client:
            failure_message = "Connection attempt was stopped."

        await self.stop()
        raise NetworkFailure(failure_message)

    async def stop(self) -> None:
        gateway_task = self._gateway_task
        client = self._client
        self._gateway_task = None
        self._client = None
        self._ready = False
        self._generation += 1

        if client is not None:
            await self._close_client(client)

        if gateway_task is not None:
            if not gateway_task.done():
                gateway_task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await gateway_task

    async def resolve_user(self, peer_id: str) -> discord.abc.User:
        client = self._require_client()
        try:
            user_id = int(peer_id)
        except (TypeError, ValueError) as exc:
            raise SendFailure("Peer id is not a numeric Discord user id.") from exc

        user = client.get_user(user_id)
        if user is not None:
            return user
        try:
            return await client.fetch_user(user_id)
        except discord.NotFound as exc:
            raise SendFailure("Peer user was not found.") from exc
        except discord.HTTPException as exc:
            raise SendFailure("Failed to fetch peer details from Discord.") from exc
        except aiohttp.ClientError as exc:
            raise SendFailure("Discord is unreachable.") from exc

    async def send_direct_message(self, recipient: discord.abc.User, text: str) -> None:
        self._require_client()
        try:
            await recipient.send(text)
        except discord.Forbidden as exc:
            raise SendFailure("Peer does not accept direct messages from this bot.") from exc
        except discord.HTTPException as exc:
            raise SendFailure("Discord API rejected the message send request.") from exc
        except aiohttp.ClientError as exc:
            raise SendFailure("Discord is unreachable.") from exc
