"""
Connection lifecycle for the Discord session.

DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED (remote drop), and
CONNECTING/CONNECTED -> DISCONNECTING -> DISCONNECTED (local disconnect).
Every transition reports exactly one status string to the status listener.
Reconnecting after a remote drop is left to the caller.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from notebridge.config import Credentials
from notebridge.errors import ConfigurationError, NetworkFailure, NoteBridgeError
from notebridge.logger import get_logger
from notebridge.models import ConnectionState, ConnectOutcome, InboundEvent
from notebridge.transport import Transport

_LOGGER = get_logger()

StatusListener = Callable[[ConnectionState, str], None]
InboundListener = Callable[[InboundEvent], None]


class ConnectionManager:
    def __init__(
        self,
        transport: Transport,
        credentials: Credentials,
        *,
        status_listener: Optional[StatusListener] = None,
        inbound_listener: Optional[InboundListener] = None,
    ) -> None:
        self._transport = transport
        self._credentials = credentials
        self._status_listener = status_listener
        self._inbound_listener = inbound_listener
        self._state = ConnectionState.DISCONNECTED
        self._identity: Optional[str] = None
        self._attempt = 0
        self._connect_task: Optional[asyncio.Task[ConnectOutcome]] = None
        self._disconnect_task: Optional[asyncio.Task[None]] = None
        self._release_task: Optional[asyncio.Task[None]] = None
        transport.set_listener(self)

    @property
    def identity(self) -> Optional[str]:
        return self._identity

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    def current_state(self) -> ConnectionState:
        return self._state

    def _transition(self, state: ConnectionState, status: str) -> None:
        previous = self._state
        self._state = state
        _LOGGER.info("Connection {} -> {}: {}", previous.value, state.value, status)
        if self._status_listener is not None:
            self._status_listener(state, status)

    async def connect(self) -> ConnectOutcome:
        if self._state is ConnectionState.CONNECTED:
            return ConnectOutcome(connected=True)

        if self._state is ConnectionState.CONNECTING and self._connect_task is not None:
            # Coalesce into the attempt already in flight.
            return await asyncio.shield(self._connect_task)

        if self._state is ConnectionState.DISCONNECTING and self._disconnect_task is not None:
            await asyncio.shield(self._disconnect_task)
            return await self.connect()

        if self._release_task is not None:
            # Let the dropped session finish closing before logging in again.
            await asyncio.shield(self._release_task)
            return await self.connect()

        if not self._credentials.usable:
            error = ConfigurationError("Discord disabled in config")
            _LOGGER.info("Not connecting: {}", error)
            return ConnectOutcome(connected=False, reason=error.kind, detail=str(error))

        self._attempt += 1
        self._transition(ConnectionState.CONNECTING, "Connecting to Discord...")
        task = asyncio.get_running_loop().create_task(
            self._run_connect(self._attempt), name="notebridge_connect"
        )
        self._connect_task = task
        return await asyncio.shield(task)

    def _is_current_attempt(self, attempt: int) -> bool:
        return self._attempt == attempt and self._state is ConnectionState.CONNECTING

    def _fail_connect(self, attempt: int, kind: str, detail: str) -> ConnectOutcome:
        if self._is_current_attempt(attempt):
            self._transition(ConnectionState.DISCONNECTED, f"Connection failed: {detail}")
        return ConnectOutcome(connected=False, reason=kind, detail=detail)

    async def _run_connect(self, attempt: int) -> ConnectOutcome:
        try:
            identity = await self._transport.start(self._credentials.token)
        except NoteBridgeError as exc:
            return self._fail_connect(attempt, exc.kind, str(exc))
        except Exception as exc:
            _LOGGER.exception("Unexpected transport fault while connecting")
            return self._fail_connect(
                attempt, NetworkFailure.__name__, str(exc) or type(exc).__name__
            )
        finally:
            if self._attempt == attempt:
                self._connect_task = None

        if not self._is_current_attempt(attempt):
            # disconnect() took over while the login was in flight; the session
            # it opened is closed unless a newer attempt now owns the transport.
            if self._state not in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
                await self._stop_transport()
            return ConnectOutcome(
                connected=False,
                reason=NetworkFailure.__name__,
                detail="Connection attempt was cancelled.",
            )

        self._identity = identity
        self._transition(ConnectionState.CONNECTED, f"Connected as {identity}")
        return ConnectOutcome(connected=True)

    async def _stop_transport(self) -> None:
        try:
            await self._transport.stop()
        except Exception:
            _LOGGER.exception("Error while disconnecting from Discord")

    async def disconnect(self) -> None:
        if self._state is ConnectionState.DISCONNECTED:
            if self._release_task is not None:
                await asyncio.shield(self._release_task)
            return
        if self._disconnect_task is not None:
            await asyncio.shield(self._disconnect_task)
            return

        # Invalidate any login still in flight.
        self._attempt += 1
        self._connect_task = None
        self._transition(ConnectionState.DISCONNECTING, "Disconnecting...")
        task = asyncio.get_running_loop().create_task(
            self._run_disconnect(), name="notebridge_disconnect"
        )
        self._disconnect_task = task
        await asyncio.shield(task)

    async def _run_disconnect(self) -> None:
        try:
            await self._stop_transport()
        finally:
            self._disconnect_task = None
            self._identity = None
            self._transition(ConnectionState.DISCONNECTED, "Disconnected")

    async def _release_dropped_session(self) -> None:
        try:
            await self._stop_transport()
        finally:
            self._release_task = None

    # TransportListener

    def on_transport_disconnected(self, reason: str) -> None:
        if self._state is not ConnectionState.CONNECTED:
            _LOGGER.debug("Ignoring transport disconnect in state {}: {}", self._state.value, reason)
            return
        _LOGGER.warning("Discord connection lost: {}", reason)
        self._identity = None
        self._transition(ConnectionState.DISCONNECTED, "Disconnected from Discord")
        self._release_task = asyncio.get_running_loop().create_task(
            self._release_dropped_session(), name="notebridge_release"
        )

    def on_inbound(self, event: InboundEvent) -> None:
        if self._state is not ConnectionState.CONNECTED:
            _LOGGER.debug("Dropping inbound event received while {}", self._state.value)
            return
        if self._inbound_listener is not None:
            self._inbound_listener(event)
