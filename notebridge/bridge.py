"""
Composition root that wires the connection, filter, notification and status
components together and exposes them to a display layer.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Callable, Optional

from notebridge.config import BridgeSettings, Credentials
from notebridge.connection import ConnectionManager
from notebridge.errors import ConfigurationError, NotConnected
from notebridge.events import EventBus
from notebridge.logger import get_logger
from notebridge.message_filter import filter_message
from notebridge.models import (
    BadgeChanged,
    ConnectionChanged,
    ConnectionState,
    ConnectOutcome,
    InboundEvent,
    MessageReceived,
    SendOutcome,
    StatusChanged,
)
from notebridge.notifications import NotificationCoordinator
from notebridge.sender import OutboundSender
from notebridge.status_line import Scheduler, StatusLine
from notebridge.transport import DiscordTransport, Transport

_LOGGER = get_logger()

EMPTY_MESSAGE_REASON = "EmptyMessage"
MESSAGE_SENT_STATUS = "Message sent"


class Bridge:
    def __init__(
        self,
        credentials: Credentials,
        transport: Transport,
        *,
        settings: Optional[BridgeSettings] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._credentials = credentials
        self._settings = settings or BridgeSettings()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._input_enabled = False
        self._inflight_sends: set[asyncio.Task[SendOutcome]] = set()
        self._shut_down = False

        self.events = EventBus()
        self._status_line = StatusLine(
            self._publish_status,
            scheduler=scheduler,
            expiry_seconds=self._settings.status_expiry,
        )
        self._notifications = NotificationCoordinator(self.events.publish)
        self._connection = ConnectionManager(
            transport,
            credentials,
            status_listener=self._on_connection_status,
            inbound_listener=self._on_inbound,
        )
        self._sender = OutboundSender(
            transport,
            self._connection,
            credentials.peer_id,
            send_timeout=self._settings.send_timeout,
        )

    @classmethod
    def initialize(
        cls,
        credentials: Credentials,
        transport: Optional[Transport] = None,
        *,
        settings: Optional[BridgeSettings] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> "Bridge":
        """
        Build the engine and start event delivery on the running loop.
        Does not connect; call ``connect_async`` for that.
        """

        settings = settings or BridgeSettings()
        if transport is None:
            transport = DiscordTransport(connect_timeout=settings.connect_timeout)
        bridge = cls(credentials, transport, settings=settings, scheduler=scheduler)
        bridge._loop = asyncio.get_running_loop()
        bridge.events.start()
        _LOGGER.debug("Bridge initialized with {!r}", credentials)
        return bridge

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection.current_state()

    @property
    def input_enabled(self) -> bool:
        return self._input_enabled

    @property
    def unread_count(self) -> int:
        return self._notifications.unread_count

    @property
    def status(self) -> str:
        return self._status_line.current

    # Consumer subscriptions

    def on_message_received(self, handler: Callable[[str, datetime], Any]) -> Callable[[], None]:
        return self.events.subscribe(
            MessageReceived, lambda event: handler(event.content, event.timestamp)
        )

    def on_status_changed(self, handler: Callable[[str], Any]) -> Callable[[], None]:
        return self.events.subscribe(StatusChanged, lambda event: handler(event.message))

    def on_badge_changed(self, handler: Callable[[int, bool], Any]) -> Callable[[], None]:
        return self.events.subscribe(
            BadgeChanged, lambda event: handler(event.count, event.visible)
        )

    def on_connection_changed(
        self, handler: Callable[[ConnectionState, bool], Any]
    ) -> Callable[[], None]:
        return self.events.subscribe(
            ConnectionChanged, lambda event: handler(event.state, event.input_enabled)
        )

    # Internal wiring

    def _publish_status(self, message: str) -> None:
        self.events.publish(StatusChanged(message=message))

    def _on_connection_status(self, state: ConnectionState, status: str) -> None:
        self._input_enabled = state is ConnectionState.CONNECTED
        # Only the "connected" banner fades; failures and offline states stay visible.
        self._status_line.set(status, transient=state is ConnectionState.CONNECTED)
        self.events.publish(ConnectionChanged(state=state, input_enabled=self._input_enabled))

    def _on_inbound(self, event: InboundEvent) -> None:
        message = filter_message(event, self._credentials.peer_id)
        if message is None:
            _LOGGER.debug("Discarded inbound message from {}", event.sender_id)
            return
        self._notifications.on_message(message)

    # Consumer operations

    async def connect_async(self) -> ConnectOutcome:
        outcome = await self._connection.connect()
        if not outcome.connected and outcome.reason == ConfigurationError.__name__:
            self._status_line.set(outcome.detail, transient=False)
        return outcome

    async def disconnect_async(self) -> None:
        await self._connection.disconnect()

    async def send_note(self, text: str) -> SendOutcome:
        note = (text or "").strip()
        if not note:
            return SendOutcome(sent=False, reason=EMPTY_MESSAGE_REASON, detail="Nothing to send")

        task = asyncio.get_running_loop().create_task(self._sender.send(note))
        self._inflight_sends.add(task)
        task.add_done_callback(self._inflight_sends.discard)
        # Sends are not cancellable once issued.
        outcome = await asyncio.shield(task)

        if self._shut_down:
            return outcome
        if outcome.sent:
            self._status_line.set(MESSAGE_SENT_STATUS)
        elif outcome.reason == NotConnected.__name__:
            self._status_line.set(outcome.detail)
        else:
            self._status_line.set(f"Send failed: {outcome.detail}")
        return outcome

    def notify_focus_changed(self, focused: bool, visible: bool, minimized: bool) -> None:
        self._notifications.on_focus_changed(focused, visible, minimized)

    def notify_focus_changed_threadsafe(self, focused: bool, visible: bool, minimized: bool) -> None:
        if self._loop is None:
            raise RuntimeError("Bridge.initialize() has not been called.")
        self._loop.call_soon_threadsafe(self.notify_focus_changed, focused, visible, minimized)

    async def shutdown(self) -> None:
        if self._shut_down:
            return
        self._shut_down = True

        pending = {task for task in self._inflight_sends if not task.done()}
        if pending:
            _, still_pending = await asyncio.wait(pending, timeout=self._settings.shutdown_grace)
            if still_pending:
                _LOGGER.warning("Abandoning {} in-flight send(s) at shutdown", len(still_pending))

        await self._connection.disconnect()
        self._status_line.cancel()
        await self.events.close()
