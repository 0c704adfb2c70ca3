"""Shared fakes for bridge tests: an in-memory transport and a manual clock."""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

import pytest

from notebridge.bridge import Bridge
from notebridge.config import BridgeSettings, Credentials
from notebridge.models import InboundEvent

PEER_ID = "123456789012345678"


class FakeTransport:
    """Transport double that records calls and can be paused or made to fail."""

    def __init__(self, identity: str = "notebot") -> None:
        self.listener = None
        self.identity = identity
        self.start_calls = 0
        self.stop_calls = 0
        self.live = False
        self.resolve_calls = 0
        self.sent: list[tuple[object, str]] = []
        self.start_error: Optional[Exception] = None
        self.stop_error: Optional[Exception] = None
        self.resolve_error: Optional[Exception] = None
        self.send_error: Optional[Exception] = None
        self.start_gate: Optional[asyncio.Event] = None
        self.send_gate: Optional[asyncio.Event] = None

    def set_listener(self, listener) -> None:
        self.listener = listener

    async def start(self, token: str) -> str:
        self.start_calls += 1
        if self.start_gate is not None:
            await self.start_gate.wait()
        if self.start_error is not None:
            raise self.start_error
        self.live = True
        return self.identity

    async def stop(self) -> None:
        self.stop_calls += 1
        self.live = False
        if self.stop_error is not None:
            raise self.stop_error

    async def resolve_user(self, peer_id: str) -> object:
        self.resolve_calls += 1
        if self.resolve_error is not None:
            raise self.resolve_error
        return f"user:{peer_id}"

    async def send_direct_message(self, recipient: object, text: str) -> None:
        if self.send_gate is not None:
            await self.send_gate.wait()
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((recipient, text))

    @property
    def contacted(self) -> bool:
        return bool(self.start_calls or self.resolve_calls or self.sent)

    def deliver(self, event: InboundEvent) -> None:
        self.listener.on_inbound(event)

    def drop(self, reason: str = "connection reset") -> None:
        self.listener.on_transport_disconnected(reason)


class ManualTimer:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """call_later() on a clock that only moves when the test says so."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[ManualTimer] = []

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        for timer in sorted(self.pending, key=lambda t: t.when):
            if timer.when <= self.now:
                timer.fired = True
                timer.callback()


def dm_from(sender_id: str = PEER_ID, content: str = "hi", *, direct: bool = True, bot: bool = False) -> InboundEvent:
    return InboundEvent(
        sender_id=sender_id,
        content=content,
        timestamp=datetime(2024, 12, 3, 9, 30, tzinfo=timezone.utc),
        is_direct_message=direct,
        is_from_bot=bot,
    )


@pytest.fixture
def credentials():
    return Credentials(token="a.b.c", peer_id=PEER_ID, enabled=True)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
async def bridge(credentials, transport, scheduler):
    instance = Bridge.initialize(
        credentials,
        transport,
        settings=BridgeSettings(send_timeout=1.0, shutdown_grace=0.05),
        scheduler=scheduler,
    )
    yield instance
    await instance.shutdown()


class Recorder:
    """Collects bridge events as (stream, payload) tuples in delivery order."""

    def __init__(self, bridge: Bridge) -> None:
        self.events: list[tuple] = []
        bridge.on_status_changed(lambda message: self.events.append(("status", message)))
        bridge.on_message_received(
            lambda content, timestamp: self.events.append(("message", content))
        )
        bridge.on_badge_changed(
            lambda count, visible: self.events.append(("badge", count, visible))
        )
        bridge.on_connection_changed(
            lambda state, enabled: self.events.append(("connection", state, enabled))
        )

    def of(self, stream: str) -> list[tuple]:
        return [event for event in self.events if event[0] == stream]


@pytest.fixture
def recorder(bridge):
    return Recorder(bridge)
