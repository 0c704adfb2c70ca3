from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


@dataclass(frozen=True)
class InboundEvent:
    """
    One message as seen by the transport, before filtering.
    """

    sender_id: str
    content: str
    timestamp: datetime
    is_direct_message: bool
    is_from_bot: bool


@dataclass(frozen=True)
class RelevantMessage:
    content: str
    timestamp: datetime


@dataclass(frozen=True)
class ConnectOutcome:
    connected: bool
    reason: Optional[str] = None
    detail: str = ""


@dataclass(frozen=True)
class SendOutcome:
    sent: bool
    reason: Optional[str] = None
    detail: str = ""


# Consumer-facing event payloads, delivered in publication order.


@dataclass(frozen=True)
class StatusChanged:
    message: str


@dataclass(frozen=True)
class MessageReceived:
    content: str
    timestamp: datetime


@dataclass(frozen=True)
class BadgeChanged:
    count: int
    visible: bool
    label: str


@dataclass(frozen=True)
class ConnectionChanged:
    state: ConnectionState
    input_enabled: bool
