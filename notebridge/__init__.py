"""
NoteBridge: relays a desktop sticky note to one Discord peer over direct messages.
"""

from notebridge.bridge import Bridge
from notebridge.config import BridgeSettings, Credentials
from notebridge.errors import (
    AuthenticationFailure,
    ConfigurationError,
    NetworkFailure,
    NoteBridgeError,
    NotConnected,
    SendFailure,
)
from notebridge.models import ConnectionState, ConnectOutcome, SendOutcome

__all__ = [
    "AuthenticationFailure",
    "Bridge",
    "BridgeSettings",
    "ConfigurationError",
    "ConnectOutcome",
    "ConnectionState",
    "Credentials",
    "NetworkFailure",
    "NoteBridgeError",
    "NotConnected",
    "SendFailure",
    "SendOutcome",
]
