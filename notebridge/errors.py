from __future__ import annotations


class NoteBridgeError(Exception):
    """Base exception for NoteBridge."""

    @property
    def kind(self) -> str:
        return type(self).__name__


class ConfigurationError(NoteBridgeError):
    """Raised when the bridge is disabled or credentials are missing."""


class AuthenticationFailure(NoteBridgeError):
    """Raised when Discord rejects the bot token."""


class NetworkFailure(NoteBridgeError):
    """Raised when the Discord gateway is unreachable or drops mid-session."""


class NotConnected(NoteBridgeError):
    """Raised when a send is attempted outside the connected state."""


class SendFailure(NoteBridgeError):
    """Raised when Discord rejects or times out a direct message."""


class TokenStoreError(NoteBridgeError):
    """Raised when keychain operations fail."""
