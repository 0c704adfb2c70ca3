"""
Flat JSON configuration plus keychain-backed token lookup.
"""

from __future__ import annotations

import asyncio
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import keyring
from keyring.errors import KeyringError

from notebridge.errors import TokenStoreError
from notebridge.logger import get_logger

_LOGGER = get_logger()

CONFIG_ENV_VAR = "NOTEBRIDGE_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".notebridge" / "config.json"


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser()
    return DEFAULT_CONFIG_PATH


@dataclass(frozen=True)
class Credentials:
    token: str = ""
    peer_id: str = ""
    enabled: bool = False

    @property
    def usable(self) -> bool:
        return self.enabled and bool(self.token)

    def __repr__(self) -> str:
        # Never render the token.
        masked = "***" if self.token else ""
        return f"Credentials(token={masked!r}, peer_id={self.peer_id!r}, enabled={self.enabled!r})"


@dataclass(frozen=True)
class BridgeSettings:
    connect_timeout: float = 30.0
    send_timeout: float = 15.0
    status_expiry: float = 5.0
    shutdown_grace: float = 2.0


@dataclass(frozen=True)
class AppConfig:
    credentials: Credentials = field(default_factory=Credentials)
    settings: BridgeSettings = field(default_factory=BridgeSettings)


@dataclass(frozen=True)
class TokenStore:
    """
    Reads the Discord bot token from the OS keychain when the config file
    leaves it empty.
    """

    service_name: str = "NoteBridge"
    account_name: str = "discord_bot_token"

    async def load_token(self) -> Optional[str]:
        try:
            return await asyncio.to_thread(
                keyring.get_password, self.service_name, self.account_name
            )
        except KeyringError as exc:
            raise TokenStoreError("Unable to read the OS keychain.") from exc


_DEFAULT_PAYLOAD: dict[str, Any] = {
    "discord_token": "",
    "peer_user_id": "",
    "bot_enabled": False,
}


def _as_str(payload: dict, key: str) -> str:
    value = payload.get(key)
    if isinstance(value, bool):
        return ""
    if isinstance(value, int):
        # Discord snowflakes are sometimes pasted unquoted.
        return str(value)
    if isinstance(value, str):
        return value.strip()
    if value is not None:
        _LOGGER.warning("Config value {} has unexpected type {}.", key, type(value).__name__)
    return ""


def _as_bool(payload: dict, key: str, default: bool) -> bool:
    value = payload.get(key)
    if isinstance(value, bool):
        return value
    if value is not None:
        _LOGGER.warning("Config value {} is not a boolean; using {}.", key, default)
    return default


def _as_seconds(payload: dict, key: str, default: float) -> float:
    value = payload.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        _LOGGER.warning("Config value {} must be a positive number; using {}.", key, default)
        return default
    return float(value)


@dataclass(frozen=True)
class ConfigStore:
    """
    Loads the flat key-value config file. A missing or unreadable file yields
    a disabled configuration instead of a startup failure.
    """

    path: Path = field(default_factory=default_config_path)
    token_store: Optional[TokenStore] = None

    def _read_payload(self) -> Optional[dict]:
        if not self.path.exists():
            self._write_defaults()
            return None

        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            _LOGGER.warning("Error loading config {}: {}", self.path, exc)
            return None

        if not isinstance(payload, dict):
            _LOGGER.warning("Config {} is not a JSON object; using defaults.", self.path)
            return None
        return payload

    def _write_defaults(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(_DEFAULT_PAYLOAD, indent=2), encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as exc:
            _LOGGER.warning("Error saving default config {}: {}", self.path, exc)
            return
        _LOGGER.info("Wrote default config to {}", self.path)

    def load_sync(self) -> AppConfig:
        payload = self._read_payload()
        if payload is None:
            return AppConfig()

        defaults = BridgeSettings()
        credentials = Credentials(
            token=_as_str(payload, "discord_token"),
            peer_id=_as_str(payload, "peer_user_id"),
            enabled=_as_bool(payload, "bot_enabled", False),
        )
        settings = BridgeSettings(
            connect_timeout=_as_seconds(payload, "connect_timeout_seconds", defaults.connect_timeout),
            send_timeout=_as_seconds(payload, "send_timeout_seconds", defaults.send_timeout),
            status_expiry=_as_seconds(payload, "status_expiry_seconds", defaults.status_expiry),
            shutdown_grace=_as_seconds(payload, "shutdown_grace_seconds", defaults.shutdown_grace),
        )
        return AppConfig(credentials=credentials, settings=settings)

    async def load(self) -> AppConfig:
        config = await asyncio.to_thread(self.load_sync)
        credentials = config.credentials
        if credentials.token or not credentials.enabled or self.token_store is None:
            return config

        try:
            stored_token = await self.token_store.load_token()
        except TokenStoreError as exc:
            _LOGGER.warning("{}", exc)
            return config
        if not stored_token:
            return config
        return AppConfig(
            credentials=Credentials(
                token=stored_token.strip(),
                peer_id=credentials.peer_id,
                enabled=credentials.enabled,
            ),
            settings=config.settings,
        )
