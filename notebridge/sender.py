from __future__ import annotations

import asyncio

from notebridge.connection import ConnectionManager
from notebridge.errors import NoteBridgeError, NotConnected, SendFailure
from notebridge.logger import get_logger
from notebridge.models import ConnectionState, SendOutcome
from notebridge.transport import Transport

_LOGGER = get_logger()


class OutboundSender:
    """
    Delivers one note to the configured peer. Faults never escape ``send``;
    they come back as a failed ``SendOutcome``.
    """

    def __init__(
        self,
        transport: Transport,
        connection: ConnectionManager,
        peer_id: str,
        *,
        send_timeout: float = 15.0,
    ) -> None:
        self._transport = transport
        self._connection = connection
        self._peer_id = peer_id
        self._send_timeout = send_timeout

    async def _deliver(self, text: str) -> None:
        recipient = await self._transport.resolve_user(self._peer_id)
        await self._transport.send_direct_message(recipient, text)

    async def send(self, text: str) -> SendOutcome:
        if self._connection.current_state() is not ConnectionState.CONNECTED:
            return SendOutcome(sent=False, reason=NotConnected.__name__, detail="Not connected to Discord")
        if not self._peer_id:
            return SendOutcome(sent=False, reason=NotConnected.__name__, detail="No peer configured")

        try:
            await asyncio.wait_for(self._deliver(text), timeout=self._send_timeout)
        except asyncio.TimeoutError:
            _LOGGER.warning("Send timed out after {}s", self._send_timeout)
            return SendOutcome(sent=False, reason=SendFailure.__name__, detail="Timed out sending message")
        except NotConnected as exc:
            return SendOutcome(sent=False, reason=exc.kind, detail=str(exc))
        except NoteBridgeError as exc:
            _LOGGER.warning("Send failed: {}", exc)
            return SendOutcome(sent=False, reason=SendFailure.__name__, detail=str(exc))
        except Exception as exc:
            _LOGGER.exception("Unexpected transport fault while sending")
            return SendOutcome(
                sent=False, reason=SendFailure.__name__, detail=str(exc) or type(exc).__name__
            )

        _LOGGER.debug("Sent {} characters to peer", len(text))
        return SendOutcome(sent=True)
