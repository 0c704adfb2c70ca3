from __future__ import annotations

from typing import Optional

from notebridge.models import InboundEvent, RelevantMessage


def is_relevant(event: InboundEvent, peer_id: str) -> bool:
    """
    True only for a direct message authored by the configured peer, who must
    be a human account. Identity comparison is exact.
    """

    if not peer_id:
        return False
    return event.is_direct_message and event.sender_id == peer_id and not event.is_from_bot


def filter_message(event: InboundEvent, peer_id: str) -> Optional[RelevantMessage]:
    if not is_relevant(event, peer_id):
        return None
    return RelevantMessage(content=event.content, timestamp=event.timestamp)
