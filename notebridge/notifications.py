"""
Unread badge bookkeeping driven by incoming messages and window focus.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from notebridge.models import BadgeChanged, MessageReceived, RelevantMessage

BADGE_CAP = 9


def badge_label(count: int) -> str:
    if count <= 0:
        return ""
    if count > BADGE_CAP:
        return f"{BADGE_CAP}+"
    return str(count)


@dataclass
class NotificationState:
    unread_count: int = 0
    focused: bool = False
    visible: bool = True
    minimized: bool = False

    @property
    def attended(self) -> bool:
        return self.focused and self.visible and not self.minimized


class NotificationCoordinator:
    def __init__(self, publish: Callable[[Any], None], state: Optional[NotificationState] = None) -> None:
        self._publish = publish
        self._state = state or NotificationState()

    @property
    def state(self) -> NotificationState:
        return self._state

    @property
    def unread_count(self) -> int:
        return self._state.unread_count

    def _publish_badge(self) -> None:
        count = self._state.unread_count
        self._publish(BadgeChanged(count=count, visible=count > 0, label=badge_label(count)))

    def on_message(self, message: RelevantMessage) -> None:
        self._publish(MessageReceived(content=message.content, timestamp=message.timestamp))
        if self._state.attended:
            return
        self._state.unread_count += 1
        self._publish_badge()

    def on_focus_changed(self, focused: bool, visible: bool, minimized: bool) -> None:
        self._state.focused = focused
        self._state.visible = visible
        self._state.minimized = minimized
        if not self._state.attended:
            # Losing attention never changes the badge by itself.
            return
        if self._state.unread_count == 0:
            return
        self._state.unread_count = 0
        self._publish_badge()
