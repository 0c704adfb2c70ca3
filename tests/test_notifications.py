"""Unit tests for unread badge bookkeeping."""

from datetime import datetime

import pytest

from notebridge.models import BadgeChanged, MessageReceived, RelevantMessage
from notebridge.notifications import NotificationCoordinator, NotificationState, badge_label


def message(content="hi"):
    return RelevantMessage(content=content, timestamp=datetime(2024, 12, 3, 9, 30))


@pytest.fixture
def published():
    return []


@pytest.fixture
def coordinator(published):
    return NotificationCoordinator(published.append)


class TestBadgeLabel:
    @pytest.mark.parametrize(
        "count,label",
        [(0, ""), (1, "1"), (9, "9"), (10, "9+"), (250, "9+")],
    )
    def test_label(self, count, label):
        assert badge_label(count) == label


class TestOnMessage:
    def test_message_is_always_forwarded(self, coordinator, published):
        coordinator.on_focus_changed(True, True, False)

        coordinator.on_message(message("hello"))

        assert published == [MessageReceived(content="hello", timestamp=message().timestamp)]
        assert coordinator.unread_count == 0

    def test_unfocused_window_counts_unread(self, coordinator, published):
        coordinator.on_message(message())
        coordinator.on_message(message())

        assert coordinator.unread_count == 2
        assert published[-1] == BadgeChanged(count=2, visible=True, label="2")

    @pytest.mark.parametrize(
        "focused,visible,minimized",
        [(False, True, False), (True, False, False), (True, True, True)],
    )
    def test_any_inattentive_condition_counts(self, coordinator, focused, visible, minimized):
        coordinator.on_focus_changed(focused, visible, minimized)

        coordinator.on_message(message())

        assert coordinator.unread_count == 1

    def test_count_past_cap_is_stored_exactly(self, coordinator, published):
        for _ in range(12):
            coordinator.on_message(message())

        assert coordinator.unread_count == 12
        assert published[-1] == BadgeChanged(count=12, visible=True, label="9+")


class TestFocus:
    def test_focus_gained_resets_and_hides_badge(self, coordinator, published):
        coordinator.on_message(message())
        coordinator.on_message(message())
        published.clear()

        coordinator.on_focus_changed(True, True, False)

        assert coordinator.unread_count == 0
        assert published == [BadgeChanged(count=0, visible=False, label="")]

    def test_focus_while_minimized_does_not_reset(self, coordinator, published):
        coordinator.on_message(message())
        published.clear()

        coordinator.on_focus_changed(True, True, True)

        assert coordinator.unread_count == 1
        assert published == []

    def test_focus_lost_changes_nothing(self, coordinator, published):
        coordinator.on_message(message())
        published.clear()

        coordinator.on_focus_changed(False, True, False)
        coordinator.on_focus_changed(False, False, False)

        assert coordinator.unread_count == 1
        assert published == []

    def test_count_restarts_after_reset(self, coordinator):
        for _ in range(3):
            coordinator.on_message(message())
        coordinator.on_focus_changed(True, True, False)
        coordinator.on_focus_changed(False, True, False)

        coordinator.on_message(message())

        assert coordinator.unread_count == 1

    def test_initial_state_is_visible_but_unfocused(self):
        state = NotificationState()

        assert state.unread_count == 0
        assert state.visible and not state.focused and not state.minimized
        assert not state.attended
