"""
Sticky-note window: shows the peer's messages and relays typed notes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from PySide6.QtCore import QEvent, Qt
from PySide6.QtGui import QCloseEvent, QKeyEvent, QTextCursor
from PySide6.QtWidgets import QLabel, QPlainTextEdit, QVBoxLayout, QWidget
from qasync import asyncSlot

from notebridge.bridge import Bridge
from notebridge.models import ConnectionState
from notebridge.notifications import badge_label

WINDOW_TITLE = "Notes"
INPUT_PLACEHOLDER = "Type action item..."


def clock_text(timestamp: datetime) -> str:
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone()
    return timestamp.strftime("%H:%M")


def format_incoming_line(content: str, timestamp: datetime) -> str:
    return f"TODO: {clock_text(timestamp)} - {content}"


def format_outgoing_line(text: str, timestamp: datetime) -> str:
    return f"ACTION ITEM: {clock_text(timestamp)} - {text}"


def window_title(unread_count: int) -> str:
    label = badge_label(unread_count)
    if not label:
        return WINDOW_TITLE
    return f"({label}) {WINDOW_TITLE}"


def header_text(status: str, unread_count: int) -> str:
    return f"{window_title(unread_count)} ({status})"


class NoteWindow(QWidget):
    """
    Frameless note that pushes its focus/visibility state into the bridge.
    """

    def __init__(self, bridge: Bridge, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._bridge = bridge
        self._drag_offset = None
        self._status = bridge.status
        self._unread_count = 0

        self.setWindowTitle(WINDOW_TITLE)
        self.setWindowFlags(Qt.Window | Qt.FramelessWindowHint | Qt.WindowStaysOnTopHint)
        self.resize(320, 380)
        self.setStyleSheet(
            """
            QWidget {
                background-color: #FFF59D;
                color: #2C5234;
                font-family: "Segoe Print", "Comic Sans MS", sans-serif;
            }
            QLabel#headerLabel {
                font-weight: 600;
                padding: 4px 2px;
            }
            QPlainTextEdit {
                background-color: #FFF9C4;
                border: 1px solid #E6D96A;
                border-radius: 4px;
                padding: 4px;
            }
            QPlainTextEdit:disabled {
                color: #8A8A5C;
            }
            """
        )

        root = QVBoxLayout(self)
        root.setContentsMargins(10, 10, 10, 10)
        root.setSpacing(6)

        self.header_label = QLabel(header_text(self._status, self._unread_count))
        self.header_label.setObjectName("headerLabel")

        self.messages_view = QPlainTextEdit()
        self.messages_view.setReadOnly(True)

        self.input_box = QPlainTextEdit()
        self.input_box.setPlaceholderText(INPUT_PLACEHOLDER)
        self.input_box.setFixedHeight(70)
        self.input_box.installEventFilter(self)
        self.input_box.setEnabled(bridge.input_enabled)

        root.addWidget(self.header_label)
        root.addWidget(self.messages_view, 1)
        root.addWidget(self.input_box)

        bridge.on_status_changed(self.set_connection_status)
        bridge.on_message_received(self.handle_incoming_message)
        bridge.on_badge_changed(self.handle_badge_changed)
        bridge.on_connection_changed(self.handle_connection_changed)

    # Bridge event handlers

    def _refresh_header(self) -> None:
        self.header_label.setText(header_text(self._status, self._unread_count))
        self.setWindowTitle(window_title(self._unread_count))

    def set_connection_status(self, status: str) -> None:
        self._status = status
        self._refresh_header()

    def handle_incoming_message(self, content: str, timestamp: datetime) -> None:
        self.append_line(format_incoming_line(content, timestamp))

    def handle_badge_changed(self, count: int, visible: bool) -> None:
        # Frameless, so the header carries the badge as well as the title.
        self._unread_count = count if visible else 0
        self._refresh_header()

    def handle_connection_changed(self, state: ConnectionState, input_enabled: bool) -> None:
        self.input_box.setEnabled(input_enabled)

    def append_line(self, text: str) -> None:
        self.messages_view.appendPlainText(f"• {text}")
        cursor = self.messages_view.textCursor()
        cursor.movePosition(QTextCursor.End)
        self.messages_view.setTextCursor(cursor)

    # Focus and visibility

    def _push_focus_state(self) -> None:
        self._bridge.notify_focus_changed(
            self.isActiveWindow(),
            self.isVisible(),
            self.isMinimized(),
        )

    def changeEvent(self, event: QEvent) -> None:
        super().changeEvent(event)
        if event.type() in (QEvent.Type.ActivationChange, QEvent.Type.WindowStateChange):
            self._push_focus_state()

    def showEvent(self, event) -> None:
        super().showEvent(event)
        self._push_focus_state()

    def hideEvent(self, event) -> None:
        super().hideEvent(event)
        self._push_focus_state()

    # Input

    def eventFilter(self, watched: object, event: QEvent) -> bool:
        if watched is self.input_box and event.type() == QEvent.Type.KeyPress:
            key_event: QKeyEvent = event  # type: ignore[assignment]
            is_enter = key_event.key() in (Qt.Key_Return, Qt.Key_Enter)
            if is_enter and key_event.modifiers() & Qt.ControlModifier:
                self._on_send_requested()
                return True
        return super().eventFilter(watched, event)

    def keyPressEvent(self, event: QKeyEvent) -> None:
        if event.key() == Qt.Key_Escape:
            self.showMinimized()
            return
        super().keyPressEvent(event)

    def mousePressEvent(self, event) -> None:
        if event.button() == Qt.LeftButton:
            self._drag_offset = event.globalPosition().toPoint() - self.frameGeometry().topLeft()
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event) -> None:
        if self._drag_offset is not None and event.buttons() & Qt.LeftButton:
            self.move(event.globalPosition().toPoint() - self._drag_offset)
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event) -> None:
        self._drag_offset = None
        super().mouseReleaseEvent(event)

    @asyncSlot()
    async def _on_send_requested(self) -> None:
        text = self.input_box.toPlainText().strip()
        if not text:
            return

        self.append_line(format_outgoing_line(text, datetime.now()))
        self.input_box.clear()

        outcome = await self._bridge.send_note(text)
        if not outcome.sent:
            self.append_line(f"ERROR: {outcome.detail or 'Failed to send message'}")

    def closeEvent(self, event: QCloseEvent) -> None:
        self.input_box.removeEventFilter(self)
        super().closeEvent(event)
