from __future__ import annotations

import asyncio
import sys
from typing import Optional

from PySide6.QtGui import QGuiApplication
from PySide6.QtWidgets import QApplication, QMessageBox
from qasync import QEventLoop

from notebridge import logger as app_logger
from notebridge.bridge import Bridge
from notebridge.config import ConfigStore, TokenStore
from notebridge.window import NoteWindow

APP_NAME = "NoteBridge"

_LOGGER = app_logger.get_logger()


class NoteBridgeController:
    """
    Loads configuration, builds the bridge and its window, then connects.
    """

    def __init__(self, app: QApplication, config_store: Optional[ConfigStore] = None) -> None:
        self._app = app
        self._config_store = config_store or ConfigStore(token_store=TokenStore())
        self._bridge: Optional[Bridge] = None
        self._window: Optional[NoteWindow] = None

    def _place_window(self, window: NoteWindow) -> None:
        screen = QGuiApplication.primaryScreen()
        if screen is None:
            return
        area = screen.availableGeometry()
        window.move(area.right() - window.width() - 50, area.top() + 50)

    async def bootstrap(self) -> None:
        config = await self._config_store.load()
        self._bridge = Bridge.initialize(config.credentials, settings=config.settings)

        self._window = NoteWindow(self._bridge)
        self._place_window(self._window)
        self._window.show()

        outcome = await self._bridge.connect_async()
        if not outcome.connected:
            _LOGGER.warning("Discord connection not established: {} ({})", outcome.reason, outcome.detail)

    async def shutdown(self) -> None:
        if self._bridge is not None:
            await self._bridge.shutdown()


def main() -> None:
    app_logger.configure()

    app = QApplication(sys.argv)
    app.setApplicationName(APP_NAME)

    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)

    controller = NoteBridgeController(app)
    quit_event = asyncio.Event()
    app.aboutToQuit.connect(quit_event.set)

    with loop:
        startup_task = loop.create_task(controller.bootstrap())

        def _observe_startup(task: asyncio.Task[None]) -> None:
            if task.cancelled():
                return
            error = task.exception()
            if error is None:
                return
            _LOGGER.opt(exception=error).error("Startup failed")
            QMessageBox.critical(None, "Startup Error", str(error))
            app.quit()

        startup_task.add_done_callback(_observe_startup)

        loop.run_until_complete(quit_event.wait())
        loop.run_until_complete(controller.shutdown())


if __name__ == "__main__":
    main()
