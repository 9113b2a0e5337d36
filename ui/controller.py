import logging
import threading
from typing import Callable

from PyQt6.QtCore import QObject, QThread, pyqtSignal, pyqtSlot

from core.engine import create_engine
from core.errors import AlreadyRunningError
from core.models import RunConfig, RunEvent, RunMode, RunState
from ui.worker import RunWorker

logger = logging.getLogger(__name__)


class RunController(QObject):
    """
    Owns at most one find/replace run at a time.

    The engine runs on a dedicated QThread. Its events reach the controller
    through queued signal connections, so on_event is always invoked in the
    thread the controller lives in (normally the UI thread), in the order the
    files were processed. Once cancel() has been called, events still queued
    from the worker are dropped.
    """

    # Emitted in the controller's thread after the worker thread has stopped.
    run_finished = pyqtSignal(object)  # RunState
    run_failed = pyqtSignal(str)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)

        # Keep references to avoid garbage-collection while the background thread is running.
        self._thread: QThread | None = None
        self._worker: RunWorker | None = None
        self._cancel_token: threading.Event | None = None
        self._on_event: Callable[[RunEvent], None] | None = None
        self._final_state = RunState.IDLE

    def is_running(self) -> bool:
        return self._thread is not None

    @property
    def state(self) -> RunState:
        return RunState.RUNNING if self.is_running() else self._final_state

    def start(self, config: RunConfig, mode: RunMode, on_event: Callable[[RunEvent], None]) -> None:
        """
        Validate config, then launch the run in the background and return immediately.

        Raises:
            AlreadyRunningError if a run is still active.
            ConfigError if config is invalid (no thread is started).
        """
        if self.is_running():
            raise AlreadyRunningError("A run is already in progress")

        engine = create_engine(config, mode)

        self._cancel_token = threading.Event()
        self._on_event = on_event

        self._thread = QThread()
        self._worker = RunWorker(engine, self._cancel_token)

        # Run the worker in a background thread; communicate back via signals.
        self._worker.moveToThread(self._thread)
        self._thread.started.connect(self._worker.run)

        # Worker -> caller communication (always lands in the controller's thread).
        self._worker.file_processed.connect(self._deliver_event)
        self._worker.finished.connect(self._on_worker_finished)
        self._worker.error.connect(self._on_worker_error)

        # Always stop and clean up the thread when work ends (success or error).
        self._worker.finished.connect(self._thread.quit)
        self._worker.error.connect(self._thread.quit)
        self._thread.finished.connect(self._worker.deleteLater)
        self._thread.finished.connect(self._thread.deleteLater)
        self._thread.finished.connect(self._on_thread_finished)

        logger.debug("Starting %s run in %s", mode.name.lower(), config.root_dir)
        self._thread.start()

    def cancel(self) -> None:
        # No-op when nothing runs or cancel was already requested
        if self._cancel_token is not None and not self._cancel_token.is_set():
            logger.info("Cancellation requested")
            self._cancel_token.set()

    # Block until the worker thread has stopped (used on shutdown).
    def wait(self, timeout_ms: int = 30_000) -> bool:
        if self._thread is None:
            return True

        return self._thread.wait(timeout_ms)

    @pyqtSlot(object)
    def _deliver_event(self, event: RunEvent) -> None:
        if self._cancel_token is not None and self._cancel_token.is_set():
            return

        if self._on_event is not None:
            self._on_event(event)

    @pyqtSlot(object)
    def _on_worker_finished(self, state: RunState) -> None:
        self._final_state = state

    @pyqtSlot(str)
    def _on_worker_error(self, message: str) -> None:
        logger.error(message)
        self._final_state = RunState.IDLE
        self.run_failed.emit(message)

    @pyqtSlot()
    def _on_thread_finished(self) -> None:
        self._thread = None
        self._worker = None
        self._on_event = None

        self.run_finished.emit(self._final_state)
