import threading

from PyQt6.QtCore import pyqtSignal, QObject

from core.engine import Finder
from core.models import RunEvent

# Background worker responsible only for the file I/O of one find/replace run.
# It runs in a QThread and communicates with the caller exclusively via signals.
class RunWorker(QObject):
    # Emitted once per processed file, in enumeration order.
    file_processed = pyqtSignal(object)  # RunEvent

    # Emitted when an unexpected error stops the run.
    error = pyqtSignal(str)

    # Emitted once when the engine returns, with its final RunState.
    finished = pyqtSignal(object)

    def __init__(self, engine: Finder, cancel_token: threading.Event) -> None:
        super().__init__()
        # The engine is validated and built by the caller; nothing here can fail on config.
        self.engine = engine
        self.cancel_token = cancel_token

    """
       Worker entry point executed inside a background thread.

       Flow:
       1) Run the engine; every RunEvent is re-emitted as file_processed.
       2) Emit finished(state) when enumeration is exhausted or cancellation observed.
       On any exception: emit error(...) and stop.
    """

    def run(self) -> None:
        try:
            state = self.engine.run(self._emit_event, self.cancel_token)
        except Exception as e:
            self.error.emit(f"Run error: {e}")
            return
        else:
            self.finished.emit(state)

    def _emit_event(self, event: RunEvent) -> None:
        self.file_processed.emit(event)
