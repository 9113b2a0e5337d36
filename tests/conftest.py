import time
from pathlib import Path

import pytest


@pytest.fixture
def make_tree(tmp_path):
    """Create files under a temp root from a {relative path: text or bytes} mapping."""
    def _make(files: dict) -> Path:
        for relative_path, content in files.items():
            path = tmp_path / relative_path
            path.parent.mkdir(parents=True, exist_ok=True)

            if isinstance(content, str):
                content = content.encode("utf-8")
            path.write_bytes(content)

        return tmp_path

    return _make


@pytest.fixture(scope="session")
def qapp():
    from PyQt6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def wait_until(qapp):
    """Pump the Qt event loop until predicate() is true."""
    def _wait(predicate, timeout: float = 10.0) -> None:
        deadline = time.monotonic() + timeout

        while not predicate():
            if time.monotonic() > deadline:
                raise AssertionError("Timed out waiting for the run to finish")

            qapp.processEvents()
            time.sleep(0.005)

        qapp.processEvents()

    return _wait
