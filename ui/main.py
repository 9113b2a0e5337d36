import logging
import os
import sys

from ui import cli

LOG_LEVEL_ENV = "FNR_LOG_LEVEL"

def configure_logging() -> None:
    level = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    logging.basicConfig(level=getattr(logging, level, logging.WARNING),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

# Console mode with --cl, otherwise create QApplication, show MainWindow, exec().
def main() -> None:
    configure_logging()
    argv = sys.argv[1:]

    if "--cl" in argv:
        sys.exit(cli.run_console(argv))

    from PyQt6.QtWidgets import QApplication
    from ui import main_window

    app = QApplication(sys.argv)
    window = main_window.MainWindow()

    window.show()
    sys.exit(app.exec())

if __name__ == "__main__":
    main()
