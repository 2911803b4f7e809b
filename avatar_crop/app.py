"""
Application entry point and dark-theme stylesheet.

Usage:
    python -m avatar_crop
    avatar-crop          (after pip install)
"""

import getpass
import logging
import os
import sys

from PyQt6.QtWidgets import QApplication

from avatar_crop.config import LOG_FORMAT, LOG_LEVEL_DEFAULT, LOG_LEVEL_ENV
from avatar_crop.main_window import MainWindow

DARK_STYLESHEET = """
    QMainWindow { background: #2b2b2b; }
    QWidget { background: #2b2b2b; color: #ddd; font-size: 10pt; }
    QDialog { background: #2b2b2b; }
    QPushButton { background: #3a3a3a; border: 1px solid #555; border-radius: 4px; padding: 6px 12px; }
    QPushButton:hover { background: #4a4a4a; }
    QPushButton:pressed { background: #2a2a2a; }
    QPushButton:default { background: #3a6ea5; border-color: #5a8ec5; }
    QPushButton:disabled { color: #666; }
    QStatusBar { background: #333; border-top: 1px solid #444; }
"""


def configure_logging():
    level = os.environ.get(LOG_LEVEL_ENV, LOG_LEVEL_DEFAULT).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


def main():
    configure_logging()
    app = QApplication(sys.argv)
    app.setStyleSheet(DARK_STYLESHEET)

    window = MainWindow(display_name=getpass.getuser())
    window.show()

    try:
        sys.exit(app.exec())
    except (SystemExit, KeyboardInterrupt):
        pass


if __name__ == "__main__":
    main()
