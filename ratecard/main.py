from __future__ import annotations

import os
import sys

from PyQt6 import QtWidgets

# Support running as a module (python -m ratecard.main) and as a script (python ratecard/main.py)
try:
    from .config import AppConfig  # type: ignore
    from .ui import TemplateWindow  # type: ignore
    from .logger import setup_logging  # type: ignore
except ImportError:  # no package context
    sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))
    from ratecard.config import AppConfig  # type: ignore
    from ratecard.ui import TemplateWindow  # type: ignore
    from ratecard.logger import setup_logging  # type: ignore


def main() -> int:
    app = QtWidgets.QApplication(sys.argv)
    app.setApplicationName("Rate Template")
    cfg = AppConfig()
    log = setup_logging(cfg.log_level, cfg.log_file)
    log.info("Starting with config %s", cfg.path)
    win = TemplateWindow(cfg)
    win.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
