from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .paths import log_dir

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    # getLevelName returns "Level X" for unknown names
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: int | str = logging.INFO, log_file: Path | str | None = None) -> logging.Logger:
    """Configure the ``ratecard`` logger once: console plus a rotating file.

    Later calls return the already configured logger unchanged, so windows
    and workers can call this freely.
    """
    log = logging.getLogger("ratecard")
    if getattr(log, "_configured", False):  # idempotent
        return log

    lvl = _resolve_level(level)
    log.setLevel(lvl)
    fmt = logging.Formatter(LOG_FORMAT)

    # Console
    ch = logging.StreamHandler()
    ch.setLevel(lvl)
    ch.setFormatter(fmt)
    log.addHandler(ch)

    # File (rotating)
    path = Path(log_file) if log_file else log_dir() / "app.log"
    path.parent.mkdir(parents=True, exist_ok=True)
    fh = RotatingFileHandler(path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    fh.setLevel(lvl)
    fh.setFormatter(fmt)
    log.addHandler(fh)

    setattr(log, "_configured", True)
    log.debug("Logging initialized at %s -> %s", logging.getLevelName(lvl), path)
    return log
