from __future__ import annotations

import sys
from pathlib import Path


def app_root() -> Path:
    """Return the base directory for reading/writing app data.

    - When frozen (PyInstaller), use the executable directory.
    - Otherwise, use current working directory so local runs behave intuitively.
    """
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path.cwd()


def config_dir() -> Path:
    return app_root() / "setting"


def output_dir() -> Path:
    return app_root() / "output"


def log_dir() -> Path:
    return app_root() / "logs"


def config_file() -> Path:
    return config_dir() / "config.json"


# Fixed filenames for exported images
DOWNLOAD_FILENAME = "template-generated.png"
SHARE_FILENAME = "rate-template.png"


def ensure_dirs() -> None:
    # Create expected folders if missing
    for d in (config_dir(), output_dir()):
        try:
            d.mkdir(parents=True, exist_ok=True)
        except OSError:
            pass
