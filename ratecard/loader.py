from __future__ import annotations

import io
import logging
import threading
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

log = logging.getLogger(__name__)


class ImageDecodeError(Exception):
    """Raised when a selected file cannot be decoded into an image."""


def decode_image(data: bytes, source: str = "<bytes>") -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()  # force the lazy decode so errors surface here
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise ImageDecodeError(f"Cannot decode image {source}: {e}") from e
    # honour camera orientation, the way browsers display photos
    img = ImageOps.exif_transpose(img)
    if img.width <= 0 or img.height <= 0:
        raise ImageDecodeError(f"Image {source} has no pixels")
    return img.convert("RGBA")


def load_image(path: str | Path) -> Image.Image:
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as e:
        raise ImageDecodeError(f"Cannot read {p}: {e}") from e
    img = decode_image(data, source=str(p))
    log.info("Loaded background %s (%dx%d)", p.name, img.width, img.height)
    return img


class LoadTracker:
    """Hands out request tokens; only the newest token may install its result.

    Decodes can finish out of order when the user picks files quickly, so a
    completed load checks ``is_current`` before touching the render context.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._latest = 0

    def begin(self) -> int:
        with self._lock:
            self._latest += 1
            return self._latest

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._latest

    def cancel(self) -> None:
        # invalidate everything in flight
        self.begin()
