from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from PIL import Image

from .paths import DOWNLOAD_FILENAME, SHARE_FILENAME

log = logging.getLogger(__name__)

SHARE_TITLE = "Rate Template"
SHARE_TEXT = "Check out this rate template!"
FALLBACK_MESSAGE = "Image downloaded! You can now share it via WhatsApp or any other app."


class ShareError(Exception):
    """Raised by a share handler that could not hand the image over."""


@dataclass(frozen=True)
class SharePayload:
    filename: str
    title: str
    text: str
    data: bytes
    mime_type: str = "image/png"


@dataclass(frozen=True)
class ShareOutcome:
    shared: bool
    path: Optional[Path] = None
    message: str = ""


ShareHandler = Callable[[SharePayload], None]


def to_png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def export_png(img: Image.Image, path: str | Path) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    img.save(out, format="PNG")
    log.info("Exported %s (%dx%d)", out, img.width, img.height)
    return out


def download(img: Image.Image, out_dir: str | Path, filename: str = DOWNLOAD_FILENAME) -> Path:
    return export_png(img, Path(out_dir) / filename)


def share_image(img: Image.Image, handler: Optional[ShareHandler], out_dir: str | Path) -> ShareOutcome:
    """Share through ``handler``; without one, or if it fails, save the PNG
    to ``out_dir`` and return the instruction message for the user."""
    payload = SharePayload(
        filename=SHARE_FILENAME,
        title=SHARE_TITLE,
        text=SHARE_TEXT,
        data=to_png_bytes(img),
    )
    if handler is not None:
        try:
            handler(payload)
            log.info("Shared %s (%d bytes)", payload.filename, len(payload.data))
            return ShareOutcome(shared=True)
        except Exception as e:  # any handler failure falls back to a download
            log.warning("Error sharing: %s", e)
    return _fallback_share(payload, out_dir)


def _fallback_share(payload: SharePayload, out_dir: str | Path) -> ShareOutcome:
    out = Path(out_dir) / payload.filename
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(payload.data)
    log.info("Share unavailable, saved %s", out)
    return ShareOutcome(shared=False, path=out, message=FALLBACK_MESSAGE)
