from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .paths import config_file, ensure_dirs, output_dir

log = logging.getLogger(__name__)


DEFAULTS: Dict[str, Any] = {
    "template": {
        "opacity": 0.7,
        "text_color": "#000000",
        "table_text": "$10 Basic\n$20 Standard\n$30 Premium",
    },
    "font": {
        "family": "",  # looked up among installed fonts; empty uses the bold sans fallbacks
        "path": "",    # direct .ttf/.otf override
    },
    "output": {"folder": ""},  # empty resolves to ./output
    "background": {"seed": None},
    "logging": {"level": "INFO", "file": ""},  # empty file resolves to ./logs/app.log
    "debug": False,
}


class AppConfig:
    def __init__(self, path: Path | str | None = None) -> None:
        # Ensure required directories exist before reading/saving
        ensure_dirs()
        self.path = Path(path) if path is not None else config_file()
        self.data: Dict[str, Any] = json.loads(json.dumps(DEFAULTS))  # deep copy
        if self.path.exists():
            self.load()

    def load(self) -> None:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                incoming = json.load(f)
        except (OSError, ValueError) as e:
            # Keep defaults on error
            log.warning("Could not read config %s, using defaults: %s", self.path, e)
            return
        if isinstance(incoming, dict):
            self._merge(self.data, incoming)

    def save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as f:
                json.dump(self.data, f, ensure_ascii=False, indent=2)
        except OSError as e:
            log.error("Could not save config %s: %s", self.path, e)

    def _merge(self, target: Dict[str, Any], src: Dict[str, Any]) -> None:
        for k, v in src.items():
            if isinstance(v, dict) and isinstance(target.get(k), dict):
                self._merge(target[k], v)
            else:
                target[k] = v

    # Convenience getters/setters
    @property
    def default_opacity(self) -> float:
        try:
            v = float(self.data["template"]["opacity"])  # type: ignore
        except (KeyError, TypeError, ValueError):
            return 0.7
        return max(0.0, min(1.0, v))

    @default_opacity.setter
    def default_opacity(self, v: float) -> None:
        self.data.setdefault("template", {})["opacity"] = max(0.0, min(1.0, float(v)))

    @property
    def default_text_color(self) -> str:
        return str(self.data.get("template", {}).get("text_color", "#000000"))

    @default_text_color.setter
    def default_text_color(self, s: str) -> None:
        self.data.setdefault("template", {})["text_color"] = s

    @property
    def default_table_text(self) -> str:
        return str(self.data.get("template", {}).get("table_text", ""))

    @default_table_text.setter
    def default_table_text(self, s: str) -> None:
        self.data.setdefault("template", {})["table_text"] = s

    @property
    def font_family(self) -> Optional[str]:
        fam = str(self.data.get("font", {}).get("family", "") or "").strip()
        return fam or None

    @font_family.setter
    def font_family(self, s: str) -> None:
        self.data.setdefault("font", {})["family"] = s

    @property
    def font_path(self) -> Optional[str]:
        p = str(self.data.get("font", {}).get("path", "") or "").strip()
        return p or None

    @font_path.setter
    def font_path(self, s: str) -> None:
        self.data.setdefault("font", {})["path"] = s

    @property
    def output_folder(self) -> Path:
        folder = str(self.data.get("output", {}).get("folder", "") or "").strip()
        return Path(folder) if folder else output_dir()

    @output_folder.setter
    def output_folder(self, p: Path | str) -> None:
        self.data.setdefault("output", {})["folder"] = str(p)

    @property
    def background_seed(self) -> Optional[int]:
        seed = self.data.get("background", {}).get("seed")
        try:
            return None if seed is None else int(seed)
        except (TypeError, ValueError):
            return None

    @background_seed.setter
    def background_seed(self, seed: Optional[int]) -> None:
        self.data.setdefault("background", {})["seed"] = seed

    @property
    def log_level(self) -> str:
        # debug mode always logs everything
        if self.debug:
            return "DEBUG"
        return str(self.data.get("logging", {}).get("level", "INFO") or "INFO").upper()

    @log_level.setter
    def log_level(self, level: str) -> None:
        self.data.setdefault("logging", {})["level"] = str(level).upper()

    @property
    def log_file(self) -> Optional[Path]:
        p = str(self.data.get("logging", {}).get("file", "") or "").strip()
        return Path(p) if p else None

    @property
    def debug(self) -> bool:
        return bool(self.data.get("debug", False))

    @debug.setter
    def debug(self, v: bool) -> None:
        self.data["debug"] = bool(v)
