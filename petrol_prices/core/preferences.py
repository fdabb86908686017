"""Key-value store for UI preferences such as theme and brand-logo overrides.

The store is created once at startup and passed to whoever needs it. When a
path is configured the values are persisted as a JSON object on every write.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

THEME_KEY = "theme"
BRAND_LOGOS_KEY = "brandLogos"
THEMES = ("light", "dark", "system")


class PreferenceError(ValueError):
    """Raised when a preference value is rejected."""


class PreferenceStore:
    def __init__(self, path: Optional[str] = None) -> None:
        self._path = Path(path) if path else None
        self._lock = threading.Lock()
        self._values: Dict[str, Any] = self._read()

    def _read(self) -> Dict[str, Any]:
        if self._path is None or not self._path.is_file():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable preferences file %s: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring preferences file %s: expected a JSON object", self._path)
            return {}
        return data

    def _write(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as fh:
            json.dump(self._values, fh, ensure_ascii=False, indent=2)
        tmp_path.replace(self._path)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        if not key:
            raise PreferenceError("Preference key must not be empty")
        if key == THEME_KEY and value not in THEMES:
            raise PreferenceError(f"theme must be one of {', '.join(THEMES)}")
        if key == BRAND_LOGOS_KEY and not isinstance(value, dict):
            raise PreferenceError("brandLogos must be an object of brand -> logo URL")
        with self._lock:
            self._values[key] = value
            self._write()

    def delete(self, key: str) -> bool:
        with self._lock:
            existed = self._values.pop(key, None) is not None
            if existed:
                self._write()
            return existed

    def as_dict(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._values)

    # Convenience accessors

    def theme(self) -> str:
        return self.get(THEME_KEY, "system")

    def brand_logo(self, brand: str) -> Optional[str]:
        overrides = self.get(BRAND_LOGOS_KEY, {}) or {}
        return overrides.get(brand.strip().lower())

    def set_brand_logo(self, brand: str, logo_url: str) -> None:
        overrides = dict(self.get(BRAND_LOGOS_KEY, {}) or {})
        overrides[brand.strip().lower()] = logo_url
        self.set(BRAND_LOGOS_KEY, overrides)
