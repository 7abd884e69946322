from __future__ import annotations

import json
import logging
import time
from hashlib import sha256
from pathlib import Path
from typing import Any

from bloommarket.domain.models import UserProfile

"""
Local persisted session cache.

A small on-disk key-value store used to remember the last-known user record (including
the last resolved coordinate) between runs:
- read at sign-in, so a returning user lands in a ranked view without waiting for a fix,
- written on every user-state change,
- removed on sign-out.

It is not authoritative storage; corrupt or unreadable entries are treated as missing.
"""

logger = logging.getLogger(__name__)


class SessionCache:
    """A filesystem-backed JSON store keyed by name."""

    def __init__(self, base_dir: Path, enabled: bool = True):
        self._base_dir = base_dir
        self._enabled = enabled

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _key_path(self, key: str) -> Path:
        digest = sha256(f"session:{key}".encode("utf-8")).hexdigest()
        return self._base_dir / f"{digest}.json"

    def get(self, key: str) -> Any | None:
        """Return the stored value for `key`, or None if missing/unreadable."""
        if not self._enabled:
            return None
        path = self._key_path(key)
        if not path.exists():
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return raw["value"]
        except (OSError, ValueError, KeyError, TypeError):
            logger.warning("Ignoring unreadable session cache entry %s", key)
            return None

    def set(self, key: str, value: Any) -> None:
        """Write a JSON-serializable value via a temp file + atomic replace."""
        if not self._enabled:
            return None
        path = self._key_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"updated_at_unix": int(time.time()), "key": key, "value": value}
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        tmp.replace(path)

    def remove(self, key: str) -> None:
        if not self._enabled:
            return None
        self._key_path(key).unlink(missing_ok=True)

    def load_user(self, key: str) -> UserProfile | None:
        raw = self.get(key)
        if not isinstance(raw, dict):
            return None
        try:
            return UserProfile.model_validate(raw)
        except ValueError:
            logger.warning("Ignoring invalid cached user record under %s", key)
            return None

    def save_user(self, key: str, user: UserProfile) -> None:
        self.set(key, user.to_wire())
