"""Per-user generation history storage for the Thumbcraft API.

This module isolates the history JSON persistence logic from
``thumbcraft.api.main`` so route handlers can focus on HTTP concerns while the
file-backed store remains testable as a small unit.

The history is intentionally simple:

- everything lives in a single ``history.json`` file keyed by user id
- each user's list is reverse-chronological (newest first)
- each list is capped; entries beyond the cap are dropped silently
- writes go through a temp file and ``os.replace``; a corrupt file is
  reported, never overwritten
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
import uuid
from pathlib import Path
from typing import Any

from thumbcraft.core.errors import HistoryStoreError

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 100


class HistoryStore:
    """File-backed, per-user, most-recent-first generation log.

    Attributes:
        path: Location of ``history.json``.
        limit: Maximum entries kept per user.
    """

    def __init__(self, path: Path, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        self.path = Path(path)
        self.limit = limit
        self._lock = threading.Lock()

    # -- Persistence ----------------------------------------------------------

    def _load(self, strict: bool = False) -> dict[str, list[dict]]:
        """Load the whole store.

        A missing file is an empty history, so the first successful
        generation creates ``history.json`` automatically.

        Args:
            strict: Raise on an unreadable or corrupt file instead of
                returning an empty mapping.  Write paths load strictly so a
                damaged file is never replaced by a partial one.

        Raises:
            HistoryStoreError: ``strict`` is set and the file cannot be used.
        """
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as handle:
                data = json.load(handle)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        except (OSError, ValueError) as e:
            if strict:
                raise HistoryStoreError(f"Cannot read history file {self.path}: {e}") from e
            logger.warning("Could not read %s, reporting empty history: %s", self.path, e)
            return {}

        return {str(user): entries for user, entries in data.items() if isinstance(entries, list)}

    def _save(self, data: dict[str, list[dict]]) -> None:
        """Write the store atomically via a temp file in the same directory."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # -- Public interface -----------------------------------------------------

    def add_entry(self, user_id: str, record: dict[str, Any]) -> dict[str, Any]:
        """Prepend a generation record to a user's history.

        Args:
            user_id: Owner of the record.
            record: Generation metadata (mode, prompts, fields, URLs, ...).

        Returns:
            The stored entry, including its assigned ``id`` and ``created_at``.

        Raises:
            HistoryStoreError: The existing file is unreadable or corrupt.
        """
        entry = {"id": uuid.uuid4().hex, "created_at": time.time(), **record}
        with self._lock:
            data = self._load(strict=True)
            entries = [entry, *data.get(user_id, [])]
            data[user_id] = entries[: self.limit]
            self._save(data)
        return entry

    def get_history(self, user_id: str, limit: int = 20, offset: int = 0) -> dict[str, Any]:
        """Return one page of a user's history.

        Args:
            user_id: Owner of the history.
            limit: Maximum entries to return.
            offset: Number of newest entries to skip.

        Returns:
            Dictionary with ``history``, ``total``, and ``has_more``.
        """
        limit = max(limit, 0)
        offset = max(offset, 0)
        with self._lock:
            entries = self._load().get(user_id, [])
        return {
            "history": entries[offset : offset + limit],
            "total": len(entries),
            "has_more": offset + limit < len(entries),
        }

    def delete_entry(self, user_id: str, entry_id: str) -> bool:
        """Delete one entry.  Returns ``False`` if it did not exist."""
        with self._lock:
            data = self._load(strict=True)
            entries = data.get(user_id, [])
            remaining = [entry for entry in entries if entry.get("id") != entry_id]
            if len(remaining) == len(entries):
                return False
            data[user_id] = remaining
            self._save(data)
        return True

    def clear_history(self, user_id: str) -> None:
        """Remove every entry for a user."""
        with self._lock:
            data = self._load(strict=True)
            data[user_id] = []
            self._save(data)
