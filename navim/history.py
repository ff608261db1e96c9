"""Browsing history, persisted as JSON in the user's config directory.

The newest entry comes first and the list is capped, so the file stays
small no matter how long navim is used.
"""

from __future__ import annotations

import html
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from .constants import ViewerConstants
from .settings import config_dir

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    title: str
    url: str
    timestamp: str  # ISO-8601 local time


class History:
    """Manages the persistent list of visited pages."""

    def __init__(self, path: Optional[Path] = None, limit: int = ViewerConstants.MAX_HISTORY_ENTRIES):
        self._path = path or config_dir() / "history.json"
        self._limit = limit
        self._cache: Optional[list[HistoryEntry]] = None

    @property
    def path(self) -> Path:
        return self._path

    def entries(self) -> list[HistoryEntry]:
        """Load all entries, newest first.

        Returns an empty list if the file doesn't exist or can't be read.
        Malformed entries are skipped.
        """
        if self._cache is not None:
            return list(self._cache)
        if not self._path.exists():
            self._cache = []
            return []

        try:
            with open(self._path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not load history from {self._path}: {e}")
            self._cache = []
            return []

        if not isinstance(data, list):
            logger.warning("History file has invalid format (not a list), ignoring")
            data = []
        entries = []
        for item in data:
            try:
                entries.append(HistoryEntry(str(item['title']), str(item['url']), str(item['timestamp'])))
            except (KeyError, TypeError):
                logger.warning(f"Skipping malformed history entry: {item!r}")
        self._cache = entries[:self._limit]
        return list(self._cache)

    def add(self, title: Optional[str], url: str, when: Optional[datetime] = None) -> bool:
        """Record a visit at the front of the history.

        Returns:
            True if the history was saved, False otherwise.
        """
        stamp = (when or datetime.now()).isoformat(timespec='seconds')
        entry = HistoryEntry(title or url, url, stamp)
        entries = [entry] + self.entries()
        return self._save(entries[:self._limit])

    def clear(self) -> bool:
        return self._save([])

    def _save(self, entries: list[HistoryEntry]) -> bool:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Could not create config directory {self._path.parent}: {e}")
            return False

        # Atomic write pattern (temp file + rename)
        temp_file = self._path.with_suffix('.tmp')
        try:
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump([asdict(entry) for entry in entries], f, indent=2)
            temp_file.replace(self._path)
            self._cache = entries
            return True
        except OSError as e:
            logger.warning(f"Could not save history to {self._path}: {e}")
            try:
                if temp_file.exists():
                    temp_file.unlink()
            except OSError:
                pass
            return False


def history_page(entries: list[HistoryEntry]) -> str:
    """Build an HTML page listing ``entries`` as links, for browsing history in the viewer."""
    items = "\n".join(
        f'<li><a href="{html.escape(entry.url, quote=True)}">{html.escape(entry.title)}</a>'
        f' {html.escape(entry.timestamp.replace("T", " "))}</li>'
        for entry in entries
    )
    return f"<html><head><title>History</title></head><body><h1>History</h1><ul>\n{items}\n</ul></body></html>"
