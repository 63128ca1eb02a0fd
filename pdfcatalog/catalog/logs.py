"""Persisted append-style logs: download history and feedback comments."""

import logging
import sqlite3
import time
from collections.abc import Callable, Iterator
from datetime import datetime

from pdfcatalog.catalog.auth import require_admin
from pdfcatalog.database.kvstore import KeyValueStore
from pdfcatalog.database.models import (
    COMMENT_CATEGORIES,
    Comment,
    CommentStatus,
    DownloadEvent,
    Session,
)
from pdfcatalog.errors import (
    CommentNotFoundError,
    PermissionDeniedError,
    StoreFullError,
    ValidationError,
)

logger = logging.getLogger(__name__)

HISTORY_KEY = "downloadHistory"
COMMENTS_KEY = "comments"

HISTORY_PERIODS = {
    "all": None,
    "today": 0,
    "week": 7,
    "month": 30,
}


class PersistedLog:
    """A list of entries stored as one JSON array under ``key``, newest first.

    Writes are best effort: a full store is logged and the in-memory list
    stays authoritative for the rest of the process.
    """

    key: str = ""

    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time) -> None:
        self.store = store
        self.clock = clock
        self._entries = self._load()

    def _decode(self, data: dict):
        raise NotImplementedError

    def _load(self) -> list:
        data = self.store.get_json(self.key, default=[])
        if not isinstance(data, list):
            logger.error("Persisted %s is not a list, ignoring it", self.key)
            return []

        entries = []
        for item in data:
            try:
                entries.append(self._decode(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed %s entry: %s", self.key, e)
        return entries

    def _save(self) -> bool:
        try:
            self.store.set_json(self.key, [entry.to_dict() for entry in self._entries])
        except (StoreFullError, sqlite3.Error) as e:
            logger.warning("Could not persist %s: %s", self.key, e)
            return False
        return True

    def ids(self) -> list[int]:
        return [entry.id for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator:
        return iter(list(self._entries))


class DownloadHistoryLog(PersistedLog):
    """Most recent downloads, capped at ``limit`` entries."""

    key = HISTORY_KEY

    def __init__(
        self,
        store: KeyValueStore,
        limit: int = 100,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.limit = limit
        super().__init__(store, clock)

    def _decode(self, data: dict) -> DownloadEvent:
        return DownloadEvent.from_dict(data)

    def append(self, event: DownloadEvent) -> DownloadEvent:
        self._entries.insert(0, event)
        while len(self._entries) > self.limit:
            self._entries.pop(self._oldest_index())
        self._save()
        return event

    def _oldest_index(self) -> int:
        # Entries are newest first, so a higher index was inserted earlier.
        return min(
            range(len(self._entries)),
            key=lambda i: (self._entries[i].downloaded_at_unix, -i),
        )

    def entries(self, period: str = "all") -> list[DownloadEvent]:
        if period not in HISTORY_PERIODS:
            raise ValidationError(
                f"Unknown period: {period}. Available: {list(HISTORY_PERIODS.keys())}"
            )
        days = HISTORY_PERIODS[period]
        if days is None:
            return list(self._entries)

        now = datetime.fromtimestamp(self.clock())
        if days == 0:
            cutoff = now.replace(hour=0, minute=0, second=0, microsecond=0).timestamp()
        else:
            cutoff = now.timestamp() - days * 86400
        return [entry for entry in self._entries if entry.downloaded_at_unix >= cutoff]

    def clear(self) -> int:
        removed = len(self._entries)
        self._entries = []
        try:
            self.store.remove(self.key)
        except sqlite3.Error as e:
            logger.warning("Could not remove %s: %s", self.key, e)
        return removed


class CommentLog(PersistedLog):
    """Feedback comments. Status changes and deletion are administrator-only."""

    key = COMMENTS_KEY

    def __init__(
        self,
        store: KeyValueStore,
        next_id: Callable[[], int],
        require_login: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.next_id = next_id
        self.require_login = require_login
        super().__init__(store, clock)

    def _decode(self, data: dict) -> Comment:
        return Comment.from_dict(data)

    def submit(self, text: str, category: str, session: Session) -> Comment:
        text = text.strip()
        if not text:
            raise ValidationError("Please enter your feedback")
        if category not in COMMENT_CATEGORIES:
            raise ValidationError(
                f"Unknown feedback category: {category}. "
                f"Available: {list(COMMENT_CATEGORIES.keys())}"
            )
        if self.require_login and not session.is_authenticated:
            raise PermissionDeniedError("Please login to submit feedback")

        comment = Comment(
            id=self.next_id(),
            author=session.current_user or "Anonymous",
            category=category,
            text=text,
            created_at_unix=self.clock(),
        )
        self._entries.insert(0, comment)
        self._save()
        logger.info("Feedback %s submitted by %s", comment.id, comment.author)
        return comment

    def entries(self, category: str | None = None) -> list[Comment]:
        if not category:
            return list(self._entries)
        return [comment for comment in self._entries if comment.category == category]

    def get(self, comment_id: int) -> Comment:
        for comment in self._entries:
            if comment.id == comment_id:
                return comment
        raise CommentNotFoundError(comment_id)

    def set_status(self, comment_id: int, status: CommentStatus, *, is_admin: bool) -> Comment:
        require_admin(is_admin, "Status change")
        comment = self.get(comment_id)
        comment.status = status
        self._save()
        return comment

    def delete(self, comment_id: int, *, is_admin: bool) -> Comment:
        require_admin(is_admin, "Delete")
        comment = self.get(comment_id)
        self._entries.remove(comment)
        self._save()
        return comment
