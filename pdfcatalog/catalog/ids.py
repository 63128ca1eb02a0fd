"""Identifier generation."""

import logging
import sqlite3
import time
from collections.abc import Callable, Iterable

from pdfcatalog.database.kvstore import KeyValueStore
from pdfcatalog.errors import StoreFullError

logger = logging.getLogger(__name__)

ID_SEQUENCE_KEY = "idSequence"


class IdSequence:
    """Millisecond timestamps, strictly increasing within the sequence.

    Seeded with every id already in use and, when a store is given, with the
    highest id ever issued, so a restarted process never hands out an id that
    was issued before, even after that record is deleted and the clock lags.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        store: KeyValueStore | None = None,
    ) -> None:
        self._clock = clock
        self._store = store
        self._last = 0
        if store is not None:
            stored = store.get_json(ID_SEQUENCE_KEY, default=0)
            if isinstance(stored, int):
                self._last = stored

    def observe(self, ids: Iterable[int]) -> None:
        for value in ids:
            self._last = max(self._last, value)

    def next(self) -> int:
        candidate = int(self._clock() * 1000)
        self._last = max(candidate, self._last + 1)
        self._save()
        return self._last

    def _save(self) -> None:
        if self._store is None:
            return
        try:
            self._store.set_json(ID_SEQUENCE_KEY, self._last)
        except (StoreFullError, sqlite3.Error) as e:
            logger.warning("Could not persist id high-water mark: %s", e)
