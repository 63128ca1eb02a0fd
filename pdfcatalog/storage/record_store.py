"""In-memory ordered catalog of records."""

from collections.abc import Callable, Iterator

from pdfcatalog.database.models import Record, normalize_category
from pdfcatalog.errors import DuplicateIdError, RecordNotFoundError


class RecordStore:
    """Ordered collection of records, newest first, keyed by id."""

    def __init__(self, records: list[Record] | None = None) -> None:
        self._records: list[Record] = []
        for record in reversed(records or []):
            self.insert(record)

    def insert(self, record: Record) -> None:
        if self.find_by_id(record.id) is not None:
            raise DuplicateIdError(f"Record id already present: {record.id}")
        self._records.insert(0, record)

    def remove(self, record_id: int) -> Record:
        for index, record in enumerate(self._records):
            if record.id == record_id:
                return self._records.pop(index)
        raise RecordNotFoundError(record_id)

    def update(self, record_id: int, mutator: Callable[[Record], None]) -> Record:
        record = self.find_by_id(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        mutator(record)
        return record

    def find_by_id(self, record_id: int) -> Record | None:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def all(self) -> list[Record]:
        return list(self._records)

    def clear(self) -> list[Record]:
        removed = self._records
        self._records = []
        return removed

    def search(self, term: str = "", category: str | None = None) -> list[Record]:
        """Case-insensitive filename match, optionally restricted to one category."""
        needle = term.lower()
        return [
            record
            for record in self._records
            if needle in record.filename.lower()
            and (not category or normalize_category(record.category) == category)
        ]

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return any(record.id == record_id for record in self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(list(self._records))
