"""Transient on-disk handles for payloads being previewed."""

import logging
import re
import shutil
import tempfile
from pathlib import Path
from typing import Self

logger = logging.getLogger(__name__)

HANDLE_NAME_RE = re.compile(r"^(\d+)-")


class PayloadHandles:
    """Temporary files standing in for short-lived payload URLs.

    Each record has at most one open handle. Handles are released on
    :meth:`revoke`, :meth:`revoke_all`, or when the context manager exits.
    """

    def __init__(self, directory: Path | None = None) -> None:
        self._directory = directory
        self._owned_directory: Path | None = None
        self._handles: dict[int, Path] = {}
        if directory is not None:
            self._adopt_existing(directory)

    def open(self, record_id: int, filename: str, content: bytes) -> Path:
        self.revoke(record_id)
        path = self._base_directory() / f"{record_id}-{Path(filename).name}"
        path.write_bytes(content)
        self._handles[record_id] = path
        return path

    def revoke(self, record_id: int) -> bool:
        path = self._handles.pop(record_id, None)
        if path is None:
            return False
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove handle %s: %s", path, e)
        return True

    def revoke_all(self) -> int:
        count = 0
        for record_id in list(self._handles):
            if self.revoke(record_id):
                count += 1
        return count

    def close(self) -> None:
        self.revoke_all()
        if self._owned_directory is not None:
            shutil.rmtree(self._owned_directory, ignore_errors=True)
            self._owned_directory = None

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _adopt_existing(self, directory: Path) -> None:
        """Track handles left in a shared directory by an earlier process."""
        if not directory.is_dir():
            return
        for path in sorted(directory.iterdir()):
            match = HANDLE_NAME_RE.match(path.name)
            if match and path.is_file():
                self._handles.setdefault(int(match.group(1)), path)

    def _base_directory(self) -> Path:
        if self._directory is not None:
            self._directory.mkdir(parents=True, exist_ok=True)
            return self._directory
        if self._owned_directory is None:
            self._owned_directory = Path(tempfile.mkdtemp(prefix="pdfcatalog-"))
        return self._owned_directory
