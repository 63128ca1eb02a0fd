"""CatalogService: the single owner of catalog state for a process."""

import logging
import mimetypes
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from pdfcatalog.catalog.auth import SessionStore, require_admin
from pdfcatalog.catalog.handles import PayloadHandles
from pdfcatalog.catalog.ids import IdSequence
from pdfcatalog.catalog.logs import CommentLog, DownloadHistoryLog
from pdfcatalog.catalog.placeholder import build_placeholder_pdf
from pdfcatalog.config import Config
from pdfcatalog.database.kvstore import KeyValueStore
from pdfcatalog.database.models import (
    RECORD_CATEGORIES,
    DownloadEvent,
    PayloadResidency,
    Record,
    category_display_name,
)
from pdfcatalog.errors import (
    PayloadUnavailableError,
    QuotaExceededError,
    RecordNotFoundError,
    RecordTooLargeError,
    ValidationError,
)
from pdfcatalog.formatting import format_bytes, format_date
from pdfcatalog.storage.payload import (
    PDF_MIME_TYPE,
    PayloadDecodeError,
    decode_payload,
    encode_payload,
)
from pdfcatalog.storage.persistence import PersistenceAdapter, SaveReport, SessionMirror
from pdfcatalog.storage.quota import QuotaPolicy, RejectReason, UsageBand, UsageReport
from pdfcatalog.storage.record_store import RecordStore
from pdfcatalog.storage.sizing import estimate_catalog_usage, estimate_encoded_size

logger = logging.getLogger(__name__)

CRITICAL_USAGE_WARNING = "Storage is critically full. Please clear some files."
HIGH_USAGE_WARNING = "Storage is getting full. Consider clearing some files."


@dataclass
class MutationResult:
    """What a catalog mutation did to persistence and usage."""

    save: SaveReport
    usage: UsageReport
    warnings: list[str]


@dataclass
class UploadResult(MutationResult):
    record: Record


@dataclass
class DownloadResult(MutationResult):
    event: DownloadEvent


@dataclass
class PreviewHandle:
    path: Path
    is_placeholder: bool


class CatalogService:
    """Orchestrates the record store, persistence, quota policy and logs.

    Construct once per process and pass it to whatever presents the catalog.
    Privileged operations take the caller's ``is_admin`` flag and trust it.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: Config | None = None,
        clock: Callable[[], float] = time.time,
        mirror: SessionMirror | None = None,
        handles: PayloadHandles | None = None,
    ) -> None:
        self.config = config or Config()
        self.kv = store
        self.clock = clock
        self.quota = QuotaPolicy(self.config.quota)
        self.persistence = PersistenceAdapter(store, self.config.persistence, mirror)
        self.handles = handles or PayloadHandles()
        self.records = RecordStore()
        self.ids = IdSequence(clock, store)
        self.sessions = SessionStore(store)
        self.history = DownloadHistoryLog(
            store, limit=self.config.persistence.history_limit, clock=clock
        )
        self.comments = CommentLog(
            store,
            next_id=self.ids.next,
            require_login=self.config.comments_require_login,
            clock=clock,
        )
        self.ids.observe(self.history.ids())
        self.ids.observe(self.comments.ids())

    @property
    def mirror(self) -> SessionMirror:
        return self.persistence.mirror

    def reconcile_on_load(self) -> list[Record]:
        """Load the persisted catalog and restore payloads still held by the mirror."""
        loaded = self.persistence.load()
        restored = 0
        for record in loaded:
            if record.residency is PayloadResidency.FULL:
                continue
            payload = self.mirror.payload_for(record.id)
            if payload is not None:
                record.payload = payload
                record.residency = PayloadResidency.FULL
                restored += 1
            else:
                record.payload = None
                record.residency = PayloadResidency.ABSENT

        self.records = RecordStore(loaded)
        self.ids.observe(record.id for record in loaded)
        logger.info("Loaded %d records (%d restored from session)", len(loaded), restored)
        return self.records.all()

    def usage(self) -> UsageReport:
        return self.quota.snapshot(estimate_catalog_usage(self.records.all()))

    def list_records(self, term: str = "", category: str | None = None) -> list[Record]:
        if category and category not in RECORD_CATEGORIES:
            raise ValidationError(f"Unknown category: {category}")
        return self.records.search(term, category)

    def get(self, record_id: int) -> Record:
        record = self.records.find_by_id(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def upload(
        self,
        filename: str,
        category: str,
        raw_bytes: bytes,
        *,
        is_admin: bool,
    ) -> UploadResult:
        require_admin(is_admin, "Upload")
        filename = Path(filename).name.strip()
        _validate_upload(filename, category)

        candidate_bytes = len(raw_bytes)
        admission = self.quota.admit_upload(candidate_bytes, self.usage().used_bytes)
        if not admission.allowed:
            logger.info("Upload of %s rejected: %s", filename, admission.reason)
            if admission.reason is RejectReason.RECORD_TOO_LARGE:
                raise RecordTooLargeError(admission.message)
            raise QuotaExceededError(admission.message)

        record = Record(
            id=self.ids.next(),
            filename=filename,
            category=category,
            size_bytes=candidate_bytes,
            uploaded_at_unix=self.clock(),
            payload=encode_payload(raw_bytes),
            residency=PayloadResidency.FULL,
        )
        self.records.insert(record)
        result = self._persist()
        logger.info(
            "Uploaded %s as record %s (%d bytes, ~%d encoded)",
            filename,
            record.id,
            candidate_bytes,
            estimate_encoded_size(candidate_bytes),
        )
        return UploadResult(
            save=result.save,
            usage=result.usage,
            warnings=result.warnings,
            record=record,
        )

    def delete(self, record_id: int, *, is_admin: bool) -> MutationResult:
        require_admin(is_admin, "Delete")
        record = self.records.remove(record_id)
        self.handles.revoke(record.id)
        record.payload = None
        record.residency = PayloadResidency.ABSENT
        logger.info("Deleted record %s (%s)", record.id, record.filename)
        return self._persist()

    def clear_all(self, *, is_admin: bool) -> MutationResult:
        require_admin(is_admin, "Clear")
        removed = self.records.clear()
        for record in removed:
            record.payload = None
            record.residency = PayloadResidency.ABSENT
        self.handles.revoke_all()
        self.mirror.clear()
        logger.info("Cleared %d records", len(removed))
        return self._persist()

    def fetch_payload(self, record_id: int) -> bytes:
        record = self.get(record_id)
        payload = self._payload_for(record)
        if payload is None:
            raise PayloadUnavailableError(record.id, record.filename)
        try:
            return decode_payload(payload)
        except PayloadDecodeError as e:
            logger.error("Stored payload for record %s is corrupt: %s", record.id, e)
            raise PayloadUnavailableError(record.id, record.filename) from e

    def record_download(self, record_id: int) -> DownloadResult:
        record = self.get(record_id)
        if self._payload_for(record) is None:
            raise PayloadUnavailableError(record.id, record.filename)

        self.records.update(record.id, _increment_download_count)
        event = DownloadEvent(
            id=self.ids.next(),
            record_id=record.id,
            filename=record.filename,
            category=record.category,
            downloaded_at_unix=self.clock(),
            size_bytes=record.size_bytes,
        )
        self.history.append(event)
        result = self._persist()
        return DownloadResult(
            save=result.save,
            usage=result.usage,
            warnings=result.warnings,
            event=event,
        )

    def open_preview(self, record_id: int) -> PreviewHandle:
        """Write the payload, or a placeholder when it is unavailable, to a handle."""
        record = self.get(record_id)
        try:
            content = self.fetch_payload(record_id)
            is_placeholder = False
        except PayloadUnavailableError:
            content = build_placeholder_pdf(record.filename)
            is_placeholder = True
        path = self.handles.open(record.id, record.filename, content)
        return PreviewHandle(path=path, is_placeholder=is_placeholder)

    def export_listing(self, *, is_admin: bool) -> list[dict]:
        require_admin(is_admin, "Export")
        return [
            {
                "filename": record.filename,
                "category": record.category,
                "category_name": category_display_name(record.category),
                "upload_date": format_date(record.uploaded_at_unix),
                "size": format_bytes(record.size_bytes),
                "downloads": record.download_count,
                "available": record.residency is not PayloadResidency.ABSENT,
            }
            for record in self.records.all()
        ]

    def _payload_for(self, record: Record) -> str | None:
        if record.residency is PayloadResidency.ABSENT:
            return None
        if record.payload is not None:
            return record.payload
        return self.mirror.payload_for(record.id)

    def _persist(self) -> MutationResult:
        save = self.persistence.save(self.records.all())
        usage = self.usage()
        warnings = list(save.warnings)
        if usage.band is UsageBand.CRITICAL:
            warnings.append(CRITICAL_USAGE_WARNING)
        elif usage.band is UsageBand.WARNING:
            warnings.append(HIGH_USAGE_WARNING)
        if usage.band is not UsageBand.NORMAL:
            logger.warning("Storage usage %s: %.1f%%", usage.band.value, usage.percentage)
        return MutationResult(save=save, usage=usage, warnings=warnings)


def _validate_upload(filename: str, category: str) -> None:
    if not filename:
        raise ValidationError("Please select a PDF file")
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type != PDF_MIME_TYPE:
        raise ValidationError("Please select a valid PDF file")
    if category not in RECORD_CATEGORIES:
        raise ValidationError(
            f"Unknown category: {category}. Available: {list(RECORD_CATEGORIES.keys())}"
        )


def _increment_download_count(record: Record) -> None:
    record.download_count += 1
