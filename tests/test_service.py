"""Tests for CatalogService."""

# pylint: disable=redefined-outer-name

import json
import sqlite3
from pathlib import Path

import pytest

from pdfcatalog.catalog import CatalogService, PayloadHandles
from pdfcatalog.catalog.service import CRITICAL_USAGE_WARNING, HIGH_USAGE_WARNING
from pdfcatalog.config import MIB, Config, PersistenceConfig, QuotaConfig
from pdfcatalog.database import Database, KeyValueStore, PayloadResidency, Session
from pdfcatalog.errors import (
    PayloadUnavailableError,
    PermissionDeniedError,
    QuotaExceededError,
    RecordNotFoundError,
    RecordTooLargeError,
    UploadRejectedError,
    ValidationError,
)
from pdfcatalog.storage import PersistenceTier, SessionMirror, UsageBand
from pdfcatalog.storage.persistence import CATALOG_KEY, DEGRADED_WARNING, UNSAVED_WARNING


class FakeClock:
    """Deterministic clock advanced by hand."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def pdf_bytes(size: int) -> bytes:
    header = b"%PDF-1.4\n"
    return header + b"x" * max(0, size - len(header))


@pytest.fixture
def db(tmp_path: Path):
    with Database(tmp_path / "test.db") as database:
        yield database


@pytest.fixture
def make_service(db: Database, tmp_path: Path):
    def _make(
        config: Config | None = None,
        mirror: SessionMirror | None = None,
        clock: FakeClock | None = None,
    ) -> CatalogService:
        service = CatalogService(
            KeyValueStore(db),
            config or Config(),
            clock=clock or FakeClock(),
            mirror=mirror,
            handles=PayloadHandles(tmp_path / "previews"),
        )
        service.reconcile_on_load()
        return service

    return _make


def small_config(**quota) -> Config:
    """Quota and persistence limits scaled down to a few kilobytes."""
    return Config(
        quota=QuotaConfig(**{"max_record_bytes": 1_000, "max_total_bytes": 4_000, **quota}),
        persistence=PersistenceConfig(
            store_ceiling_bytes=1_000,
            record_persist_threshold_bytes=500,
        ),
    )


class TestUpload:
    """Tests for CatalogService.upload."""

    def test_requires_admin(self, make_service):
        service = make_service()
        with pytest.raises(PermissionDeniedError):
            service.upload("a.pdf", "ncert", pdf_bytes(100), is_admin=False)
        assert len(service.records) == 0

    def test_rejects_non_pdf(self, make_service):
        service = make_service()
        with pytest.raises(ValidationError):
            service.upload("notes.txt", "ncert", b"hello", is_admin=True)

    def test_rejects_unknown_category(self, make_service):
        service = make_service()
        with pytest.raises(ValidationError):
            service.upload("a.pdf", "poetry", pdf_bytes(100), is_admin=True)

    def test_rejects_empty_filename(self, make_service):
        service = make_service()
        with pytest.raises(ValidationError):
            service.upload("", "ncert", pdf_bytes(100), is_admin=True)

    def test_accepts_uppercase_extension(self, make_service):
        service = make_service()
        result = service.upload("SCAN.PDF", "ncert", pdf_bytes(100), is_admin=True)
        assert result.record is not None

    def test_creates_full_record(self, make_service):
        service = make_service()

        result = service.upload("physics.pdf", "ncert", pdf_bytes(300), is_admin=True)

        record = result.record
        assert record is not None
        assert record.filename == "physics.pdf"
        assert record.size_bytes == 300
        assert record.download_count == 0
        assert record.residency is PayloadResidency.FULL
        assert result.save.tier is PersistenceTier.FULL
        assert result.usage.used_bytes == 300
        assert service.fetch_payload(record.id) == pdf_bytes(300)

    def test_strips_directory_from_filename(self, make_service):
        service = make_service()
        result = service.upload("/tmp/uploads/chem.pdf", "ncert", pdf_bytes(10), is_admin=True)
        assert result.record.filename == "chem.pdf"

    def test_newest_first(self, make_service):
        service = make_service()
        service.upload("first.pdf", "ncert", pdf_bytes(10), is_admin=True)
        service.upload("second.pdf", "ncert", pdf_bytes(10), is_admin=True)
        assert [r.filename for r in service.list_records()] == ["second.pdf", "first.pdf"]

    def test_ten_megabytes_into_empty_store(self, make_service):
        service = make_service()

        result = service.upload("big.pdf", "pyqs", pdf_bytes(10 * MIB), is_admin=True)

        assert result.usage.used_bytes == 10 * MIB
        assert service.usage().used_bytes == 10 * MIB
        assert result.save.tier is PersistenceTier.STRIPPED
        assert result.record.residency is PayloadResidency.SESSION_ONLY
        assert DEGRADED_WARNING in result.warnings
        assert service.fetch_payload(result.record.id) == pdf_bytes(10 * MIB)

    def test_quota_exceeded_leaves_state_unchanged(self, make_service):
        service = make_service(small_config(max_total_bytes=800))
        service.upload("a.pdf", "ncert", pdf_bytes(795), is_admin=True)
        persisted = service.kv.get(CATALOG_KEY)

        with pytest.raises(QuotaExceededError):
            service.upload("b.pdf", "ncert", pdf_bytes(10), is_admin=True)

        assert len(service.records) == 1
        assert service.usage().used_bytes == 795
        assert service.kv.get(CATALOG_KEY) == persisted

    def test_record_too_large(self, make_service):
        service = make_service(small_config())
        with pytest.raises(RecordTooLargeError):
            service.upload("a.pdf", "ncert", pdf_bytes(1_001), is_admin=True)
        assert len(service.records) == 0

    def test_usage_never_exceeds_total(self, make_service):
        config = small_config()
        service = make_service(config)

        for index, size in enumerate([900, 700, 1_000, 600, 950, 300, 200, 100, 90]):
            try:
                service.upload(f"doc-{index}.pdf", "ncert", pdf_bytes(size), is_admin=True)
            except UploadRejectedError:
                pass
            assert service.usage().used_bytes <= config.quota.max_total_bytes

    def test_warns_when_usage_crosses_warning_band(self, make_service):
        service = make_service(small_config())
        service.upload("a.pdf", "ncert", pdf_bytes(1_000), is_admin=True)
        service.upload("b.pdf", "ncert", pdf_bytes(1_000), is_admin=True)
        service.upload("c.pdf", "ncert", pdf_bytes(1_000), is_admin=True)

        result = service.upload("d.pdf", "ncert", pdf_bytes(300), is_admin=True)

        assert result.usage.band is UsageBand.WARNING
        assert HIGH_USAGE_WARNING in result.warnings

    def test_warns_when_usage_is_critical(self, make_service):
        service = make_service(small_config())
        for name in ["a.pdf", "b.pdf", "c.pdf"]:
            service.upload(name, "ncert", pdf_bytes(1_000), is_admin=True)

        result = service.upload("d.pdf", "ncert", pdf_bytes(700), is_admin=True)

        assert result.usage.band is UsageBand.CRITICAL
        assert CRITICAL_USAGE_WARNING in result.warnings


class TestReconcileOnLoad:
    """Tests for CatalogService.reconcile_on_load."""

    def test_restores_stripped_payload_from_mirror(self, make_service):
        mirror = SessionMirror()
        first = make_service(small_config(), mirror=mirror)
        record = first.upload("big.pdf", "ncert", pdf_bytes(900), is_admin=True).record
        assert record.residency is PayloadResidency.SESSION_ONLY

        second = make_service(small_config(), mirror=mirror)

        reloaded = second.get(record.id)
        assert reloaded.residency is PayloadResidency.FULL
        assert second.fetch_payload(record.id) == pdf_bytes(900)

    def test_without_mirror_record_becomes_absent(self, make_service):
        first = make_service(small_config())
        record = first.upload("big.pdf", "ncert", pdf_bytes(900), is_admin=True).record

        second = make_service(small_config())

        reloaded = second.get(record.id)
        assert reloaded.residency is PayloadResidency.ABSENT
        assert second.usage().used_bytes == 0
        with pytest.raises(PayloadUnavailableError):
            second.fetch_payload(record.id)

    def test_full_records_survive_restart(self, make_service):
        first = make_service()
        record = first.upload("small.pdf", "ncert", pdf_bytes(100), is_admin=True).record

        second = make_service()

        assert second.get(record.id).residency is PayloadResidency.FULL
        assert second.fetch_payload(record.id) == pdf_bytes(100)

    def test_ids_not_reused_after_delete(self, make_service):
        service = make_service()
        old = service.upload("a.pdf", "ncert", pdf_bytes(10), is_admin=True).record
        service.delete(old.id, is_admin=True)

        new = service.upload("b.pdf", "ncert", pdf_bytes(10), is_admin=True).record

        assert new.id > old.id

    def test_ids_seeded_from_persisted_records(self, make_service):
        clock = FakeClock()
        first = make_service(clock=clock)
        old = first.upload("a.pdf", "ncert", pdf_bytes(10), is_admin=True).record

        second = make_service(clock=FakeClock(start=clock.now - 60))
        new = second.upload("b.pdf", "ncert", pdf_bytes(10), is_admin=True).record

        assert new.id > old.id

    def test_deleted_newest_id_not_reissued_after_restart(self, make_service):
        clock = FakeClock()
        first = make_service(clock=clock)
        old = first.upload("a.pdf", "ncert", pdf_bytes(10), is_admin=True).record
        first.delete(old.id, is_admin=True)

        second = make_service(clock=FakeClock(start=clock.now - 60))
        new = second.upload("b.pdf", "ncert", pdf_bytes(10), is_admin=True).record

        assert new.id > old.id


class TestDelete:
    """Tests for CatalogService.delete."""

    def test_requires_admin(self, make_service):
        service = make_service()
        record = service.upload("a.pdf", "ncert", pdf_bytes(10), is_admin=True).record
        with pytest.raises(PermissionDeniedError):
            service.delete(record.id, is_admin=False)
        assert record.id in service.records

    def test_missing_record(self, make_service):
        with pytest.raises(RecordNotFoundError):
            make_service().delete(123, is_admin=True)

    def test_removes_and_persists(self, make_service):
        service = make_service()
        keep = service.upload("keep.pdf", "ncert", pdf_bytes(100), is_admin=True).record
        gone = service.upload("gone.pdf", "ncert", pdf_bytes(200), is_admin=True).record

        result = service.delete(gone.id, is_admin=True)

        assert result.usage.used_bytes == 100
        assert gone.payload is None
        persisted_ids = [entry["id"] for entry in json.loads(service.kv.get(CATALOG_KEY))]
        assert persisted_ids == [keep.id]
        assert gone.id not in service.mirror

    def test_session_only_record(self, make_service):
        service = make_service(small_config())
        record = service.upload("big.pdf", "ncert", pdf_bytes(900), is_admin=True).record
        assert record.residency is PayloadResidency.SESSION_ONLY

        service.delete(record.id, is_admin=True)

        assert len(service.records) == 0
        assert service.usage().used_bytes == 0

    def test_revokes_preview_handle(self, make_service):
        service = make_service()
        record = service.upload("a.pdf", "ncert", pdf_bytes(10), is_admin=True).record
        handle = service.open_preview(record.id)
        assert handle.path.exists()

        service.delete(record.id, is_admin=True)

        assert not handle.path.exists()


class TestRecordDownload:
    """Tests for CatalogService.record_download."""

    def test_increments_count_and_logs_event(self, make_service):
        clock = FakeClock()
        service = make_service(clock=clock)
        record = service.upload("a.pdf", "pyqs", pdf_bytes(50), is_admin=True).record
        clock.advance(5)

        event = service.record_download(record.id).event

        assert record.download_count == 1
        assert event.record_id == record.id
        assert event.filename == "a.pdf"
        assert event.category == "pyqs"
        assert event.size_bytes == 50
        assert event.downloaded_at_unix == clock.now
        assert service.history.entries() == [event]

    def test_count_is_persisted(self, make_service):
        service = make_service()
        record = service.upload("a.pdf", "ncert", pdf_bytes(50), is_admin=True).record
        service.record_download(record.id)
        service.record_download(record.id)

        reloaded = make_service()

        assert reloaded.get(record.id).download_count == 2
        assert len(reloaded.history) == 2

    def test_missing_record(self, make_service):
        with pytest.raises(RecordNotFoundError):
            make_service().record_download(1)

    def test_absent_payload(self, make_service):
        first = make_service(small_config())
        record = first.upload("big.pdf", "ncert", pdf_bytes(900), is_admin=True).record
        second = make_service(small_config())

        with pytest.raises(PayloadUnavailableError):
            second.record_download(record.id)
        assert second.get(record.id).download_count == 0
        assert len(second.history) == 0

    def test_session_only_payload_is_downloadable(self, make_service):
        service = make_service(small_config())
        record = service.upload("big.pdf", "ncert", pdf_bytes(900), is_admin=True).record

        result = service.record_download(record.id)

        assert record.download_count == 1
        assert result.save.tier is PersistenceTier.STRIPPED
        assert DEGRADED_WARNING in result.warnings

    def test_returns_usage_warnings(self, make_service):
        service = make_service(small_config())
        for name in ["a.pdf", "b.pdf", "c.pdf"]:
            service.upload(name, "ncert", pdf_bytes(1_000), is_admin=True)
        record = service.upload("d.pdf", "ncert", pdf_bytes(700), is_admin=True).record

        result = service.record_download(record.id)

        assert CRITICAL_USAGE_WARNING in result.warnings


class TestOpenPreview:
    """Tests for CatalogService.open_preview."""

    def test_writes_real_payload(self, make_service):
        service = make_service()
        record = service.upload("a.pdf", "ncert", pdf_bytes(64), is_admin=True).record

        handle = service.open_preview(record.id)

        assert not handle.is_placeholder
        assert handle.path.read_bytes() == pdf_bytes(64)

    def test_placeholder_when_absent(self, make_service):
        first = make_service(small_config())
        record = first.upload("big.pdf", "ncert", pdf_bytes(900), is_admin=True).record
        second = make_service(small_config())

        handle = second.open_preview(record.id)

        assert handle.is_placeholder
        content = handle.path.read_bytes()
        assert content.startswith(b"%PDF-1.4")
        assert b"big.pdf" in content


class TestClearAll:
    """Tests for CatalogService.clear_all."""

    def test_requires_admin(self, make_service):
        service = make_service()
        service.upload("a.pdf", "ncert", pdf_bytes(10), is_admin=True)
        with pytest.raises(PermissionDeniedError):
            service.clear_all(is_admin=False)
        assert len(service.records) == 1

    def test_idempotent(self, make_service):
        service = make_service()
        service.upload("a.pdf", "ncert", pdf_bytes(10), is_admin=True)
        service.upload("b.pdf", "ncert", pdf_bytes(20), is_admin=True)

        for _ in range(2):
            result = service.clear_all(is_admin=True)
            assert result.usage.used_bytes == 0
            assert service.list_records() == []
            assert service.kv.get(CATALOG_KEY) == "[]"
            assert len(service.mirror) == 0

    def test_revokes_all_handles(self, make_service):
        service = make_service()
        record = service.upload("a.pdf", "ncert", pdf_bytes(10), is_admin=True).record
        handle = service.open_preview(record.id)

        service.clear_all(is_admin=True)

        assert not handle.path.exists()
        assert len(service.handles) == 0


class TestListingAndExport:
    """Tests for listing, search and export."""

    def test_search_and_filter(self, make_service):
        service = make_service()
        service.upload("Physics Part 1.pdf", "ncert", pdf_bytes(10), is_admin=True)
        service.upload("Physics PYQ 2023.pdf", "pyqs", pdf_bytes(10), is_admin=True)
        service.upload("Chemistry.pdf", "ncert", pdf_bytes(10), is_admin=True)

        assert len(service.list_records("physics")) == 2
        assert [r.filename for r in service.list_records("physics", "ncert")] == [
            "Physics Part 1.pdf"
        ]

    def test_unknown_filter_category(self, make_service):
        with pytest.raises(ValidationError):
            make_service().list_records(category="poetry")

    def test_export_requires_admin(self, make_service):
        with pytest.raises(PermissionDeniedError):
            make_service().export_listing(is_admin=False)

    def test_export_fields(self, make_service):
        service = make_service()
        service.upload("notes.pdf", "pw-notes", pdf_bytes(2048), is_admin=True)

        listing = service.export_listing(is_admin=True)

        assert listing == [
            {
                "filename": "notes.pdf",
                "category": "pw-notes",
                "category_name": "PW Notes",
                "upload_date": listing[0]["upload_date"],
                "size": "2.0 KB",
                "downloads": 0,
                "available": True,
            }
        ]


class LockedStore(KeyValueStore):
    """Store whose every write fails as if another process held the database."""

    def set(self, key: str, value: str) -> None:
        raise sqlite3.OperationalError("database is locked")

    def remove(self, key: str) -> None:
        raise sqlite3.OperationalError("database is locked")


class TestLockedDatabase:
    """Mutations complete in memory when the database refuses writes."""

    @pytest.fixture
    def service(self, db: Database, tmp_path: Path) -> CatalogService:
        service = CatalogService(
            LockedStore(db),
            Config(),
            clock=FakeClock(),
            handles=PayloadHandles(tmp_path / "previews"),
        )
        service.reconcile_on_load()
        return service

    def test_upload(self, service):
        result = service.upload("a.pdf", "ncert", pdf_bytes(100), is_admin=True)

        assert not result.save.persisted
        assert UNSAVED_WARNING in result.warnings
        assert result.record.id in service.records
        assert service.fetch_payload(result.record.id) == pdf_bytes(100)

    def test_download_and_delete(self, service):
        record = service.upload("a.pdf", "ncert", pdf_bytes(100), is_admin=True).record

        result = service.record_download(record.id)
        assert result.event.record_id == record.id
        assert len(service.history) == 1

        service.delete(record.id, is_admin=True)
        assert len(service.records) == 0

    def test_feedback_and_login(self, service):
        session = service.sessions.login("admin@pdfplace.com", "admin123")
        assert session.is_admin

        comment = service.comments.submit("hello", "general", Session("a@b.com"))
        assert service.comments.get(comment.id) == comment

        service.sessions.logout()

    def test_history_clear(self, service):
        record = service.upload("a.pdf", "ncert", pdf_bytes(100), is_admin=True).record
        service.record_download(record.id)

        assert service.history.clear() == 1
        assert service.history.entries() == []
