"""Tiered persistence of the catalog into the key-value store.

The catalog is written under a single key. When the full encoding does not
fit the configured ceiling, the adapter walks down a degradation ladder:

    FULL           every payload persisted
    STRIPPED       the largest payloads over the per-record threshold are
                   dropped from the persisted form, largest first, until the
                   encoding fits
    METADATA_ONLY  no payloads persisted at all

A save never raises. The session mirror always receives the complete,
undegraded record set so payload reads keep working for the lifetime of the
process.
"""

import dataclasses
import json
import logging
import sqlite3
from dataclasses import dataclass, field
from enum import Enum

from pdfcatalog.config import PersistenceConfig
from pdfcatalog.database.kvstore import KeyValueStore
from pdfcatalog.database.models import PayloadResidency, Record
from pdfcatalog.errors import StoreFullError
from pdfcatalog.storage.payload import encoded_body_length, is_data_uri
from pdfcatalog.storage.sizing import estimate_decoded_size

logger = logging.getLogger(__name__)

CATALOG_KEY = "catalog"

DEGRADED_WARNING = "Storage is full. Large files are kept for this session only."
UNSAVED_WARNING = "Storage full. Some files may not be saved permanently."


class PersistenceTier(Enum):
    FULL = "full"
    STRIPPED = "stripped"
    METADATA_ONLY = "metadata_only"


@dataclass
class SaveReport:
    """Outcome of a catalog save."""

    tier: PersistenceTier
    persisted: bool = True
    encoded_bytes: int = 0
    stripped_ids: list[int] = field(default_factory=list)
    residency: dict[int, PayloadResidency] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.tier is not PersistenceTier.FULL or not self.persisted


class SessionMirror:
    """Full-fidelity copy of the catalog that lives only as long as the process."""

    def __init__(self) -> None:
        self._records: dict[int, Record] = {}

    def replace(self, records: list[Record]) -> None:
        self._records = {record.id: dataclasses.replace(record) for record in records}

    def get(self, record_id: int) -> Record | None:
        return self._records.get(record_id)

    def payload_for(self, record_id: int) -> str | None:
        record = self._records.get(record_id)
        if record is None or not is_data_uri(record.payload):
            return None
        return record.payload

    def clear(self) -> None:
        self._records.clear()

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def __len__(self) -> int:
        return len(self._records)


class PersistenceAdapter:
    """Maps the in-memory catalog onto a size-constrained persisted entry."""

    def __init__(
        self,
        store: KeyValueStore,
        config: PersistenceConfig | None = None,
        mirror: SessionMirror | None = None,
    ) -> None:
        self.store = store
        self.config = config or PersistenceConfig()
        self.mirror = mirror if mirror is not None else SessionMirror()

    def save(self, records: list[Record]) -> SaveReport:
        """Persist ``records`` at the highest tier that fits.

        Updates each record's ``residency`` to reflect what was persisted.
        """
        self.mirror.replace(records)

        report = self._save_tiered(records)
        for record in records:
            record.residency = report.residency[record.id]

        if report.degraded:
            logger.warning(
                "Catalog saved at tier %s (persisted=%s, stripped=%d)",
                report.tier.value,
                report.persisted,
                len(report.stripped_ids),
            )
        return report

    def load(self) -> list[Record]:
        data = self.store.get_json(CATALOG_KEY, default=[])
        if not isinstance(data, list):
            logger.error("Persisted catalog is not a list, ignoring it")
            return []

        records: list[Record] = []
        for entry in data:
            try:
                record = Record.from_dict(entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed catalog entry: %s", e)
                continue
            records.append(_normalize_loaded(record, entry))
        return records

    def _save_tiered(self, records: list[Record]) -> SaveReport:
        entries = [_full_entry(record) for record in records]
        lengths = [_entry_length(entry) for entry in entries]
        ceiling = self.config.store_ceiling_bytes

        if _array_length(lengths) <= ceiling:
            report = self._write(entries, PersistenceTier.FULL)
            if report is not None:
                return report
            return self._save_metadata_only(records)

        stripped_ids: list[int] = []
        for index in self._strip_candidates(records):
            entries[index] = _stripped_entry(records[index])
            lengths[index] = _entry_length(entries[index])
            stripped_ids.append(records[index].id)
            if _array_length(lengths) <= ceiling:
                break

        if _array_length(lengths) <= ceiling:
            report = self._write(entries, PersistenceTier.STRIPPED)
            if report is not None:
                report.stripped_ids = stripped_ids
                report.warnings.append(DEGRADED_WARNING)
                return report

        return self._save_metadata_only(records)

    def _strip_candidates(self, records: list[Record]) -> list[int]:
        """Indexes of records whose payload may be stripped, largest payload first."""
        threshold = self.config.record_persist_threshold_bytes
        sized = [
            (len(record.payload), index)
            for index, record in enumerate(records)
            if record.payload is not None and len(record.payload) > threshold
        ]
        sized.sort(key=lambda item: (-item[0], item[1]))
        return [index for _, index in sized]

    def _save_metadata_only(self, records: list[Record]) -> SaveReport:
        entries = [
            record.metadata_dict(_metadata_residency(record))
            for record in records
        ]
        report = self._write(entries, PersistenceTier.METADATA_ONLY)
        if report is None:
            logger.error("Metadata-only save failed, catalog not persisted")
            report = SaveReport(
                tier=PersistenceTier.METADATA_ONLY,
                persisted=False,
                residency=_residency_map(entries),
                warnings=[UNSAVED_WARNING],
            )
        else:
            report.warnings.append(DEGRADED_WARNING)
        report.stripped_ids = [record.id for record in records if record.payload is not None]
        return report

    def _write(self, entries: list[dict], tier: PersistenceTier) -> SaveReport | None:
        try:
            encoded = json.dumps(entries, separators=(",", ":"))
            self.store.set(CATALOG_KEY, encoded)
        except (StoreFullError, sqlite3.Error, TypeError, ValueError) as e:
            logger.warning("Catalog write at tier %s failed: %s", tier.value, e)
            return None
        return SaveReport(
            tier=tier,
            encoded_bytes=len(encoded),
            residency=_residency_map(entries),
        )


def _full_entry(record: Record) -> dict:
    if record.payload is None:
        return record.metadata_dict(PayloadResidency.ABSENT)
    entry = record.metadata_dict(PayloadResidency.FULL)
    entry["payload"] = record.payload
    return entry


def _stripped_entry(record: Record) -> dict:
    entry = record.metadata_dict(PayloadResidency.SESSION_ONLY)
    entry["payload"] = None
    return entry


def _metadata_residency(record: Record) -> PayloadResidency:
    if record.payload is None:
        return PayloadResidency.ABSENT
    return PayloadResidency.SESSION_ONLY


def _residency_map(entries: list[dict]) -> dict[int, PayloadResidency]:
    return {entry["id"]: PayloadResidency(entry["residency"]) for entry in entries}


def _entry_length(entry: dict) -> int:
    return len(json.dumps(entry, separators=(",", ":")))


def _array_length(entry_lengths: list[int]) -> int:
    """Length of the compact JSON array built from entries of the given lengths."""
    return 2 + sum(entry_lengths) + max(0, len(entry_lengths) - 1)


def _normalize_loaded(record: Record, entry: dict) -> Record:
    if record.payload is not None and not is_data_uri(record.payload):
        logger.warning("Dropping unreadable payload for record %s", record.id)
        record.payload = None

    if "residency" not in entry:
        # Entries written before residency was tracked.
        if record.payload is not None:
            record.residency = PayloadResidency.FULL
        elif entry.get("stored_in_session"):
            record.residency = PayloadResidency.SESSION_ONLY

    if record.residency is PayloadResidency.FULL and record.payload is None:
        record.residency = PayloadResidency.ABSENT
    if record.size_bytes == 0 and record.payload is not None:
        record.size_bytes = estimate_decoded_size(encoded_body_length(record.payload))
    return record
