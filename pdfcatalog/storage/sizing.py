"""Size estimation for encoded payloads and the catalog as a whole.

Raw (decoded) byte length is the ground truth. Encoded lengths are derived
from it only where the persisted form matters, so upload admission and usage
accounting always agree on units.
"""

from collections.abc import Iterable

from pdfcatalog.database.models import PayloadResidency, Record
from pdfcatalog.storage.payload import encoded_body_length

DECODE_RATIO = 0.75


def estimate_encoded_size(raw_byte_length: int) -> int:
    """Exact base64 length for ``raw_byte_length`` input bytes."""
    if raw_byte_length < 0:
        raise ValueError(f"Byte length cannot be negative: {raw_byte_length}")
    return 4 * ((raw_byte_length + 2) // 3)


def estimate_decoded_size(encoded_length: int) -> int:
    return int(encoded_length * DECODE_RATIO)


def logical_size(record: Record) -> int:
    if record.size_bytes > 0 or record.payload is None:
        return record.size_bytes
    return estimate_decoded_size(encoded_body_length(record.payload))


def estimate_catalog_usage(records: Iterable[Record]) -> int:
    return sum(
        logical_size(record)
        for record in records
        if record.residency is not PayloadResidency.ABSENT
    )
