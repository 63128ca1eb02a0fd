"""Storage and quota management for the catalog."""

from .payload import decode_payload, encode_payload
from .persistence import PersistenceAdapter, PersistenceTier, SaveReport, SessionMirror
from .quota import Admission, QuotaPolicy, RejectReason, UsageBand, UsageReport
from .record_store import RecordStore
from .sizing import estimate_catalog_usage, estimate_decoded_size, estimate_encoded_size

__all__ = [
    "Admission",
    "PersistenceAdapter",
    "PersistenceTier",
    "QuotaPolicy",
    "RecordStore",
    "RejectReason",
    "SaveReport",
    "SessionMirror",
    "UsageBand",
    "UsageReport",
    "decode_payload",
    "encode_payload",
    "estimate_catalog_usage",
    "estimate_decoded_size",
    "estimate_encoded_size",
]
