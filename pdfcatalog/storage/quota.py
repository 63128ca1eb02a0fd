"""Quota decisions: upload admission and usage bands."""

from dataclasses import dataclass
from enum import Enum

from pdfcatalog.config import QuotaConfig
from pdfcatalog.formatting import format_bytes


class UsageBand(Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


class RejectReason(Enum):
    RECORD_TOO_LARGE = "record_too_large"
    QUOTA_EXCEEDED = "quota_exceeded"


@dataclass(frozen=True)
class Admission:
    """Outcome of an upload admission check."""

    allowed: bool
    reason: RejectReason | None = None
    message: str = ""


@dataclass(frozen=True)
class UsageReport:
    """Point-in-time view of aggregate usage against the total limit."""

    used_bytes: int
    limit_bytes: int
    ratio: float
    band: UsageBand

    @property
    def remaining_bytes(self) -> int:
        return max(0, self.limit_bytes - self.used_bytes)

    @property
    def percentage(self) -> float:
        return self.ratio * 100


class QuotaPolicy:
    """Pure decision functions over a :class:`QuotaConfig`."""

    def __init__(self, config: QuotaConfig | None = None) -> None:
        self.config = config or QuotaConfig()

    def admit_upload(self, candidate_bytes: int, current_usage_bytes: int) -> Admission:
        if candidate_bytes > self.config.max_record_bytes:
            return Admission(
                allowed=False,
                reason=RejectReason.RECORD_TOO_LARGE,
                message=(
                    "File size too large. Maximum size is "
                    f"{format_bytes(self.config.max_record_bytes)}."
                ),
            )
        if current_usage_bytes + candidate_bytes > self.config.max_total_bytes:
            return Admission(
                allowed=False,
                reason=RejectReason.QUOTA_EXCEEDED,
                message="Not enough storage space. Please clear some files first.",
            )
        return Admission(allowed=True)

    def classify(self, usage_ratio: float) -> UsageBand:
        if usage_ratio >= self.config.critical_ratio:
            return UsageBand.CRITICAL
        if usage_ratio >= self.config.warning_ratio:
            return UsageBand.WARNING
        return UsageBand.NORMAL

    def usage_ratio(self, usage_bytes: int) -> float:
        if self.config.max_total_bytes <= 0:
            return 1.0
        return usage_bytes / self.config.max_total_bytes

    def snapshot(self, usage_bytes: int) -> UsageReport:
        ratio = self.usage_ratio(usage_bytes)
        return UsageReport(
            used_bytes=usage_bytes,
            limit_bytes=self.config.max_total_bytes,
            ratio=ratio,
            band=self.classify(ratio),
        )
