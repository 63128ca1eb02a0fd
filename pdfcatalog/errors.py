"""Exception types raised by the catalog services."""


class CatalogError(Exception):
    """Base class for all user-facing catalog errors."""


class ValidationError(CatalogError):
    """Raised when input is rejected before any state changes."""


class PermissionDeniedError(CatalogError):
    """Raised when an administrator-only operation is attempted without privilege."""


class UploadRejectedError(CatalogError):
    """Raised when the quota policy refuses an upload."""

    reason = "rejected"


class RecordTooLargeError(UploadRejectedError):
    """Raised when a single record exceeds the per-record limit."""

    reason = "record_too_large"


class QuotaExceededError(UploadRejectedError):
    """Raised when an upload would push usage past the total limit."""

    reason = "quota_exceeded"


class RecordNotFoundError(CatalogError):
    """Raised when operating on an id that is not in the catalog."""

    def __init__(self, record_id: int):
        super().__init__(f"Record not found: {record_id}")
        self.record_id = record_id


class PayloadUnavailableError(CatalogError):
    """Raised when a record's payload is neither persisted nor in the session mirror."""

    def __init__(self, record_id: int, filename: str):
        super().__init__(f"Payload not available for {filename} (id {record_id})")
        self.record_id = record_id
        self.filename = filename


class DuplicateIdError(CatalogError):
    """Raised when a record id is inserted twice."""


class StoreFullError(Exception):
    """Raised by the key-value store when a write would exceed its capacity."""


class CommentNotFoundError(CatalogError):
    """Raised when a comment id is not in the feedback log."""

    def __init__(self, comment_id: int):
        super().__init__(f"Comment not found: {comment_id}")
        self.comment_id = comment_id
