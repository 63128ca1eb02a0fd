"""Data models for the catalog and its logs."""

from dataclasses import asdict, dataclass
from enum import Enum


class PayloadResidency(Enum):
    """Where a record's payload currently lives."""

    FULL = "full"
    SESSION_ONLY = "session_only"
    ABSENT = "absent"


class CommentStatus(Enum):
    """Review status of a feedback comment."""

    PENDING = "pending"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"


RECORD_CATEGORIES = {
    "ncert": "NCERT",
    "pyqs": "PYQs",
    "mocktest": "Mock Test",
    "pw-notes": "PW Notes",
    "kgs-notes": "KGS Notes",
    "others": "Others",
}

COMMENT_CATEGORIES = {
    "suggestion": "Suggestion",
    "bug": "Bug Report",
    "feature": "Feature Request",
    "general": "General",
}


def normalize_category(category: str | None) -> str:
    if category in RECORD_CATEGORIES:
        return category
    return "others"


def category_display_name(category: str | None) -> str:
    return RECORD_CATEGORIES[normalize_category(category)]


@dataclass
class Record:
    """Represents a cataloged PDF document."""

    id: int
    filename: str
    category: str
    size_bytes: int
    uploaded_at_unix: float
    download_count: int = 0
    payload: str | None = None
    residency: PayloadResidency = PayloadResidency.FULL

    def metadata_dict(self, residency: PayloadResidency) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "category": self.category,
            "size_bytes": self.size_bytes,
            "uploaded_at_unix": self.uploaded_at_unix,
            "download_count": self.download_count,
            "residency": residency.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Record":
        return cls(
            id=int(data["id"]),
            filename=str(data["filename"]),
            category=str(data.get("category") or "others"),
            size_bytes=int(data.get("size_bytes") or 0),
            uploaded_at_unix=float(data.get("uploaded_at_unix") or 0.0),
            download_count=int(data.get("download_count") or 0),
            payload=data.get("payload"),
            residency=PayloadResidency(data.get("residency", PayloadResidency.ABSENT.value)),
        )


@dataclass
class DownloadEvent:
    """Represents one entry of the download history."""

    id: int
    record_id: int
    filename: str
    category: str
    downloaded_at_unix: float
    size_bytes: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "DownloadEvent":
        return cls(
            id=int(data["id"]),
            record_id=int(data["record_id"]),
            filename=str(data["filename"]),
            category=str(data.get("category") or "others"),
            downloaded_at_unix=float(data["downloaded_at_unix"]),
            size_bytes=int(data.get("size_bytes") or 0),
        )


@dataclass
class Comment:
    """Represents a feedback comment."""

    id: int
    author: str
    category: str
    text: str
    created_at_unix: float
    status: CommentStatus = CommentStatus.PENDING

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Comment":
        return cls(
            id=int(data["id"]),
            author=str(data.get("author") or "Anonymous"),
            category=str(data.get("category") or "general"),
            text=str(data["text"]),
            created_at_unix=float(data["created_at_unix"]),
            status=CommentStatus(data.get("status", CommentStatus.PENDING.value)),
        )


@dataclass
class Session:
    """Represents the logged-in user, if any."""

    current_user: str | None = None
    is_admin: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None
