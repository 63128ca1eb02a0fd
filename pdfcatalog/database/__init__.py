"""Database module for pdfcatalog."""

from .connection import Database
from .kvstore import KeyValueStore
from .models import (
    Comment,
    CommentStatus,
    DownloadEvent,
    PayloadResidency,
    Record,
    Session,
)
from .schema import create_schema

__all__ = [
    "Database",
    "KeyValueStore",
    "create_schema",
    "Record",
    "PayloadResidency",
    "DownloadEvent",
    "Comment",
    "CommentStatus",
    "Session",
]
