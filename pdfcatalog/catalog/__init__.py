"""Catalog services: uploads, downloads, logs and sessions."""

from .auth import AuthenticationProvider, DemoCredentialProvider, SessionStore
from .handles import PayloadHandles
from .logs import CommentLog, DownloadHistoryLog
from .placeholder import build_placeholder_pdf
from .service import (
    CatalogService,
    DownloadResult,
    MutationResult,
    PreviewHandle,
    UploadResult,
)

__all__ = [
    "AuthenticationProvider",
    "CatalogService",
    "CommentLog",
    "DemoCredentialProvider",
    "DownloadHistoryLog",
    "DownloadResult",
    "MutationResult",
    "PayloadHandles",
    "PreviewHandle",
    "SessionStore",
    "UploadResult",
    "build_placeholder_pdf",
]
