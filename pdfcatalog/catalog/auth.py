"""Placeholder authentication and persisted session state.

None of this is security: credentials are literals and the admin flag is
trusted by every service that receives it.
"""

import logging
import sqlite3
from typing import Protocol

from pdfcatalog.database.kvstore import KeyValueStore
from pdfcatalog.database.models import Session
from pdfcatalog.errors import PermissionDeniedError, StoreFullError, ValidationError

logger = logging.getLogger(__name__)

SESSION_KEY = "session"

DEMO_ADMIN_CREDENTIALS = {
    "admin@pdfplace.com": "admin123",
}


class AuthenticationProvider(Protocol):
    """Protocol for turning a credential pair into a session."""

    def authenticate(self, identity: str, secret: str) -> Session:
        """Return the session for these credentials or raise ValidationError."""


class DemoCredentialProvider:
    """Admin for a fixed allow-list, regular user for any other non-empty pair."""

    def __init__(self, admin_credentials: dict[str, str] | None = None) -> None:
        if admin_credentials is None:
            admin_credentials = DEMO_ADMIN_CREDENTIALS
        self.admin_credentials = admin_credentials

    def authenticate(self, identity: str, secret: str) -> Session:
        identity = identity.strip()
        if not identity or not secret:
            raise ValidationError("Please enter both email and password")
        is_admin = self.admin_credentials.get(identity) == secret
        return Session(current_user=identity, is_admin=is_admin)


class SessionStore:
    """Persists the current session under the ``session`` key."""

    def __init__(self, store: KeyValueStore, provider: AuthenticationProvider | None = None):
        self.store = store
        self.provider = provider or DemoCredentialProvider()

    def load(self) -> Session:
        data = self.store.get_json(SESSION_KEY)
        if not isinstance(data, dict) or not data.get("current_user"):
            return Session()
        return Session(current_user=str(data["current_user"]), is_admin=bool(data.get("is_admin")))

    def login(self, identity: str, secret: str) -> Session:
        session = self.provider.authenticate(identity, secret)
        try:
            self.store.set_json(
                SESSION_KEY,
                {"current_user": session.current_user, "is_admin": session.is_admin},
            )
        except (StoreFullError, sqlite3.Error) as e:
            logger.warning("Could not persist session: %s", e)
        logger.info("Logged in %s (admin=%s)", session.current_user, session.is_admin)
        return session

    def logout(self) -> None:
        try:
            self.store.remove(SESSION_KEY)
        except sqlite3.Error as e:
            logger.warning("Could not clear session: %s", e)


def require_admin(is_admin: bool, action: str) -> None:
    if not is_admin:
        raise PermissionDeniedError(f"{action} permission denied. Admin access required.")
