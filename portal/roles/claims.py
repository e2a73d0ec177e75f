"""Identity/claims service backed by Firebase Authentication."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import firebase_admin
from firebase_admin import auth, credentials

from portal.common.errors import AuthError, ConfigError, NotFound
from portal.config.runtime_config import FirebaseConfig

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "portal-roles"


class ClaimsService(Protocol):
    def verify_id_token(self, id_token: str) -> str: ...
    def get_uid_by_email(self, email: str) -> str: ...
    def set_custom_claims(self, uid: str, claims: Dict[str, Any]) -> None: ...


class FirebaseClaimsService:
    """Wraps firebase-admin ``auth`` calls against an explicitly owned app."""

    def __init__(self, app: firebase_admin.App) -> None:
        self._app = app

    @classmethod
    def from_config(cls, config: FirebaseConfig) -> "FirebaseClaimsService":
        try:
            app = firebase_admin.get_app(FIREBASE_APP_NAME)
        except ValueError:
            try:
                cert = credentials.Certificate(config.credentials)
            except ValueError as exc:
                raise ConfigError(f"FIREBASE_ADMIN_CREDENTIALS rejected: {exc}") from exc
            options = {"projectId": config.project_id} if config.project_id else None
            app = firebase_admin.initialize_app(cert, options=options, name=FIREBASE_APP_NAME)
        return cls(app)

    def verify_id_token(self, id_token: str) -> str:
        try:
            decoded = auth.verify_id_token(id_token, app=self._app)
        except (auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError, ValueError) as exc:
            raise AuthError(f"Invalid ID token: {exc}") from exc
        return decoded["uid"]

    def get_uid_by_email(self, email: str) -> str:
        try:
            return auth.get_user_by_email(email, app=self._app).uid
        except auth.UserNotFoundError as exc:
            raise NotFound(f"No user registered with email {email}") from exc

    def set_custom_claims(self, uid: str, claims: Dict[str, Any]) -> None:
        auth.set_custom_user_claims(uid, claims, app=self._app)
        logger.info("Custom claims updated for %s: %s", uid, claims)


class InMemoryClaimsService:
    """Token -> uid table for dev/tests."""

    def __init__(
        self,
        tokens: Optional[Dict[str, str]] = None,
        users: Optional[Dict[str, str]] = None,
    ) -> None:
        self.tokens = dict(tokens or {})
        self.users = dict(users or {})
        self.claims: Dict[str, Dict[str, Any]] = {}

    def verify_id_token(self, id_token: str) -> str:
        uid = self.tokens.get(id_token)
        if uid is None:
            raise AuthError("Invalid ID token")
        return uid

    def get_uid_by_email(self, email: str) -> str:
        uid = self.users.get(email)
        if uid is None:
            raise NotFound(f"No user registered with email {email}")
        return uid

    def set_custom_claims(self, uid: str, claims: Dict[str, Any]) -> None:
        self.claims[uid] = dict(claims)
