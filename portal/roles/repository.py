"""Profile record storage for resident/manager roles."""
from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from google.cloud import firestore
from google.oauth2 import service_account

from portal.config.runtime_config import FirebaseConfig
from portal.roles.models import UserProfile

USERS_COLLECTION = "users"


class ProfileRepository(Protocol):
    """Storage abstraction for ``users/{uid}`` profile documents."""

    def get_profile(self, uid: str) -> Optional[UserProfile]: ...
    def merge_profile(self, uid: str, data: Dict[str, Any]) -> None: ...


class InMemoryProfileRepository:
    """In-memory implementation for dev/tests."""

    def __init__(self, profiles: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self._docs: Dict[str, Dict[str, Any]] = {uid: dict(d) for uid, d in (profiles or {}).items()}

    def get_profile(self, uid: str) -> Optional[UserProfile]:
        return UserProfile.from_document(uid, self._docs.get(uid))

    def merge_profile(self, uid: str, data: Dict[str, Any]) -> None:
        self._docs.setdefault(uid, {}).update(data)

    def raw(self, uid: str) -> Optional[Dict[str, Any]]:
        return self._docs.get(uid)


class FirestoreProfileRepository:
    """Firestore-backed profiles.

    Collections:
    - users/{uid}
    """

    def __init__(self, client: Any) -> None:
        self._client = client
        self._col_users = USERS_COLLECTION

    @classmethod
    def from_config(cls, config: FirebaseConfig) -> "FirestoreProfileRepository":
        credentials = service_account.Credentials.from_service_account_info(config.credentials)
        return cls(firestore.Client(project=config.project_id, credentials=credentials))

    def _col(self, name: str):
        return self._client.collection(name)

    def get_profile(self, uid: str) -> Optional[UserProfile]:
        snap = self._col(self._col_users).document(uid).get()
        return UserProfile.from_document(uid, snap.to_dict()) if snap and snap.exists else None

    def merge_profile(self, uid: str, data: Dict[str, Any]) -> None:
        self._col(self._col_users).document(uid).set(data, merge=True)
