"""Manager role grants: only an existing manager may change another user's role."""
from __future__ import annotations

import json
import logging
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from portal.common.errors import AuthError, ConfigError, PermissionDenied, ValidationError
from portal.config.runtime_config import load_firebase_config
from portal.roles.claims import ClaimsService, FirebaseClaimsService
from portal.roles.models import ManagerRoleRequest, ManagerRoleResponse
from portal.roles.repository import FirestoreProfileRepository, ProfileRepository

logger = logging.getLogger(__name__)


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthError("Missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthError("Missing bearer token")
    return token


def parse_payload(raw: Union[bytes, str, None]) -> Any:
    """Decode a JSON request body; an empty body is treated as ``null``."""
    try:
        return json.loads(raw or "null")
    except ValueError as exc:
        raise ValidationError(f"Request body is not valid JSON: {exc}") from exc


class RoleService:
    def __init__(self, claims: ClaimsService, profiles: ProfileRepository) -> None:
        self.claims = claims
        self.profiles = profiles

    def require_manager(self, id_token: str) -> str:
        caller_uid = self.claims.verify_id_token(id_token)
        profile = self.profiles.get_profile(caller_uid)
        if profile is None or not profile.is_manager:
            raise PermissionDenied("Permission denied. Only managers can set user roles.")
        return caller_uid

    def set_manager_role(self, id_token: str, payload: Any) -> ManagerRoleResponse:
        caller_uid = self.require_manager(id_token)
        try:
            req = ManagerRoleRequest.model_validate(payload)
        except PydanticValidationError as exc:
            raise ValidationError(
                "The function must be called with an email and a boolean for isManager."
            ) from exc

        target_uid = self.claims.get_uid_by_email(req.email)
        self.claims.set_custom_claims(target_uid, {"isManager": req.is_manager})
        self.profiles.merge_profile(target_uid, {"isManager": req.is_manager})
        logger.info("Manager %s set isManager=%s for %s", caller_uid, req.is_manager, target_uid)
        flag = "true" if req.is_manager else "false"
        return ManagerRoleResponse(result=f"{req.email} is now a manager: {flag}")


# Module-level default service, built lazily from FIREBASE_ADMIN_CREDENTIALS.
_default_service: Optional[RoleService] = None


def _build_default_service() -> RoleService:
    config = load_firebase_config()
    try:
        profiles = FirestoreProfileRepository.from_config(config)
    except ValueError as exc:
        raise ConfigError(f"FIREBASE_ADMIN_CREDENTIALS rejected: {exc}") from exc
    return RoleService(FirebaseClaimsService.from_config(config), profiles)


def get_role_service() -> RoleService:
    global _default_service
    if _default_service is None:
        _default_service = _build_default_service()
    return _default_service


def set_role_service(service: Optional[RoleService]) -> None:
    """Override the default service (useful for tests)."""
    global _default_service
    _default_service = service
