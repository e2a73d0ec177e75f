from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr


class ManagerRoleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: StrictStr = Field(min_length=3)
    is_manager: StrictBool = Field(alias="isManager")


class UserProfile(BaseModel):
    """Subset of the ``users/{uid}`` profile document the role check needs."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    uid: str
    email: Optional[str] = None
    is_manager: bool = Field(default=False, alias="isManager")

    @classmethod
    def from_document(cls, uid: str, data: Optional[Dict[str, Any]]) -> Optional["UserProfile"]:
        if data is None:
            return None
        return cls.model_validate({**data, "uid": uid})


class ManagerRoleResponse(BaseModel):
    result: str
