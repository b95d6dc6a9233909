from typing import Optional, List
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.core.identity import normalize_identity


def _required_role_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("role_name is required")
    return value


class AuthorityRegister(BaseModel):
    wallet_address: str = Field(..., description="Identity registering itself as authority")
    name: str = Field(..., min_length=1, max_length=255)
    authority_type: str = Field(..., min_length=1, max_length=100, description="e.g. Government, Department")

    @field_validator("wallet_address")
    @classmethod
    def _normalize(cls, value):
        value = normalize_identity(value)
        if not value:
            raise ValueError("wallet_address is required")
        return value


class AuthorityResponse(BaseModel):
    wallet_address: str
    name: str
    authority_type: str
    is_active: bool
    can_create_roles: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RoleCreate(BaseModel):
    role_name: str = Field(..., min_length=1, max_length=255)
    description: str = Field("")
    created_by: str = Field(..., description="Authority identity creating the role")

    @field_validator("role_name")
    @classmethod
    def _strip_name(cls, value):
        return _required_role_name(value)


class RoleResponse(BaseModel):
    role_name: str
    description: str
    created_by: str
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RoleDeactivate(BaseModel):
    requested_by: str = Field(..., description="Authority identity deactivating the role")


class UserRoleAssign(BaseModel):
    wallet_address: str = Field(..., description="User receiving the role")
    role_name: str = Field(..., min_length=1)
    assigned_by: str = Field(..., description="Authority identity assigning the role")

    @field_validator("role_name")
    @classmethod
    def _strip_name(cls, value):
        return _required_role_name(value)


class UserRoleRevoke(BaseModel):
    wallet_address: str
    role_name: str = Field(..., min_length=1)
    revoked_by: str = Field(..., description="Authority identity revoking the role")

    @field_validator("role_name")
    @classmethod
    def _strip_name(cls, value):
        return _required_role_name(value)


class UserRoleResponse(BaseModel):
    wallet_address: str
    role_name: str
    assigned_by: str
    is_active: bool
    assigned_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserRoleListResponse(BaseModel):
    status: str
    message: str
    data: List[UserRoleResponse]
    role_names: List[str]
