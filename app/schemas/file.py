import json
from typing import Optional, List, Any
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from app.core.access_policy import AccessType, AccessLevel
from app.core.identity import normalize_identity
from app.utils.path_builder import PathBuilder


class FileStoreRequest(BaseModel):
    """Policy and descriptive fields submitted with an upload"""
    owner_address: Optional[str] = Field(None, description="Owner (uploader) identity")
    receiver_address: Optional[str] = Field(None, description="Optional receiver identity")
    access_type: Optional[AccessType] = Field(None, description="public, private or role-based")
    is_public: bool = Field(False, description="Legacy public flag, used when access_type is omitted")
    allowed_roles: List[str] = Field(default_factory=list, description="Roles allowed to read a role-based file")
    label: str = Field("", max_length=255)
    document_type: str = Field("", max_length=255)
    description: str = Field("")
    attention: AccessLevel = Field(AccessLevel.ALWAYS)
    confidence: AccessLevel = Field(AccessLevel.USUALLY)
    image_hash: Optional[str] = Field(None, max_length=255)
    file_id: Optional[str] = Field(None, description="Existing file id to re-ingest")

    @field_validator("owner_address", "receiver_address", mode="before")
    @classmethod
    def _normalize_address(cls, value):
        return normalize_identity(value)

    @field_validator("access_type", mode="before")
    @classmethod
    def _blank_access_type(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("allowed_roles", mode="before")
    @classmethod
    def _parse_allowed_roles(cls, value: Any):
        """Accept a list, a JSON array string or a comma separated string."""
        if value is None or value == "":
            return []
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except ValueError:
                parsed = value.split(",")
            value = parsed if isinstance(parsed, list) else [parsed]
        roles = []
        for role in value:
            role = str(role).strip()
            if role and role not in roles:
                roles.append(role)
        return roles

    @field_validator("file_id")
    @classmethod
    def _check_file_id(cls, value):
        if value is None or value == "":
            return None
        return PathBuilder.validate_file_id(value)

    @model_validator(mode="after")
    def _resolve_policy(self):
        if self.access_type is None:
            self.access_type = AccessType.PUBLIC if self.is_public else AccessType.PRIVATE
        if self.access_type == AccessType.PUBLIC:
            self.is_public = True
        elif self.access_type == AccessType.PRIVATE:
            self.is_public = False
        if self.access_type == AccessType.ROLE_BASED:
            if not self.allowed_roles:
                raise ValueError("allowed_roles must not be empty for role-based access")
        else:
            self.allowed_roles = []
        return self


class FileResponse(BaseModel):
    file_id: str
    owner_address: str
    receiver_address: Optional[str] = None
    access_type: str
    is_public: bool
    allowed_roles: List[str] = Field(default_factory=list)
    attention: str
    confidence: str
    content_hash: str
    image_hash: Optional[str] = None
    blockchain_tx_hash: Optional[str] = None
    original_filename: str
    file_size: int
    mime_type: str
    label: str
    document_type: str
    description: str
    uploaded_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FileStoreResult(BaseModel):
    file_id: str
    content_hash: str
    blob_location: str
    anchoring: str = Field(..., description="scheduled or disabled")


class FileStoreResponse(BaseModel):
    status: str
    message: str
    data: FileStoreResult


class FileMetadataResponse(BaseModel):
    status: str
    data: FileResponse


class FileListResponse(BaseModel):
    status: str
    message: str
    data: List[FileResponse]
    total: int


class FileDeleteResponse(BaseModel):
    status: str
    message: str


class FileVerifyRequest(BaseModel):
    file_id: str = Field(..., description="File id to verify")
    file_hash: str = Field(..., description="Caller computed SHA-256 hex digest")
    address: Optional[str] = Field(None, description="Identity of the verifier")


class FileVerifyResult(BaseModel):
    file_id: str
    is_valid: bool
    stored_hash: str
    provided_hash: str
    original_filename: str
    uploaded_at: datetime


class FileVerifyResponse(BaseModel):
    status: str
    message: str
    data: FileVerifyResult
