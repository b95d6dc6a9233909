"""
File API Endpoints

Handles encrypted storage, access-controlled retrieval, hash verification and
file listings.
"""
from typing import Optional, List
from urllib.parse import quote

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import Response
from pydantic import ValidationError
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.core.crypto import FileCipher, get_file_cipher
from app.core.database import get_db
from app.core.exceptions import AccessForbidden, ValidationFailed
from app.core.identity import get_requester_identity, normalize_identity, require_identity
from app.core.logging import get_logger
from app.schemas.file import (
    FileStoreRequest,
    FileStoreResponse,
    FileStoreResult,
    FileResponse,
    FileMetadataResponse,
    FileListResponse,
    FileDeleteResponse,
    FileVerifyRequest,
    FileVerifyResponse,
    FileVerifyResult,
)
from app.services.access_log_service import AccessKind
from app.services.anchor_service import AnchorClient, anchor_and_record, get_anchor_client, get_session_factory
from app.services.file_ledger_service import FileLedgerService
from app.services.ingestion_service import IngestionService
from app.services.retrieval_service import RetrievalService
from app.services.role_service import RoleDirectoryService
from app.services.storage import StorageServiceInterface, get_storage_service

logger = get_logger("api.files")

router = APIRouter()


def _client_metadata(request: Request):
    ip_address = request.client.host if request.client else ""
    return ip_address, request.headers.get("user-agent", "")


def _content_disposition(disposition: str, filename: str) -> str:
    ascii_name = filename.encode("ascii", "replace").decode("ascii").replace('"', "'")
    return f"{disposition}; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


def _list_response(records, message: str) -> FileListResponse:
    return FileListResponse(
        status="success",
        message=message,
        data=[FileResponse.model_validate(record) for record in records],
        total=len(records),
    )


@router.post("/store", response_model=FileStoreResponse, status_code=status.HTTP_201_CREATED)
def store_file(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="File to store"),
    owner_address: Optional[str] = Form(None, description="Owner identity"),
    sender_address: Optional[str] = Form(None, description="Sender identity, takes precedence over owner_address"),
    receiver_address: Optional[str] = Form(None, description="Receiver identity"),
    access_type: Optional[str] = Form(None, description="public, private or role-based"),
    is_public: bool = Form(False, description="Legacy public flag used when access_type is omitted"),
    allowed_roles: Optional[str] = Form(None, description="JSON array or comma separated role names"),
    label: str = Form(""),
    document_type: str = Form(""),
    description: str = Form(""),
    attention: str = Form("Always"),
    confidence: str = Form("Usually"),
    image_hash: Optional[str] = Form(None),
    file_id: Optional[str] = Form(None, description="Existing file id to re-ingest"),
    db: Session = Depends(get_db),
    cipher: FileCipher = Depends(get_file_cipher),
    storage_service: StorageServiceInterface = Depends(get_storage_service),
    anchor_client: AnchorClient = Depends(get_anchor_client),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """
    Hash, encrypt and store a file, then record it in the ledger.

    **Access types:**
    - **public**: anyone may retrieve
    - **private**: only the owner and the receiver
    - **role-based**: owner, receiver and holders of one of `allowed_roles`

    On-chain anchoring of the content hash is scheduled after the ledger commit
    and never fails the upload.
    """
    try:
        store_request = FileStoreRequest(
            owner_address=sender_address or owner_address,
            receiver_address=receiver_address,
            access_type=access_type,
            is_public=is_public,
            allowed_roles=allowed_roles,
            label=label,
            document_type=document_type,
            description=description,
            attention=attention,
            confidence=confidence,
            image_hash=image_hash,
            file_id=file_id,
        )
    except ValidationError as e:
        raise ValidationFailed(
            "Invalid store request",
            errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
        )

    file_bytes = file.file.read()
    service = IngestionService(db, cipher, storage_service)
    record = service.store_file(
        file_bytes=file_bytes,
        original_filename=file.filename,
        mime_type=file.content_type,
        request=store_request,
    )

    anchoring = "disabled"
    if anchor_client.enabled:
        background_tasks.add_task(
            anchor_and_record,
            anchor_client,
            session_factory,
            record.file_id,
            settings.ANCHOR_VERSION,
            record.content_hash,
        )
        anchoring = "scheduled"

    return FileStoreResponse(
        status="success",
        message="File encrypted & stored",
        data=FileStoreResult(
            file_id=record.file_id,
            content_hash=record.content_hash,
            blob_location=record.blob_location,
            anchoring=anchoring,
        ),
    )


@router.post("/verify", response_model=FileVerifyResponse, status_code=status.HTTP_200_OK)
def verify_file(
    verify_data: FileVerifyRequest,
    request: Request,
    db: Session = Depends(get_db),
    cipher: FileCipher = Depends(get_file_cipher),
    storage_service: StorageServiceInterface = Depends(get_storage_service),
):
    """Compare a caller computed SHA-256 digest against the stored content hash."""
    ip_address, user_agent = _client_metadata(request)
    result = RetrievalService(db, cipher, storage_service).verify(
        file_id=verify_data.file_id,
        provided_hash=verify_data.file_hash,
        requester=normalize_identity(verify_data.address),
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return FileVerifyResponse(
        status="success",
        message="File integrity verified" if result.is_valid else "File hash mismatch",
        data=FileVerifyResult(
            file_id=result.file_id,
            is_valid=result.is_valid,
            stored_hash=result.stored_hash,
            provided_hash=result.provided_hash,
            original_filename=result.record.original_filename,
            uploaded_at=result.record.uploaded_at,
        ),
    )


@router.get("/public/all", response_model=FileListResponse, status_code=status.HTTP_200_OK)
def list_all_public_files(db: Session = Depends(get_db)):
    """All publicly accessible files, newest first"""
    records = FileLedgerService(db).query_public()
    logger.info(f"Retrieved {len(records)} public files")
    return _list_response(records, "Public files fetched successfully")


@router.get("/public/{address}", response_model=FileListResponse, status_code=status.HTTP_200_OK)
def list_public_files_of_owner(address: str, db: Session = Depends(get_db)):
    """Publicly accessible files owned by address"""
    owner = require_identity(address, "address")
    records = FileLedgerService(db).query_public(owner=owner)
    return _list_response(records, "Public files fetched successfully")


@router.get("/accessible/{address}", response_model=FileListResponse, status_code=status.HTTP_200_OK)
def list_accessible_files(address: str, db: Session = Depends(get_db)):
    """Files address may retrieve: public, owned, received and role-matching"""
    identity = require_identity(address, "address")
    roles = RoleDirectoryService(db).roles_of(identity)
    records = FileLedgerService(db).query_accessible_by(identity, roles)
    logger.info(f"Retrieved {len(records)} accessible files for {identity}")
    return _list_response(records, "Accessible files fetched successfully")


@router.get("/user/{address}", response_model=FileListResponse, status_code=status.HTTP_200_OK)
def list_user_files(address: str, db: Session = Depends(get_db)):
    """Files address sent or received"""
    identity = require_identity(address, "address")
    records = FileLedgerService(db).query_by_owner_or_receiver(identity)
    return _list_response(records, "User files fetched successfully")


@router.get("/owner/{address}", response_model=FileListResponse, status_code=status.HTTP_200_OK)
def list_owner_files(address: str, db: Session = Depends(get_db)):
    """Files owned by address"""
    identity = require_identity(address, "address")
    records = FileLedgerService(db).query_by_owner(identity)
    return _list_response(records, "Owner files fetched successfully")


def _retrieve(
    file_id: str,
    kind: AccessKind,
    request: Request,
    requester: Optional[str],
    db: Session,
    cipher: FileCipher,
    storage_service: StorageServiceInterface,
) -> Response:
    ip_address, user_agent = _client_metadata(request)
    retrieved = RetrievalService(db, cipher, storage_service).retrieve(
        file_id=file_id,
        requester=requester,
        kind=kind,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    record = retrieved.record
    disposition = "inline" if kind == AccessKind.VIEW else "attachment"
    return Response(
        content=retrieved.content,
        media_type=record.mime_type or "application/octet-stream",
        headers={
            "Content-Disposition": _content_disposition(disposition, record.original_filename),
            "X-Content-Hash": record.content_hash,
            "X-Access-Reason": retrieved.decision.reason.value,
        },
    )


@router.get("/{file_id}/download", status_code=status.HTTP_200_OK)
def download_file(
    file_id: str,
    request: Request,
    requester: Optional[str] = Depends(get_requester_identity),
    db: Session = Depends(get_db),
    cipher: FileCipher = Depends(get_file_cipher),
    storage_service: StorageServiceInterface = Depends(get_storage_service),
):
    """
    Download and decrypt a file.

    - 401 when the file is not public and no identity is given
    - 403 with the denial reason (and required roles for role-based files)
    """
    return _retrieve(file_id, AccessKind.DOWNLOAD, request, requester, db, cipher, storage_service)


@router.get("/{file_id}/view", status_code=status.HTTP_200_OK)
def view_file(
    file_id: str,
    request: Request,
    requester: Optional[str] = Depends(get_requester_identity),
    db: Session = Depends(get_db),
    cipher: FileCipher = Depends(get_file_cipher),
    storage_service: StorageServiceInterface = Depends(get_storage_service),
):
    """Same as download, served inline and audited as a view"""
    return _retrieve(file_id, AccessKind.VIEW, request, requester, db, cipher, storage_service)


@router.get("/{file_id}", response_model=FileMetadataResponse, status_code=status.HTTP_200_OK)
def get_file_metadata(file_id: str, db: Session = Depends(get_db)):
    """Ledger record of a file (no content)"""
    record = FileLedgerService(db).get(file_id)
    return FileMetadataResponse(status="success", data=FileResponse.model_validate(record))


@router.delete("/{file_id}", response_model=FileDeleteResponse, status_code=status.HTTP_200_OK)
def delete_file(
    file_id: str,
    requester: Optional[str] = Depends(get_requester_identity),
    db: Session = Depends(get_db),
    storage_service: StorageServiceInterface = Depends(get_storage_service),
):
    """
    Delete a file's ledger record and its blob.

    Only the owner can delete a file.
    """
    ledger = FileLedgerService(db)
    record = ledger.get(file_id)
    if not requester or requester != record.owner_address:
        raise AccessForbidden(
            "You don't have permission to delete this file",
            reason="not-owner",
            access_type=record.access_type,
        )

    blob_location = record.blob_location
    ledger.delete(file_id)
    try:
        storage_service.delete(blob_location)
    except OSError as e:
        logger.warning(f"Ledger record {file_id} deleted but blob removal failed: {str(e)}")

    return FileDeleteResponse(status="success", message="File deleted successfully")
