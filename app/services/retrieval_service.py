"""
Retrieval Service - access decision, decryption and audit

Every retrieval or verification attempt writes exactly one access log entry,
whatever its outcome.
"""
import hmac
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.core.access_policy import (
    AccessReason,
    AccessType,
    Decision,
    evaluate,
    is_publicly_accessible,
    retrieval_allowed,
)
from app.core.crypto import DecryptionError, FileCipher
from app.core.exceptions import (
    AccessForbidden,
    AuthenticationRequired,
    ResourceNotFound,
    StorageFailure,
)
from app.core.logging import get_logger
from app.models.file_record import FileRecord
from app.services.access_log_service import AccessKind, AccessLogService
from app.services.file_ledger_service import FileLedgerService
from app.services.role_service import RoleDirectoryService
from app.services.storage import BlobNotFoundError, StorageServiceInterface

logger = get_logger("services.retrieval")

RETRIEVAL_NOT_ALLOWED = "retrieval-not-allowed"


@dataclass
class RetrievedFile:
    content: bytes
    record: FileRecord
    decision: Decision


@dataclass
class VerificationResult:
    file_id: str
    is_valid: bool
    stored_hash: str
    provided_hash: str
    record: FileRecord


def _denial_message(record: FileRecord, decision: Decision) -> str:
    if decision.reason == AccessReason.DENIED_ROLE_MISMATCH:
        return (
            "Access denied. This file requires one of the following roles: "
            f"{', '.join(decision.required_roles)}. "
            "Please contact an administrator to be assigned the appropriate role."
        )
    if record.access_type == AccessType.PRIVATE.value:
        return "Access denied. This is a private file accessible only to the owner and receiver."
    return "Access denied. You do not have permission to access this file."


class RetrievalService:
    def __init__(self, db: Session, cipher: FileCipher, storage_service: StorageServiceInterface):
        self.db = db
        self.cipher = cipher
        self.storage_service = storage_service
        self.ledger = FileLedgerService(db)
        self.roles = RoleDirectoryService(db)
        self.audit = AccessLogService(db)

    def retrieve(
        self,
        file_id: str,
        requester: Optional[str],
        kind: AccessKind = AccessKind.DOWNLOAD,
        ip_address: str = "",
        user_agent: str = "",
    ) -> RetrievedFile:
        """
        Load, authorize, decrypt.

        Raises:
            ResourceNotFound: No ledger record or blob artifacts
            AuthenticationRequired: Anonymous request for a non-public file
            AccessForbidden: Policy denial or retrieval level gate
            StorageFailure: Blob could not be decrypted
        """
        content_hash = ""
        success = False
        try:
            record = self.ledger.get(file_id)
            content_hash = record.content_hash

            if not requester and not is_publicly_accessible(record):
                logger.info(f"[Access Denied] No identity provided for non-public file: {file_id}")
                raise AuthenticationRequired(
                    "Authentication required. Please connect your wallet to access this file."
                )

            requester_roles = self.roles.roles_of(requester)
            decision = evaluate(requester, record, requester_roles)
            if not decision.granted:
                logger.info(
                    f"[Access Denied] {requester} on {file_id}: {decision.reason.value} "
                    f"(has {sorted(requester_roles)}, needs {list(decision.required_roles)})"
                )
                raise AccessForbidden(
                    _denial_message(record, decision),
                    reason=decision.reason.value,
                    access_type=record.access_type,
                    required_roles=list(decision.required_roles),
                )

            if not retrieval_allowed(record.attention, record.confidence):
                logger.info(
                    f"[Access Denied] {file_id}: attention {record.attention} below confidence {record.confidence}"
                )
                raise AccessForbidden(
                    "Retrieval not allowed",
                    reason=RETRIEVAL_NOT_ALLOWED,
                    access_type=record.access_type,
                )

            try:
                iv, ciphertext = self.storage_service.get(record.blob_location)
            except BlobNotFoundError as e:
                logger.error(f"Blob missing for {file_id}: {str(e)}")
                raise ResourceNotFound("Encrypted file or IV not found")

            try:
                content = self.cipher.decrypt(ciphertext, iv, file_id)
            except DecryptionError as e:
                logger.error(f"Decryption failed for {file_id}: {str(e)}")
                raise StorageFailure("Stored file could not be decrypted")

            logger.info(
                f"[Access Granted] {requester or 'anonymous'} accessing {file_id} - Reason: {decision.reason.value}"
            )
            success = True
            return RetrievedFile(content=content, record=record, decision=decision)
        finally:
            self.audit.record(
                file_id=file_id,
                accessed_by=requester,
                kind=kind,
                content_hash=content_hash,
                success=success,
                ip_address=ip_address,
                user_agent=user_agent,
            )

    def verify(
        self,
        file_id: str,
        provided_hash: str,
        requester: Optional[str] = None,
        ip_address: str = "",
        user_agent: str = "",
    ) -> VerificationResult:
        """Compare a caller supplied hash with the stored one. Blob storage is not read."""
        content_hash = ""
        is_valid = False
        try:
            record = self.ledger.get(file_id)
            content_hash = record.content_hash
            is_valid = hmac.compare_digest(
                record.content_hash.encode("utf-8"), provided_hash.encode("utf-8")
            )
            return VerificationResult(
                file_id=file_id,
                is_valid=is_valid,
                stored_hash=record.content_hash,
                provided_hash=provided_hash,
                record=record,
            )
        finally:
            self.audit.record(
                file_id=file_id,
                accessed_by=requester,
                kind=AccessKind.VERIFY,
                content_hash=content_hash,
                success=is_valid,
                ip_address=ip_address,
                user_agent=user_agent,
            )
