"""
Ingestion Service - hash, encrypt, persist blob, write ledger entry

Steps run in order and any failure aborts the rest. Only the owner of an
existing file may re-ingest it. Ingestion is durable once the ledger upsert
commits; on-chain anchoring is scheduled by the caller
afterwards and cannot fail the upload.
"""
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.crypto import FileCipher, compute_hash
from app.core.exceptions import AccessForbidden, StorageFailure, ValidationFailed
from app.core.logging import get_logger
from app.models.file_record import FileRecord
from app.schemas.file import FileStoreRequest
from app.services.file_ledger_service import FileLedgerService
from app.services.storage import StorageServiceInterface
from app.utils.path_builder import PathBuilder

logger = get_logger("services.ingestion")


class IngestionService:
    """Stores uploaded files encrypted at rest"""

    def __init__(self, db: Session, cipher: FileCipher, storage_service: StorageServiceInterface):
        self.db = db
        self.cipher = cipher
        self.storage_service = storage_service
        self.ledger = FileLedgerService(db)
        self.max_file_size = settings.MAX_FILE_SIZE_MB * 1024 * 1024

    def _validate(self, file_bytes: bytes, request: FileStoreRequest) -> str:
        if not request.owner_address:
            raise ValidationFailed("owner_address or sender_address is required", field="owner_address")
        if len(file_bytes) == 0:
            raise ValidationFailed("File is empty", field="file")
        if len(file_bytes) > self.max_file_size:
            raise ValidationFailed(
                f"File size exceeds maximum allowed size of {settings.MAX_FILE_SIZE_MB}MB",
                status_code=413,
                field="file",
            )
        return request.owner_address

    def store_file(
        self,
        file_bytes: bytes,
        original_filename: Optional[str],
        mime_type: Optional[str],
        request: FileStoreRequest,
    ) -> FileRecord:
        """
        Ingest one file.

        Args:
            file_bytes: Plaintext content
            original_filename: Display filename from the upload
            mime_type: Content type from the upload
            request: Owner, receiver, access policy and descriptive fields

        Returns:
            The committed FileRecord

        Raises:
            AccessForbidden: Re-ingestion of an existing file by someone other than its owner
        """
        owner = self._validate(file_bytes, request)

        existing = self.ledger.find(request.file_id) if request.file_id else None
        if existing is not None and existing.owner_address != owner:
            logger.info(f"[Access Denied] {owner} tried to re-ingest {existing.file_id} owned by {existing.owner_address}")
            raise AccessForbidden(
                "Only the owner can replace this file",
                reason="not-owner",
                access_type=existing.access_type,
            )
        previous_location = existing.blob_location if existing is not None else None

        # Hash plaintext before encryption
        content_hash = compute_hash(file_bytes)
        file_id = request.file_id or PathBuilder.generate_file_id()

        try:
            iv, ciphertext = self.cipher.encrypt(file_bytes, file_id)
        except Exception as e:
            logger.error(f"Encryption failed for {file_id}: {str(e)}")
            raise StorageFailure(f"Failed to encrypt file: {str(e)}")

        # Replacements get a fresh blob key; the previous blob is removed only after the ledger commit
        try:
            revision = PathBuilder.new_revision() if existing is not None else None
            blob_key = PathBuilder.build_blob_key(file_id, revision)
            blob_location = self.storage_service.put(blob_key, iv, ciphertext)
        except Exception as e:
            logger.error(f"Storage upload failed for {file_id}: {str(e)}")
            raise StorageFailure(f"Failed to store file: {str(e)}")

        try:
            record = self.ledger.upsert(
                file_id,
                allowed_roles=request.allowed_roles,
                owner_address=owner,
                receiver_address=request.receiver_address,
                access_type=request.access_type.value,
                is_public=request.is_public,
                attention=request.attention.value,
                confidence=request.confidence.value,
                content_hash=content_hash,
                image_hash=request.image_hash,
                blob_location=blob_location,
                original_filename=original_filename or file_id,
                file_size=len(file_bytes),
                mime_type=mime_type or "application/octet-stream",
                label=request.label,
                document_type=request.document_type,
                description=request.description,
            )
        except Exception as e:
            self.db.rollback()
            self._discard_blob(blob_location)
            logger.error(f"Ledger upsert failed for {file_id}: {str(e)}")
            raise StorageFailure(f"Failed to save file metadata: {str(e)}")

        if previous_location and previous_location != blob_location:
            self._discard_blob(previous_location)

        logger.info(
            f"File {file_id} stored for {owner} (access={record.access_type}, size={record.file_size})"
        )
        return record

    def _discard_blob(self, blob_location: str) -> None:
        try:
            self.storage_service.delete(blob_location)
        except (OSError, ValueError) as e:
            logger.warning(f"Orphaned blob {blob_location} left behind: {str(e)}")
