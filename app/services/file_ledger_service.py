"""
File Ledger Service - canonical records of stored files

Upserts are last-write-wins keyed by file_id. Listing queries pre-filter in
SQL and then keep only what the access policy grants, so a listing never
shows a file that retrieval would refuse.
"""
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from app.core.access_policy import AccessType, evaluate, is_publicly_accessible
from app.core.exceptions import ResourceNotFound
from app.core.logging import get_logger
from app.models.file_record import FileRecord, FileAllowedRole

logger = get_logger("services.file_ledger")


def _public_clause():
    return or_(
        FileRecord.access_type == AccessType.PUBLIC.value,
        and_(
            FileRecord.is_public.is_(True),
            FileRecord.access_type != AccessType.ROLE_BASED.value,
        ),
    )


class FileLedgerService:
    def __init__(self, db: Session):
        self.db = db

    def _newest_first(self, query):
        return query.order_by(FileRecord.uploaded_at.desc(), FileRecord.file_id.desc())

    def upsert(self, file_id: str, allowed_roles: Iterable[str], **fields) -> FileRecord:
        """
        Create or entirely replace the record for file_id.

        Columns not passed fall back to their defaults, so nothing from a
        previous ingestion survives unless given again.
        """
        record = self.db.get(FileRecord, file_id)
        if record is None:
            record = FileRecord(file_id=file_id)
            self.db.add(record)
        else:
            logger.info(f"Replacing ledger record {file_id}")

        values = {
            "receiver_address": None,
            "access_type": AccessType.PRIVATE.value,
            "is_public": False,
            "attention": "Always",
            "confidence": "Usually",
            "image_hash": None,
            "blockchain_tx_hash": None,
            "file_size": 0,
            "mime_type": "application/octet-stream",
            "label": "",
            "document_type": "",
            "description": "",
            "uploaded_at": datetime.now(timezone.utc),
        }
        values.update(fields)
        for column, value in values.items():
            setattr(record, column, value)

        # Flush removals before inserts so re-adding a role does not hit the unique constraint
        record.allowed_role_entries.clear()
        self.db.flush()
        record.allowed_role_entries.extend(
            FileAllowedRole(role_name=role_name) for role_name in dict.fromkeys(allowed_roles)
        )

        self.db.commit()
        self.db.refresh(record)
        return record

    def find(self, file_id: str) -> Optional[FileRecord]:
        return self.db.get(FileRecord, file_id)

    def get(self, file_id: str) -> FileRecord:
        record = self.find(file_id)
        if not record:
            raise ResourceNotFound(f"File with ID '{file_id}' not found")
        return record

    def delete(self, file_id: str) -> FileRecord:
        record = self.get(file_id)
        self.db.delete(record)
        self.db.commit()
        logger.info(f"Ledger record {file_id} deleted")
        return record

    def record_anchor(self, file_id: str, tx_hash: str) -> Optional[FileRecord]:
        """Store the anchoring transaction hash; the record may have been deleted meanwhile."""
        record = self.find(file_id)
        if not record:
            logger.warning(f"Anchored file {file_id} no longer in ledger")
            return None
        record.blockchain_tx_hash = tx_hash
        self.db.commit()
        return record

    def query_by_owner(self, identity: str) -> List[FileRecord]:
        query = self.db.query(FileRecord).filter(FileRecord.owner_address == identity)
        return self._newest_first(query).all()

    def query_by_owner_or_receiver(self, identity: str) -> List[FileRecord]:
        query = self.db.query(FileRecord).filter(
            or_(
                FileRecord.owner_address == identity,
                FileRecord.receiver_address == identity,
            )
        )
        return self._newest_first(query).all()

    def query_public(self, owner: Optional[str] = None) -> List[FileRecord]:
        query = self.db.query(FileRecord).filter(_public_clause())
        if owner:
            query = query.filter(FileRecord.owner_address == owner)
        return [record for record in self._newest_first(query).all() if is_publicly_accessible(record)]

    def query_accessible_by(self, identity: Optional[str], roles: Set[str]) -> List[FileRecord]:
        """Public, owned, received and role-matching records the policy grants to identity."""
        clauses = [_public_clause()]
        if identity:
            clauses.append(FileRecord.owner_address == identity)
            clauses.append(FileRecord.receiver_address == identity)
        if identity and roles:
            clauses.append(
                and_(
                    FileRecord.access_type == AccessType.ROLE_BASED.value,
                    FileRecord.allowed_role_entries.any(FileAllowedRole.role_name.in_(sorted(roles))),
                )
            )

        candidates = self._newest_first(self.db.query(FileRecord).filter(or_(*clauses))).all()
        return [record for record in candidates if evaluate(identity, record, roles).granted]
