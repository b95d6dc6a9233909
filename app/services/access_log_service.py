from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.identity import ANONYMOUS
from app.core.logging import get_logger
from app.models.access_log import AccessLogEntry

logger = get_logger("services.access_log")


class AccessKind(str, Enum):
    VIEW = "view"
    DOWNLOAD = "download"
    VERIFY = "verify"


class AccessLogService:
    """Append-only audit trail of retrieval and verification attempts"""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        file_id: str,
        accessed_by: Optional[str],
        kind: AccessKind,
        content_hash: str,
        success: bool,
        ip_address: str = "",
        user_agent: str = "",
    ) -> Optional[AccessLogEntry]:
        """Write one entry. Failures are logged and never reach the caller."""
        try:
            entry = AccessLogEntry(
                file_id=file_id,
                accessed_by=accessed_by or ANONYMOUS,
                access_kind=kind.value,
                content_hash=content_hash or "",
                success=success,
                ip_address=ip_address or "",
                user_agent=user_agent or "",
                accessed_at=datetime.now(timezone.utc),
            )
            self.db.add(entry)
            self.db.commit()
            return entry
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to write access log for {file_id}: {str(e)}")
            return None

    def list_for_file(self, file_id: str) -> List[AccessLogEntry]:
        return (
            self.db.query(AccessLogEntry)
            .filter(AccessLogEntry.file_id == file_id)
            .order_by(AccessLogEntry.accessed_at.desc(), AccessLogEntry.id.desc())
            .all()
        )

    def list_for_identity(self, identity: str) -> List[AccessLogEntry]:
        return (
            self.db.query(AccessLogEntry)
            .filter(AccessLogEntry.accessed_by == identity)
            .order_by(AccessLogEntry.accessed_at.desc(), AccessLogEntry.id.desc())
            .all()
        )
