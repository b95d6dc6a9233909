from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint
from sqlalchemy.dialects.postgresql import TIMESTAMP
from app.core.database import Base


class AccessLogEntry(Base):
    """
    Append-only record of one retrieval or verification attempt.
    Rows are never updated or deleted.
    """
    __tablename__ = "access_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_id = Column(String(255), nullable=False, index=True)
    accessed_by = Column(String(255), nullable=False, index=True)  # identity or "anonymous"
    access_kind = Column(String(20), nullable=False)
    content_hash = Column(String(64), nullable=False, default="")  # hash at time of access
    success = Column(Boolean, nullable=False, default=True)
    ip_address = Column(String(255), nullable=False, default="")
    user_agent = Column(String(1000), nullable=False, default="")

    accessed_at = Column(TIMESTAMP(timezone=True), nullable=False, index=True)

    __table_args__ = (
        CheckConstraint(
            "access_kind IN ('view', 'download', 'verify')",
            name="check_access_kind",
        ),
    )
