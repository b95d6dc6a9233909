from sqlalchemy import Column, Integer, BigInteger, String, Text, Boolean, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import relationship
from app.core.database import Base


class FileRecord(Base):
    """
    Ledger entry for a stored file: ownership, access policy, integrity hash
    and blob locator. Upserted by ingestion, keyed by file_id.
    """
    __tablename__ = "file_ledger"

    file_id = Column(String(255), primary_key=True)

    # Identities (normalized lowercase, no FK: identities are external)
    owner_address = Column(String(255), nullable=False, index=True)
    receiver_address = Column(String(255), nullable=True, index=True)

    # Access control
    access_type = Column(String(20), nullable=False, default="private", index=True)
    is_public = Column(Boolean, nullable=False, default=False, index=True)
    attention = Column(String(20), nullable=False, default="Always")
    confidence = Column(String(20), nullable=False, default="Usually")

    # Integrity and anchoring
    content_hash = Column(String(64), nullable=False, index=True)  # SHA-256 of plaintext
    image_hash = Column(String(255), nullable=True)
    blockchain_tx_hash = Column(String(255), nullable=True)

    # File info
    blob_location = Column(String(1000), nullable=False)
    original_filename = Column(String(500), nullable=False)
    file_size = Column(BigInteger, nullable=False, default=0)
    mime_type = Column(String(255), nullable=False, default="application/octet-stream")
    label = Column(String(255), nullable=False, default="")
    document_type = Column(String(255), nullable=False, default="", index=True)
    description = Column(Text, nullable=False, default="")

    uploaded_at = Column(TIMESTAMP(timezone=True), nullable=False, index=True)

    allowed_role_entries = relationship(
        "FileAllowedRole",
        back_populates="file",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "access_type IN ('public', 'private', 'role-based')",
            name="check_file_access_type",
        ),
    )

    @property
    def allowed_roles(self):
        return sorted(entry.role_name for entry in self.allowed_role_entries)


class FileAllowedRole(Base):
    """Role name permitted to read a role-based file (by value, no FK to roles)"""
    __tablename__ = "file_allowed_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_id = Column(
        String(255),
        ForeignKey("file_ledger.file_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role_name = Column(String(255), nullable=False, index=True)

    file = relationship("FileRecord", back_populates="allowed_role_entries")

    __table_args__ = (
        UniqueConstraint("file_id", "role_name", name="uq_file_allowed_role"),
    )
