from sqlalchemy import Column, Integer, String, Text, Boolean
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.sql import func
from app.core.database import Base


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_name = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=False, default="")
    created_by = Column(String(255), nullable=False)  # authority address
    is_active = Column(Boolean, nullable=False, default=True)  # soft deactivation only

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
