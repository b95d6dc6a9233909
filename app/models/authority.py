from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.sql import func
from app.core.database import Base


class Authority(Base):
    __tablename__ = "authorities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    authority_type = Column(String(100), nullable=False)  # e.g. Government, Department, Organization
    is_active = Column(Boolean, nullable=False, default=True)
    can_create_roles = Column(Boolean, nullable=False, default=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
