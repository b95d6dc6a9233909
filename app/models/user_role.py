from sqlalchemy import Column, Integer, String, Boolean, UniqueConstraint
from sqlalchemy.dialects.postgresql import TIMESTAMP
from app.core.database import Base


class UserRoleAssignment(Base):
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(255), nullable=False, index=True)
    role_name = Column(String(255), nullable=False, index=True)  # references roles.role_name by value
    assigned_by = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    assigned_at = Column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("wallet_address", "role_name", name="uq_user_role"),
    )
