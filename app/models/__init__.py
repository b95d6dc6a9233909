"""
Models package - imports all models so they are registered on Base.metadata
before tables are created or mappers configured.
"""

from app.models.file_record import FileRecord, FileAllowedRole
from app.models.authority import Authority
from app.models.role import Role
from app.models.user_role import UserRoleAssignment
from app.models.access_log import AccessLogEntry

__all__ = [
    "FileRecord",
    "FileAllowedRole",
    "Authority",
    "Role",
    "UserRoleAssignment",
    "AccessLogEntry",
]
