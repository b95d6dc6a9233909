"""
Role Directory Service - authorities, roles and user role assignments

Deactivation and revocation are soft flags. Role membership only counts
active assignments to active roles.
"""
from datetime import datetime, timezone
from typing import List, Optional, Set

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ResourceConflict, ResourceNotFound, Unauthorized
from app.core.identity import require_identity
from app.core.logging import get_logger
from app.models.authority import Authority
from app.models.role import Role
from app.models.user_role import UserRoleAssignment

logger = get_logger("services.role_directory")


class RoleDirectoryService:
    def __init__(self, db: Session):
        self.db = db

    # ==================== Authorities ====================

    def _find_authority(self, identity: str) -> Optional[Authority]:
        return (
            self.db.query(Authority)
            .filter(Authority.wallet_address == identity)
            .first()
        )

    def _require_active_authority(self, identity: Optional[str], action: str, needs_role_creation: bool = False) -> Authority:
        authority = self._find_authority(identity) if identity else None
        if not authority or not authority.is_active:
            raise Unauthorized(f"Only an active authority can {action}")
        if needs_role_creation and not authority.can_create_roles:
            raise Unauthorized(f"Authority {identity} is not allowed to {action}")
        return authority

    def register_authority(self, identity: str, name: str, authority_type: str) -> Authority:
        """
        Register (or re-register) identity as an authority.

        Registration is open unless AUTHORITY_ALLOWLIST is configured.
        """
        identity = require_identity(identity, "wallet_address")
        if settings.AUTHORITY_ALLOWLIST and identity not in settings.AUTHORITY_ALLOWLIST:
            raise Unauthorized(f"{identity} is not permitted to register as an authority")

        authority = self._find_authority(identity)
        if authority is None:
            authority = Authority(wallet_address=identity)
            self.db.add(authority)
        authority.name = name
        authority.authority_type = authority_type
        authority.is_active = True
        authority.can_create_roles = True

        self.db.commit()
        self.db.refresh(authority)
        logger.info(f"Authority registered: {identity} ({authority_type})")
        return authority

    def get_authority(self, identity: str) -> Authority:
        identity = require_identity(identity, "wallet_address")
        authority = self._find_authority(identity)
        if not authority:
            raise ResourceNotFound(f"Authority '{identity}' not found")
        return authority

    # ==================== Roles ====================

    def _find_role(self, role_name: str) -> Optional[Role]:
        return self.db.query(Role).filter(Role.role_name == role_name).first()

    def create_role(self, role_name: str, description: str, creator: str) -> Role:
        creator = require_identity(creator, "created_by")
        self._require_active_authority(creator, "create roles", needs_role_creation=True)

        role = self._find_role(role_name)
        if role is not None and role.is_active:
            raise ResourceConflict(f"Role '{role_name}' already exists")
        if role is None:
            role = Role(role_name=role_name)
            self.db.add(role)
        role.description = description or ""
        role.created_by = creator
        role.is_active = True

        self.db.commit()
        self.db.refresh(role)
        logger.info(f"Role '{role_name}' created by {creator}")
        return role

    def list_roles(self) -> List[Role]:
        return (
            self.db.query(Role)
            .filter(Role.is_active.is_(True))
            .order_by(Role.role_name.asc())
            .all()
        )

    def deactivate_role(self, role_name: str, requester: str) -> Role:
        requester = require_identity(requester, "requested_by")
        self._require_active_authority(requester, "deactivate roles", needs_role_creation=True)

        role = self._find_role(role_name)
        if not role or not role.is_active:
            raise ResourceNotFound(f"Active role '{role_name}' not found")
        role.is_active = False
        self.db.commit()
        self.db.refresh(role)
        logger.info(f"Role '{role_name}' deactivated by {requester}")
        return role

    # ==================== Assignments ====================

    def _find_assignment(self, identity: str, role_name: str) -> Optional[UserRoleAssignment]:
        return (
            self.db.query(UserRoleAssignment)
            .filter(
                UserRoleAssignment.wallet_address == identity,
                UserRoleAssignment.role_name == role_name,
            )
            .first()
        )

    def assign_role(self, user: str, role_name: str, assigner: str) -> UserRoleAssignment:
        user = require_identity(user, "wallet_address")
        assigner = require_identity(assigner, "assigned_by")
        self._require_active_authority(assigner, "assign roles")

        role = self._find_role(role_name)
        if not role or not role.is_active:
            raise ResourceNotFound(f"Active role '{role_name}' not found")

        assignment = self._find_assignment(user, role_name)
        if assignment is None:
            assignment = UserRoleAssignment(wallet_address=user, role_name=role_name)
            self.db.add(assignment)
        assignment.assigned_by = assigner
        assignment.assigned_at = datetime.now(timezone.utc)
        assignment.is_active = True

        self.db.commit()
        self.db.refresh(assignment)
        logger.info(f"Role '{role_name}' assigned to {user} by {assigner}")
        return assignment

    def revoke_role(self, user: str, role_name: str, revoker: str) -> UserRoleAssignment:
        user = require_identity(user, "wallet_address")
        revoker = require_identity(revoker, "revoked_by")
        self._require_active_authority(revoker, "revoke roles")

        assignment = self._find_assignment(user, role_name)
        if not assignment or not assignment.is_active:
            raise ResourceNotFound(f"No active assignment of role '{role_name}' to {user}")

        assignment.is_active = False
        self.db.commit()
        self.db.refresh(assignment)
        logger.info(f"Role '{role_name}' revoked from {user} by {revoker}")
        return assignment

    def _active_assignment_query(self, identity: str):
        return (
            self.db.query(UserRoleAssignment)
            .join(Role, Role.role_name == UserRoleAssignment.role_name)
            .filter(
                UserRoleAssignment.wallet_address == identity,
                UserRoleAssignment.is_active.is_(True),
                Role.is_active.is_(True),
            )
        )

    def list_assignments(self, identity: str) -> List[UserRoleAssignment]:
        identity = require_identity(identity, "wallet_address")
        return (
            self._active_assignment_query(identity)
            .order_by(UserRoleAssignment.assigned_at.desc())
            .all()
        )

    def roles_of(self, identity: Optional[str]) -> Set[str]:
        """Names of active roles actively assigned to identity; empty for anonymous."""
        if not identity:
            return set()
        return {assignment.role_name for assignment in self._active_assignment_query(identity).all()}
