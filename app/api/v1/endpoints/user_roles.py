from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.role import UserRoleAssign, UserRoleRevoke, UserRoleResponse, UserRoleListResponse
from app.services.role_service import RoleDirectoryService

router = APIRouter()


@router.post("/assign", response_model=dict, status_code=status.HTTP_200_OK)
def assign_role(assign_data: UserRoleAssign, db: Session = Depends(get_db)):
    """Assign an active role to a user; the assigner must be an active authority"""
    assignment = RoleDirectoryService(db).assign_role(
        assign_data.wallet_address,
        assign_data.role_name,
        assign_data.assigned_by,
    )
    return {
        "status": "success",
        "message": "Role assigned successfully",
        "data": UserRoleResponse.model_validate(assignment),
    }


@router.post("/revoke", response_model=dict, status_code=status.HTTP_200_OK)
def revoke_role(revoke_data: UserRoleRevoke, db: Session = Depends(get_db)):
    """Soft-revoke an active assignment; the revoker must be an active authority"""
    assignment = RoleDirectoryService(db).revoke_role(
        revoke_data.wallet_address,
        revoke_data.role_name,
        revoke_data.revoked_by,
    )
    return {
        "status": "success",
        "message": "Role revoked successfully",
        "data": UserRoleResponse.model_validate(assignment),
    }


@router.get("/{address}", response_model=UserRoleListResponse, status_code=status.HTTP_200_OK)
def list_user_roles(address: str, db: Session = Depends(get_db)):
    """Active assignments of active roles for address"""
    assignments = RoleDirectoryService(db).list_assignments(address)
    return UserRoleListResponse(
        status="success",
        message="User roles fetched successfully",
        data=[UserRoleResponse.model_validate(assignment) for assignment in assignments],
        role_names=[assignment.role_name for assignment in assignments],
    )
