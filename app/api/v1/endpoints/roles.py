from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.role import RoleCreate, RoleDeactivate, RoleResponse
from app.services.role_service import RoleDirectoryService

router = APIRouter()


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_role(role_data: RoleCreate, db: Session = Depends(get_db)):
    """Create a role; the creator must be an active authority allowed to create roles"""
    role = RoleDirectoryService(db).create_role(
        role_data.role_name,
        role_data.description,
        role_data.created_by,
    )
    return {
        "status": "success",
        "message": "Role created successfully",
        "data": RoleResponse.model_validate(role),
    }


@router.get("", response_model=dict, status_code=status.HTTP_200_OK)
def list_roles(db: Session = Depends(get_db)):
    """Active roles, by name"""
    roles = RoleDirectoryService(db).list_roles()
    return {
        "status": "success",
        "message": "Roles fetched successfully",
        "data": [RoleResponse.model_validate(role) for role in roles],
        "total": len(roles),
    }


@router.patch("/{role_name}/deactivate", response_model=dict, status_code=status.HTTP_200_OK)
def deactivate_role(role_name: str, deactivate_data: RoleDeactivate, db: Session = Depends(get_db)):
    """Soft-deactivate a role; it stops matching in access checks"""
    role = RoleDirectoryService(db).deactivate_role(role_name, deactivate_data.requested_by)
    return {
        "status": "success",
        "message": "Role deactivated successfully",
        "data": RoleResponse.model_validate(role),
    }
