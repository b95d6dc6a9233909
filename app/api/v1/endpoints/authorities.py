from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.role import AuthorityRegister, AuthorityResponse
from app.services.role_service import RoleDirectoryService

router = APIRouter()


@router.post("/register", response_model=dict, status_code=status.HTTP_200_OK)
def register_authority(authority_data: AuthorityRegister, db: Session = Depends(get_db)):
    """
    Register the caller as an authority able to create and assign roles.

    Open to any identity unless an allowlist is configured.
    """
    service = RoleDirectoryService(db)
    authority = service.register_authority(
        authority_data.wallet_address,
        authority_data.name,
        authority_data.authority_type,
    )
    return {
        "status": "success",
        "message": "Authority registered successfully",
        "data": AuthorityResponse.model_validate(authority),
    }


@router.get("/{address}", response_model=dict, status_code=status.HTTP_200_OK)
def get_authority(address: str, db: Session = Depends(get_db)):
    authority = RoleDirectoryService(db).get_authority(address)
    return {
        "status": "success",
        "data": AuthorityResponse.model_validate(authority),
    }
