from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.identity import require_identity
from app.schemas.access_log import AccessLogListResponse, AccessLogResponse
from app.services.access_log_service import AccessLogService

router = APIRouter()


@router.get("/file/{file_id}", response_model=AccessLogListResponse, status_code=status.HTTP_200_OK)
def get_file_access_logs(file_id: str, db: Session = Depends(get_db)):
    """Every recorded attempt on file_id, newest first"""
    entries = AccessLogService(db).list_for_file(file_id)
    return AccessLogListResponse(
        status="success",
        message="Access logs fetched successfully",
        data=[AccessLogResponse.model_validate(entry) for entry in entries],
        total=len(entries),
    )


@router.get("/user/{address}", response_model=AccessLogListResponse, status_code=status.HTTP_200_OK)
def get_user_access_logs(address: str, db: Session = Depends(get_db)):
    """Every recorded attempt by address, newest first"""
    identity = require_identity(address, "address")
    entries = AccessLogService(db).list_for_identity(identity)
    return AccessLogListResponse(
        status="success",
        message="Access logs fetched successfully",
        data=[AccessLogResponse.model_validate(entry) for entry in entries],
        total=len(entries),
    )
