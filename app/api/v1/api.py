from fastapi import APIRouter
from app.api.v1.endpoints import (
    files,
    authorities,
    roles,
    user_roles,
    access_logs,
)

api_router = APIRouter()

api_router.include_router(files.router, prefix="/files", tags=["files"])
api_router.include_router(authorities.router, prefix="/authority", tags=["authority"])
api_router.include_router(roles.router, prefix="/roles", tags=["roles"])
api_router.include_router(user_roles.router, prefix="/user-roles", tags=["user-roles"])
api_router.include_router(access_logs.router, prefix="/access-log", tags=["access-log"])
