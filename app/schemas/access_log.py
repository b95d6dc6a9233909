from typing import List
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class AccessLogResponse(BaseModel):
    file_id: str
    accessed_by: str
    access_kind: str
    content_hash: str
    success: bool
    ip_address: str
    user_agent: str
    accessed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AccessLogListResponse(BaseModel):
    status: str
    message: str
    data: List[AccessLogResponse]
    total: int
