from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appraisal_id: Optional[int] = None
    event: str
    title: str
    message: str
    type: str
    is_read: bool
    created_at: Optional[datetime] = None
