from datetime import datetime
from pydantic import BaseModel


class ActivityResponse(BaseModel):
    id: int
    user_id: int
    challenge_id: int
    kind: str
    description: str
    created_at: datetime

    class Config:
        from_attributes = True
