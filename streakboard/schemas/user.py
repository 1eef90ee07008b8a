from datetime import datetime
from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    """Schema for creating a user (no password - dev mode)."""
    username: str = Field(..., min_length=1, max_length=50, pattern=r'^[a-zA-Z0-9_]+$')
    timezone: str = Field('UTC', max_length=64)
    is_pro: bool = False


class UserUpdate(BaseModel):
    """Schema for updating a user."""
    timezone: str | None = Field(None, max_length=64)
    is_pro: bool | None = None


class UserResponse(BaseModel):
    id: int
    username: str
    timezone: str
    is_pro: bool
    active_challenge_count: int = 0
    completed_challenge_count: int = 0
    created_at: datetime

    class Config:
        from_attributes = True


class CompletionResponse(BaseModel):
    """Credit for a finished community challenge."""
    challenge_id: int
    title: str
    days_completed: int
    completed_at: datetime

    class Config:
        from_attributes = True
