from datetime import date, datetime
from typing import Union
from pydantic import BaseModel, Field

from streakboard.services.verification import VerificationStatus


class VerifyRequest(BaseModel):
    """Evidence for today's completion.

    Shape depends on the challenge: a number, a "lat,lon" string or [lat, lon]
    pair, a checkbox flag, or free text / an attachment reference (bare
    numbers count as text there). Metric challenges ignore it.
    """
    user_id: int
    evidence: Union[bool, float, str, list[float], None] = None
    timeout: float | None = Field(None, gt=0, le=60)


class LeaderboardEntryResponse(BaseModel):
    user_id: int
    days_completed: int
    current_streak: int
    longest_streak: int
    score: int
    last_updated: datetime

    class Config:
        from_attributes = True


class VerifyResponse(BaseModel):
    status: VerificationStatus
    day: date
    reason: str = ''
    retryable: bool = False
    entry: LeaderboardEntryResponse | None = None


class ProgressResponse(BaseModel):
    challenge_id: int
    user_id: int
    days_completed: int
    duration_days: int
    current_streak: int
    longest_streak: int
    score: int
    completed_today: bool
    completion_fraction: float
    is_completed: bool
    days: list[date] = []
