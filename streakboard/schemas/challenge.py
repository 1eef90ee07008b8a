from datetime import datetime
from pydantic import BaseModel, Field

from streakboard.models.challenge import (
    ChallengeType, Difficulty, Metric, PresenceKind, VerificationKind,
)


class ChallengeCreate(BaseModel):
    """Schema for creating a challenge."""
    title: str = Field(..., min_length=1, max_length=120)
    description: str = Field('', max_length=2000)
    challenge_type: ChallengeType
    difficulty: Difficulty = Difficulty.MEDIUM
    verification_kind: VerificationKind
    max_participants: int = Field(..., ge=1)
    duration_days: int = Field(..., ge=1, le=365)
    creator_id: int | None = None
    is_official: bool = False

    # Verification parameters; which ones are required depends on the kind
    metric: Metric | None = None
    goal: float | None = Field(None, gt=0)
    target_latitude: float | None = Field(None, ge=-90, le=90)
    target_longitude: float | None = Field(None, ge=-180, le=180)
    radius_meters: float | None = Field(None, gt=0)
    presence_kind: PresenceKind | None = None


class ChallengeResponse(BaseModel):
    id: int
    title: str
    description: str
    creator_id: int | None
    challenge_type: str
    difficulty: str
    verification_kind: str
    metric: str | None
    goal: float | None
    target_latitude: float | None
    target_longitude: float | None
    radius_meters: float | None
    presence_kind: str | None
    max_participants: int
    participant_count: int
    duration_days: int
    start_date: datetime
    ends_at: datetime
    is_official: bool
    created_at: datetime

    class Config:
        from_attributes = True


class MembershipRequest(BaseModel):
    user_id: int


class JoinResponse(BaseModel):
    challenge_id: int
    user_id: int
    joined: bool
    already_member: bool
    participant_count: int


class SweepResponse(BaseModel):
    reset: int
    deleted: int
    credited: int
    skipped: int = 0


class ChallengeUpdate(BaseModel):
    """Creator edits; omitted fields stay as they are."""
    user_id: int
    title: str | None = Field(None, min_length=1, max_length=120)
    description: str | None = Field(None, max_length=2000)
