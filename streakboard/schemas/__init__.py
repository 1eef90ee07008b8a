from streakboard.schemas.user import UserCreate, UserUpdate, UserResponse, CompletionResponse
from streakboard.schemas.challenge import (
    ChallengeCreate,
    ChallengeResponse,
    ChallengeUpdate,
    MembershipRequest,
    JoinResponse,
    SweepResponse,
)
from streakboard.schemas.activity import ActivityResponse
from streakboard.schemas.progress import (
    VerifyRequest,
    VerifyResponse,
    LeaderboardEntryResponse,
    ProgressResponse,
)

__all__ = [
    'UserCreate',
    'UserUpdate',
    'UserResponse',
    'CompletionResponse',
    'ChallengeCreate',
    'ChallengeResponse',
    'ChallengeUpdate',
    'MembershipRequest',
    'JoinResponse',
    'SweepResponse',
    'VerifyRequest',
    'VerifyResponse',
    'LeaderboardEntryResponse',
    'ProgressResponse',
    'ActivityResponse',
]
