from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.db.database import get_db
from streakboard.dependencies import get_challenge_service
from streakboard.models.user import User
from streakboard.schemas.challenge import ChallengeResponse
from streakboard.schemas.user import CompletionResponse, UserCreate, UserUpdate, UserResponse
from streakboard.services.challenge_service import ChallengeService
from streakboard.services.clock import is_known_zone
from streakboard.services.transactions import StorageError

router = APIRouter()


def _check_timezone(tz_name: str):
    # Stored zones silently fall back to UTC; reject unknown names at the edge
    if not is_known_zone(tz_name):
        raise HTTPException(status_code=400, detail=f'Unknown timezone: {tz_name}')


@router.get('', response_model=list[UserResponse])
async def list_users(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List all users (for dev user selection)."""
    result = await db.execute(select(User).order_by(User.id).limit(limit))
    return result.scalars().all()


@router.post('', response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    existing = await db.execute(select(User).where(User.username == user_data.username))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail='Username already taken')
    _check_timezone(user_data.timezone)

    user = User(
        username=user_data.username,
        timezone=user_data.timezone,
        is_pro=user_data.is_pro,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return user


@router.get('/{user_id}', response_model=UserResponse)
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    """Get user by ID."""
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail='User not found')
    return user


@router.patch('/{user_id}', response_model=UserResponse)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Change timezone or entitlement tier."""
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail='User not found')

    if user_data.timezone is not None:
        _check_timezone(user_data.timezone)
        user.timezone = user_data.timezone
    if user_data.is_pro is not None:
        user.is_pro = user_data.is_pro

    await db.flush()
    await db.refresh(user)
    return user


@router.get('/{user_id}/challenges', response_model=list[ChallengeResponse])
async def get_user_challenges(
    user_id: int,
    role: str = Query('joined', pattern=r'^(joined|created|completed)$'),
    svc: ChallengeService = Depends(get_challenge_service),
):
    """Challenges the user joined, created, or has already finished."""
    try:
        return await svc.get_user_challenges(user_id, role)
    except StorageError:
        raise HTTPException(status_code=500, detail='Storage failure')


@router.get('/{user_id}/completions', response_model=list[CompletionResponse])
async def get_completions(
    user_id: int,
    svc: ChallengeService = Depends(get_challenge_service),
):
    """Credits kept for community challenges that have since closed."""
    try:
        return await svc.get_completions(user_id)
    except StorageError:
        raise HTTPException(status_code=500, detail='Storage failure')
