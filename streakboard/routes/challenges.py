"""Challenge endpoints: lifecycle, creator edits, daily verification, progress, leaderboard."""
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from streakboard.dependencies import get_challenge_service, get_verification_service
from streakboard.schemas.challenge import (
    ChallengeCreate, ChallengeResponse, ChallengeUpdate, JoinResponse, MembershipRequest,
    SweepResponse,
)
from streakboard.schemas.progress import (
    LeaderboardEntryResponse, ProgressResponse, VerifyRequest, VerifyResponse,
)
from streakboard.services.challenge_service import (
    CapacityExceeded, ChallengeError, ChallengeNotFound, ChallengeService,
    EntitlementExceeded, NotChallengeCreator, UserNotFound,
)
from streakboard.services.transactions import ConcurrentModification, StorageError
from streakboard.services.verification import VerificationStatus
from streakboard.services.verification_service import VerificationService

router = APIRouter()

# Non-2xx verification outcomes; everything else is 200
VERIFY_STATUS_CODES = {
    VerificationStatus.INVALID_EVIDENCE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    VerificationStatus.PROVIDER_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, (ChallengeNotFound, UserNotFound)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, CapacityExceeded):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, (EntitlementExceeded, NotChallengeCreator)):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, ConcurrentModification):
        return HTTPException(status_code=409, detail='Concurrent update, try again')
    if isinstance(e, StorageError):
        return HTTPException(status_code=500, detail='Storage failure')
    # InvalidChallenge and any other rejection
    return HTTPException(status_code=400, detail=str(e))


@router.post('', response_model=ChallengeResponse, status_code=status.HTTP_201_CREATED)
async def create_challenge(
    data: ChallengeCreate,
    svc: ChallengeService = Depends(get_challenge_service),
):
    """Create a challenge. Fitness metric goals can be inferred from the title."""
    try:
        return await svc.create_challenge(**data.model_dump())
    except (ChallengeError, StorageError, ConcurrentModification) as e:
        raise _http_error(e)


@router.get('', response_model=list[ChallengeResponse])
async def list_challenges(
    official: bool | None = Query(None, description='Only official (true) or community (false)'),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    svc: ChallengeService = Depends(get_challenge_service),
):
    try:
        return await svc.list_challenges(official=official, limit=limit, offset=offset)
    except StorageError as e:
        raise _http_error(e)


@router.post('/sweep', response_model=SweepResponse)
async def sweep_expired(svc: ChallengeService = Depends(get_challenge_service)):
    """Run the expiry sweep now instead of waiting for the worker."""
    try:
        summary = await svc.sweep_expired()
    except StorageError as e:
        raise _http_error(e)
    return summary.as_dict()


@router.get('/{challenge_id}', response_model=ChallengeResponse)
async def get_challenge(
    challenge_id: int,
    svc: ChallengeService = Depends(get_challenge_service),
):
    """Get a single challenge by ID."""
    try:
        challenge = await svc.get_challenge(challenge_id)
    except StorageError as e:
        raise _http_error(e)
    if not challenge:
        raise HTTPException(status_code=404, detail='Challenge not found')
    return challenge


@router.patch('/{challenge_id}', response_model=ChallengeResponse)
async def update_challenge(
    challenge_id: int,
    data: ChallengeUpdate,
    svc: ChallengeService = Depends(get_challenge_service),
):
    """Rename or re-describe a challenge. Only its creator may."""
    try:
        return await svc.update_challenge(
            challenge_id, data.user_id, title=data.title, description=data.description,
        )
    except (ChallengeError, StorageError, ConcurrentModification) as e:
        raise _http_error(e)


@router.delete('/{challenge_id}', status_code=status.HTTP_204_NO_CONTENT)
async def delete_challenge(
    challenge_id: int,
    user_id: int = Query(..., description='Must be the creator'),
    svc: ChallengeService = Depends(get_challenge_service),
):
    """Delete a challenge with all progress recorded for it."""
    try:
        await svc.delete_challenge(challenge_id, user_id)
    except (ChallengeError, StorageError, ConcurrentModification) as e:
        raise _http_error(e)


@router.post('/{challenge_id}/join', response_model=JoinResponse)
async def join_challenge(
    challenge_id: int,
    data: MembershipRequest,
    svc: ChallengeService = Depends(get_challenge_service),
):
    """Join a challenge. Joining twice is a no-op."""
    try:
        result = await svc.join(challenge_id, data.user_id)
    except (ChallengeError, StorageError, ConcurrentModification) as e:
        raise _http_error(e)
    return JoinResponse(
        challenge_id=challenge_id,
        user_id=data.user_id,
        joined=result.joined,
        already_member=result.already_member,
        participant_count=result.participant_count,
    )


@router.post('/{challenge_id}/leave')
async def leave_challenge(
    challenge_id: int,
    data: MembershipRequest,
    svc: ChallengeService = Depends(get_challenge_service),
):
    try:
        left = await svc.leave(challenge_id, data.user_id)
    except (ChallengeError, StorageError, ConcurrentModification) as e:
        raise _http_error(e)
    return {'left': left}


@router.get('/{challenge_id}/participants/{user_id}')
async def check_participation(
    challenge_id: int,
    user_id: int,
    svc: ChallengeService = Depends(get_challenge_service),
):
    try:
        participating = await svc.is_participating(challenge_id, user_id)
    except StorageError as e:
        raise _http_error(e)
    return {'participating': participating}


@router.post('/{challenge_id}/verify', response_model=VerifyResponse)
async def verify_today(
    challenge_id: int,
    data: VerifyRequest,
    response: Response,
    svc: VerificationService = Depends(get_verification_service),
):
    """Verify today's completion.

    200 for verified / already verified / goal not met, 422 for unusable
    evidence, 503 when the metric provider could not answer.
    """
    try:
        result = await svc.verify_today(
            challenge_id, data.user_id, data.evidence, timeout=data.timeout,
        )
    except (ChallengeError, StorageError, ConcurrentModification) as e:
        raise _http_error(e)

    response.status_code = VERIFY_STATUS_CODES.get(result.status, status.HTTP_200_OK)
    return VerifyResponse(
        status=result.status,
        day=result.day,
        reason=result.reason,
        retryable=result.retryable,
        entry=LeaderboardEntryResponse.model_validate(result.entry) if result.entry else None,
    )


@router.get('/{challenge_id}/progress/{user_id}', response_model=ProgressResponse)
async def get_progress(
    challenge_id: int,
    user_id: int,
    svc: VerificationService = Depends(get_verification_service),
):
    try:
        progress = await svc.get_progress(challenge_id, user_id)
    except (ChallengeError, StorageError) as e:
        raise _http_error(e)
    return ProgressResponse(
        challenge_id=progress.challenge_id,
        user_id=progress.user_id,
        days_completed=progress.days_completed,
        duration_days=progress.duration_days,
        current_streak=progress.current_streak,
        longest_streak=progress.longest_streak,
        score=progress.score,
        completed_today=progress.completed_today,
        completion_fraction=progress.completion_fraction,
        is_completed=progress.is_completed,
        days=progress.days,
    )


@router.get('/{challenge_id}/leaderboard', response_model=list[LeaderboardEntryResponse])
async def get_leaderboard(
    challenge_id: int,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    svc: VerificationService = Depends(get_verification_service),
):
    """Ranked by score, then longest streak."""
    try:
        return await svc.get_leaderboard(challenge_id, limit=limit, offset=offset)
    except (ChallengeError, StorageError) as e:
        raise _http_error(e)
