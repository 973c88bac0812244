"""Match and matchmaking endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mathmaxxer.auth.dependencies import get_current_profile
from mathmaxxer.competition.match_service import (
    complete_match,
    create_match,
    get_match,
    join_match,
    record_match_answer,
)
from mathmaxxer.competition.matchmaking_service import find_match, join_queue, leave_queue, queue_status
from mathmaxxer.competition.schemas import (
    CompleteMatchRequest,
    CompleteMatchResponse,
    CreateMatchRequest,
    FindMatchRequest,
    JoinQueueRequest,
    LeaveQueueResponse,
    MatchResponse,
    QueueStatusResponse,
)
from mathmaxxer.database import get_session
from mathmaxxer.db.models import Profile
from mathmaxxer.errors import Unauthorized, ValidationError
from mathmaxxer.games.schemas import AnswerSubmitRequest, AnswerSubmitResponse
from mathmaxxer.redis_client import get_optional_redis

router = APIRouter(prefix="/api/v1", tags=["Competition"])


# ── Matches ──


@router.post("/matches", response_model=MatchResponse, status_code=201)
async def create_match_endpoint(
    body: CreateMatchRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> MatchResponse:
    match = await create_match(db, profile.id, body.difficulty, body.time_control)
    return MatchResponse.model_validate(match)


@router.get("/matches/{match_id}", response_model=MatchResponse)
async def get_match_endpoint(
    match_id: str,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> MatchResponse:
    return MatchResponse.model_validate(await get_match(db, profile.id, match_id))


@router.post("/matches/{match_id}/join", response_model=MatchResponse)
async def join_match_endpoint(
    match_id: str,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_optional_redis),
) -> MatchResponse:
    return MatchResponse.model_validate(await join_match(db, redis, profile.id, match_id))


@router.post("/matches/{match_id}/answers", response_model=AnswerSubmitResponse, status_code=201)
async def submit_match_answer(
    match_id: str,
    body: AnswerSubmitRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> AnswerSubmitResponse:
    is_correct = await record_match_answer(db, profile.id, match_id, body.question_id, body.user_answer)
    return AnswerSubmitResponse(is_correct=is_correct)


@router.post("/complete-match", response_model=CompleteMatchResponse)
async def complete_match_endpoint(
    body: CompleteMatchRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_optional_redis),
) -> CompleteMatchResponse:
    """Finalize a match from the verified answer log."""
    if not body.match_id:
        raise ValidationError("Missing required field: matchId")
    result = await complete_match(db, redis, profile.id, body.match_id)
    return CompleteMatchResponse(**result)


# ── Matchmaking ──


@router.get("/matchmaking/queue", response_model=QueueStatusResponse)
async def get_queue_status(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> QueueStatusResponse:
    return QueueStatusResponse(**await queue_status(db, profile.id))


@router.post("/matchmaking/queue", response_model=QueueStatusResponse, status_code=201)
async def join_queue_endpoint(
    body: JoinQueueRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_optional_redis),
) -> QueueStatusResponse:
    """Join the queue; pairs immediately when a compatible opponent is waiting."""
    return QueueStatusResponse(**await join_queue(db, redis, profile.id, body.difficulty, body.time_control))


@router.delete("/matchmaking/queue", response_model=LeaveQueueResponse)
async def leave_queue_endpoint(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_optional_redis),
) -> LeaveQueueResponse:
    user_id = profile.id
    removed = await leave_queue(db, redis, user_id)
    status = await queue_status(db, user_id)
    return LeaveQueueResponse(removed=removed, in_queue=status["in_queue"], queue_count=status["queue_count"])


@router.post("/rpc/find_match", response_model=str | None)
async def rpc_find_match(
    body: FindMatchRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_optional_redis),
) -> str | None:
    """Pair the caller with a waiting player. Returns the match id or null."""
    if body.user_id != profile.id:
        raise Unauthorized("Unauthorized: You can only search for yourself")
    return await find_match(db, redis, profile.id, body.difficulty, body.time_control, body.iq_rating)
