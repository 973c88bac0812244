"""Solo play, daily challenge and answer verification endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mathmaxxer.auth.dependencies import get_current_profile
from mathmaxxer.database import get_session
from mathmaxxer.db.models import Profile
from mathmaxxer.errors import ValidationError
from mathmaxxer.games.challenge_service import complete_daily_challenge, get_today_challenge
from mathmaxxer.games.schemas import (
    AnswerSubmitRequest,
    AnswerSubmitResponse,
    CompleteDailyChallengeRequest,
    CompleteDailyChallengeResponse,
    CompleteSoloGameRequest,
    CompleteSoloGameResponse,
    DailyChallengeResponse,
    GameSessionResponse,
    QuestionResponse,
    StartSessionRequest,
    VerifyAnswerRequest,
)
from mathmaxxer.games.session_service import (
    complete_solo_game,
    list_questions,
    record_game_answer,
    start_session,
)
from mathmaxxer.games.verifier import verify_answer
from mathmaxxer.redis_client import get_optional_redis

router = APIRouter(prefix="/api/v1", tags=["Games"])


@router.get("/questions", response_model=list[QuestionResponse])
async def get_questions(
    difficulty: str = Query("beginner"),
    limit: int = Query(10, ge=1, le=50),
    _profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> list[QuestionResponse]:
    """Random questions for a difficulty, without answers."""
    questions = await list_questions(db, difficulty, limit)
    return [QuestionResponse.model_validate(q) for q in questions]


@router.post("/rpc/verify_answer", response_model=bool)
async def rpc_verify_answer(
    body: VerifyAnswerRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> bool:
    """Server-side correctness check. Rate limited per user."""
    return await verify_answer(db, profile.id, body.question_id, body.user_answer)


@router.post("/sessions", response_model=GameSessionResponse, status_code=201)
async def create_session(
    body: StartSessionRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> GameSessionResponse:
    session = await start_session(db, profile.id, body.difficulty, body.time_control, body.challenge_id)
    return GameSessionResponse.model_validate(session)


@router.post("/sessions/{session_id}/answers", response_model=AnswerSubmitResponse, status_code=201)
async def submit_session_answer(
    session_id: str,
    body: AnswerSubmitRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> AnswerSubmitResponse:
    """Verify an answer and log it against the session."""
    is_correct = await record_game_answer(db, profile.id, session_id, body.question_id, body.user_answer)
    return AnswerSubmitResponse(is_correct=is_correct)


@router.post("/complete-solo-game", response_model=CompleteSoloGameResponse)
async def complete_solo_game_endpoint(
    body: CompleteSoloGameRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_optional_redis),
) -> CompleteSoloGameResponse:
    if not body.session_id:
        raise ValidationError("Missing required field: sessionId")
    result = await complete_solo_game(db, redis, profile.id, body.session_id)
    return CompleteSoloGameResponse(**result)


@router.post(
    "/complete-daily-challenge",
    response_model=CompleteDailyChallengeResponse,
    response_model_exclude_none=True,
)
async def complete_daily_challenge_endpoint(
    body: CompleteDailyChallengeRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_optional_redis),
) -> CompleteDailyChallengeResponse:
    """Complete a challenge session. A missed target returns 200 with ``success: false``."""
    if not body.session_id or not body.challenge_id:
        raise ValidationError("Missing required fields: sessionId and challengeId")
    result = await complete_daily_challenge(db, redis, profile.id, body.session_id, body.challenge_id)
    return CompleteDailyChallengeResponse(**result)


@router.get("/daily-challenge/today", response_model=DailyChallengeResponse)
async def daily_challenge_today(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> DailyChallengeResponse:
    return DailyChallengeResponse(**await get_today_challenge(db, profile.id))
