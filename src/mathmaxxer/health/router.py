"""Health, readiness and version endpoints.

/ready reports degraded when Postgres or Redis is unreachable, or when the
question pool is empty (no solo session or match could be played).
"""

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mathmaxxer.config import get_settings
from mathmaxxer.database import get_session
from mathmaxxer.db.models import MatchmakingQueueEntry, Question
from mathmaxxer.redis_client import get_redis

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 while the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: database, Redis and question pool, plus queue depth."""
    checks: dict[str, object] = {}
    stats: dict[str, int] = {}

    try:
        questions = await db.execute(select(func.count(Question.id)))
        queued = await db.execute(select(func.count(MatchmakingQueueEntry.id)))
        stats["questions"] = int(questions.scalar_one())
        stats["matchmaking_queue"] = int(queued.scalar_one())
        checks["database"] = "ok"
        checks["question_pool"] = "ok" if stats["questions"] else "empty"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    try:
        redis = get_redis()
        await redis.ping()
        checks["redis"] = "ok"
    except Exception as exc:
        checks["redis"] = f"error: {exc}"

    all_ok = all(v == "ok" for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks, "stats": stats}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
