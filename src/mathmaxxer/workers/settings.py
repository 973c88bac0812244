"""arq worker settings module.

Import path for arq CLI: arq mathmaxxer.workers.settings.WorkerSettings
"""

from __future__ import annotations

from arq import cron

from mathmaxxer.competition.matchmaking_worker import (
    matchmaking_worker_shutdown,
    matchmaking_worker_startup,
    sweep_matchmaking_queue,
)


class WorkerSettings:
    """arq worker settings for the matchmaking sweep."""

    functions = [sweep_matchmaking_queue]
    cron_jobs = [
        cron(sweep_matchmaking_queue, second={0, 15, 30, 45}, run_at_startup=True),
    ]
    on_startup = matchmaking_worker_startup
    on_shutdown = matchmaking_worker_shutdown
    max_jobs = 1
    job_timeout = 60


__all__ = ["WorkerSettings"]
