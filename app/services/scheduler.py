# app/services/scheduler.py
"""
Cooperative job scheduler (single asyncio task).

Jobs are plain callables keyed by kind: refresh, movement, dashboard, status.
tick(kind) runs one job immediately; run_due(now) runs every job whose due
time has passed; run() loops until stop(). A failing job is logged and the
loop carries on.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

from app.exceptions import NotFound
from app.utils.logger import get_logger

logger = get_logger(__name__)

# How often run() wakes up to check for due jobs
_POLL_SECONDS = 0.5


@dataclass
class Job:
    kind: str
    interval: float
    func: Callable[[], object]
    next_due: float = 0.0
    runs: int = 0
    failures: int = 0


class Scheduler:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._jobs: dict[str, Job] = {}
        self._stopped = asyncio.Event()

    def add_job(self, kind: str, interval: float, func: Callable[[], object], start: Optional[float] = None):
        if interval <= 0:
            raise ValueError(f"Job '{kind}' needs a positive interval")
        now = self._clock() if start is None else start
        self._jobs[kind] = Job(kind=kind, interval=interval, func=func, next_due=now + interval)

    @property
    def jobs(self) -> dict[str, Job]:
        return dict(self._jobs)

    def tick(self, kind: str) -> bool:
        """Run one job now. Returns False if the job raised."""
        job = self._jobs.get(kind)
        if job is None:
            raise NotFound(f"No scheduled job '{kind}'")
        job.runs += 1
        try:
            job.func()
            return True
        except Exception as e:
            job.failures += 1
            logger.error(f"[SCHED] Job '{kind}' failed: {e}", exc_info=True)
            return False

    def run_due(self, now: Optional[float] = None) -> list[str]:
        now = self._clock() if now is None else now
        ran = []
        for job in list(self._jobs.values()):
            if now < job.next_due:
                continue
            self.tick(job.kind)
            job.next_due += job.interval
            if job.next_due <= now:     # stalled: no catch-up bursts
                job.next_due = now + job.interval
            ran.append(job.kind)
        return ran

    async def run(self):
        self._stopped.clear()
        logger.info(f"[SCHED] Started: { {k: j.interval for k, j in self._jobs.items()} }")
        while not self._stopped.is_set():
            self.run_due()
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=_POLL_SECONDS)
            except asyncio.TimeoutError:
                pass
        logger.info("[SCHED] Stopped")

    def stop(self):
        self._stopped.set()
