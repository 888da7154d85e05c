"""
Interval scheduler for caption regeneration using APScheduler.
Fires one cycle at startup, then every ``interval_seconds``.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from constants import REGENERATION_JOB_ID
from core.logging import get_logger
from services.regeneration import RegenerationController

logger = get_logger(__name__)


class CycleScheduler:
    """Owns the APScheduler job that triggers regeneration cycles.

    The job uses ``max_instances=1`` and ``coalesce=True``: a fire that lands
    while the previous cycle still runs is skipped by APScheduler, and the
    controller's single-slot guard drops any request that slips through.
    """

    def __init__(self, controller: RegenerationController, interval_seconds: int,
                 job_id: str = REGENERATION_JOB_ID,
                 scheduler: Optional[AsyncIOScheduler] = None):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.controller = controller
        self.interval_seconds = interval_seconds
        self.job_id = job_id
        self.scheduler = scheduler or AsyncIOScheduler(timezone="UTC")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self, run_immediately: bool = True) -> None:
        """Register the regeneration job and start the scheduler.

        Must be called from inside the running event loop.
        """
        job_kwargs: Dict[str, Any] = {
            "trigger": IntervalTrigger(seconds=self.interval_seconds, timezone="UTC"),
            "id": self.job_id,
            "name": "Caption regeneration cycle",
            "replace_existing": True,
            "max_instances": 1,
            "coalesce": True,
            "misfire_grace_time": None,
        }
        if run_immediately:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)

        self.scheduler.add_job(self.controller.trigger, **job_kwargs)

        if not self.scheduler.running:
            self.scheduler.start()
        logger.info("[Scheduler] Started", job_id=self.job_id,
                    interval_seconds=self.interval_seconds,
                    run_immediately=run_immediately,
                    next_run_time=str(self.next_run_time()))

    def shutdown(self) -> None:
        """Stop firing new cycles. An in-flight cycle is not cancelled."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("[Scheduler] Shutdown", job_id=self.job_id)

    def next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(self.job_id)
        return job.next_run_time if job else None
