"""Scheduler service for periodic and background bulk runs."""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from duty_notifier.logging import get_logger

logger = get_logger(__name__, component="scheduler")

PERIODIC_JOB_ID = "duty-notify"


@dataclass
class SubmittedRun:
    """Handle for a one-off job submitted to the background scheduler."""

    job_id: str
    done: threading.Event = field(default_factory=threading.Event)
    result: Any = None
    error: Optional[BaseException] = None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the job finished; returns False on timeout."""
        return self.done.wait(timeout)


class SchedulerService:
    """
    Wraps APScheduler to trigger bulk runs.

    Periodic mode calls run_callable every interval_seconds, starting
    immediately. One-off jobs can be submitted at any time to run on the
    scheduler's worker thread while the caller returns straight away.
    """

    def __init__(
        self,
        run_callable: Optional[Callable[[], Any]] = None,
        interval_seconds: Optional[int] = None,
        shutdown_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the scheduler service.

        Args:
            run_callable: Function to call on each periodic run (e.g., pipeline.run_upcoming)
            interval_seconds: Interval between periodic runs in seconds
            shutdown_event: Optional event to set on shutdown for coordination
        """
        self.run_callable = run_callable
        self.interval_seconds = interval_seconds
        self.shutdown_event = shutdown_event

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,  # Prevent overlapping runs
                "coalesce": True,
                "misfire_grace_time": interval_seconds or 60,
            },
            timezone=timezone.utc,
        )

    def start(self) -> None:
        """
        Start the scheduler and register the periodic job.

        The first run executes immediately; later runs follow the interval.

        Raises:
            ValueError: If no callable or interval was configured
        """
        if self.run_callable is None or not self.interval_seconds:
            raise ValueError("Periodic mode needs run_callable and interval_seconds")

        next_run = datetime.now(timezone.utc)
        self.scheduler.add_job(
            func=self.run_callable,
            trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc),
            id=PERIODIC_JOB_ID,
            name="Invigilation duty notification",
            replace_existing=True,
            next_run_time=next_run,
        )
        self._ensure_running()

        logger.info(
            f"Scheduler started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
                "next_run_time": next_run.isoformat(),
            },
        )

    def submit_once(self, func: Callable[..., Any], *args: Any) -> SubmittedRun:
        """
        Run func(*args) once on the scheduler's worker thread.

        Args:
            func: Callable to run
            *args: Positional arguments for func

        Returns:
            SubmittedRun whose done event is set when func returns or raises
        """
        handle = SubmittedRun(job_id=f"once-{uuid4().hex[:12]}")

        def _run() -> None:
            try:
                handle.result = func(*args)
            except Exception as e:
                handle.error = e
                logger.error(
                    f"Background job {handle.job_id} failed: {e}",
                    exc_info=True,
                    extra={"event": "scheduler.job.failed", "job_id": handle.job_id},
                )
            finally:
                handle.done.set()

        self.scheduler.add_job(func=_run, id=handle.job_id, name="Background bulk run")
        self._ensure_running()

        logger.info(
            "Background job submitted",
            extra={"event": "scheduler.job.submitted", "job_id": handle.job_id},
        )
        return handle

    def _ensure_running(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self, wait: bool = False) -> None:
        """
        Shutdown the scheduler.

        Args:
            wait: If True, wait for running jobs to complete before returning
        """
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        """Next periodic run time, or None if the periodic job is not scheduled."""
        job = self.scheduler.get_job(PERIODIC_JOB_ID)
        return job.next_run_time if job else None
