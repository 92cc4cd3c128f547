"""Scheduling of periodic and background bulk notification runs."""

from .service import SchedulerService, SubmittedRun

__all__ = [
    "SchedulerService",
    "SubmittedRun",
]
