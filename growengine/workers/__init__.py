"""Background scheduling for the sensing and control loops."""

from growengine.workers.control_loop_scheduler import ControlLoopScheduler
from growengine.workers.periodic_scheduler import JobResult, JobStatus, PeriodicScheduler, ScheduledJob

__all__ = ["ControlLoopScheduler", "JobResult", "JobStatus", "PeriodicScheduler", "ScheduledJob"]
