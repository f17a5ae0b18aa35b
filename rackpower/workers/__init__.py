from rackpower.workers.unified_scheduler import JobResult, ScheduledJob, ScheduleType, UnifiedScheduler

__all__ = ["JobResult", "ScheduledJob", "ScheduleType", "UnifiedScheduler"]
