from competition_scheduler.models.schedule_record import ScheduleRecord

__all__ = [
    "ScheduleRecord",
]
