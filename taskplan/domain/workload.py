from datetime import datetime
from typing import Any, Dict, List, Optional


def load_percentage(hours_allocated: float, hours_available: float) -> int:
    """Round allocated/available hours to a whole percentage."""
    if hours_available <= 0:
        return 0
    return round(hours_allocated / hours_available * 100)


def workload_level(percentage: float) -> str:
    """Bucket a load percentage into a named level."""
    if percentage <= 50:
        return "light"
    if percentage <= 70:
        return "moderate"
    if percentage <= 85:
        return "high"
    if percentage <= 100:
        return "heavy"
    return "overloaded"


class WorkloadSample:
    """
    One user's load on one day. Derived from tasks, never persisted.
    """

    def __init__(
        self,
        user_id,
        date: datetime,
        hours_allocated: float,
        hours_available: float,
        task_ids: Optional[List] = None,
    ):
        self.user_id = user_id
        self.date = date
        self.hours_allocated = hours_allocated
        self.hours_available = hours_available
        self.task_ids = list(task_ids or [])

    @property
    def load_percent(self) -> int:
        return load_percentage(self.hours_allocated, self.hours_available)

    @property
    def overloaded(self) -> bool:
        return self.load_percent > 100

    @property
    def level(self) -> str:
        return workload_level(self.load_percent)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "date": self.date,
            "hours_allocated": self.hours_allocated,
            "hours_available": self.hours_available,
            "load_percent": self.load_percent,
            "overloaded": self.overloaded,
            "task_ids": self.task_ids.copy(),
        }

    def __repr__(self) -> str:
        return (
            f"WorkloadSample(user_id={self.user_id}, date={self.date:%Y-%m-%d}, "
            f"load={self.load_percent}%)"
        )


class BottleneckRecord:
    """
    Aggregate demand on one day and whether it crosses the bottleneck rule.
    """

    def __init__(
        self,
        date: datetime,
        task_count: int,
        max_load_percent: int,
        is_bottleneck: bool,
        task_ids: Optional[List] = None,
        critical_task_ids: Optional[List] = None,
        average_load_percent: float = 0.0,
    ):
        self.date = date
        self.task_count = task_count
        self.max_load_percent = max_load_percent
        self.average_load_percent = average_load_percent
        self.is_bottleneck = is_bottleneck
        self.task_ids = list(task_ids or [])
        self.critical_task_ids = list(critical_task_ids or [])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "task_count": self.task_count,
            "max_load_percent": self.max_load_percent,
            "average_load_percent": self.average_load_percent,
            "is_bottleneck": self.is_bottleneck,
            "task_ids": self.task_ids.copy(),
            "critical_task_ids": self.critical_task_ids.copy(),
        }

    def __repr__(self) -> str:
        return (
            f"BottleneckRecord(date={self.date:%Y-%m-%d}, tasks={self.task_count}, "
            f"max_load={self.max_load_percent}%, bottleneck={self.is_bottleneck})"
        )


class WorkloadReport:
    """
    Workload statistics for a date range.
    """

    def __init__(self, start_date: datetime, end_date: datetime):
        self.start_date = start_date
        self.end_date = end_date
        self.daily: List[BottleneckRecord] = []
        self.samples: Dict[datetime, List[WorkloadSample]] = {}
        self.total_tasks = 0

    @property
    def bottlenecks(self) -> List[BottleneckRecord]:
        return [record for record in self.daily if record.is_bottleneck]

    @property
    def bottleneck_days(self) -> List[datetime]:
        return [record.date for record in self.bottlenecks]

    @property
    def average_load(self) -> float:
        """Mean over days of the highest user load of each day."""
        if not self.daily:
            return 0.0
        return sum(record.max_load_percent for record in self.daily) / len(self.daily)

    @property
    def max_load(self) -> int:
        return max((record.max_load_percent for record in self.daily), default=0)

    def user_summary(self) -> Dict[Any, Dict[str, float]]:
        """Average and peak load per user over the report range."""
        loads: Dict[Any, List[int]] = {}
        for day_samples in self.samples.values():
            for sample in day_samples:
                loads.setdefault(sample.user_id, []).append(sample.load_percent)

        return {
            user_id: {
                "average_load": sum(values) / len(values),
                "peak_load": max(values),
                "overloaded_days": sum(1 for v in values if v > 100),
            }
            for user_id, values in loads.items()
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_date": self.start_date,
            "end_date": self.end_date,
            "daily": [record.to_dict() for record in self.daily],
            "bottleneck_days": self.bottleneck_days,
            "average_load": self.average_load,
            "max_load": self.max_load,
            "total_tasks": self.total_tasks,
            "users": self.user_summary(),
        }
