"""
Configuration for the scheduling engine.

Values come from keyword arguments, a dictionary, or TASKPLAN_* environment
variables (a .env file is loaded first when present).
"""

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from taskplan.domain.errors import ValidationError

BOTTLENECK_RULES = ("simple", "composite")
CRITICAL_PATH_METHODS = ("fan_out", "longest")


class SchedulerConfig:
    """
    Tunable constants of the workload and reschedule engines.

    Args:
        default_hours_per_day: Hours per day assumed for a task whose hours
            cannot be spread over its span
        hours_per_working_day: Hours in one working day, used to turn
            estimated hours into a duration
        overload_threshold: Load percentage above which a day is a bottleneck
        max_daily_tasks: Active task count above which a day is a bottleneck
        bottleneck_rule: "simple" or "composite"
        weekend_hours_factor: Multiplier applied to task hours on weekend days
            (1.0 leaves them unchanged)
        critical_fraction: Share of connected tasks reported as critical
        critical_path_method: "fan_out" or "longest"
        auto_search_days: Working-day window searched by AUTO placement
        default_span_days: Working-day span given to undated tasks by AUTO
        lock_timeout: Seconds to wait for a project's reschedule lock
        reschedule_timeout: Optional seconds allowed before the write phase
        log_level: Logging level name
        log_file: Optional log file path
        database_path: Optional SQLite database path
    """

    def __init__(
        self,
        default_hours_per_day: float = 4.0,
        hours_per_working_day: float = 8.0,
        overload_threshold: float = 80.0,
        max_daily_tasks: int = 5,
        bottleneck_rule: str = "simple",
        weekend_hours_factor: float = 1.0,
        critical_fraction: float = 0.3,
        critical_path_method: str = "fan_out",
        auto_search_days: int = 5,
        default_span_days: int = 5,
        lock_timeout: float = 30.0,
        reschedule_timeout: Optional[float] = None,
        log_level: str = "INFO",
        log_file: Optional[str] = None,
        database_path: Optional[str] = None,
    ):
        if default_hours_per_day <= 0 or hours_per_working_day <= 0:
            raise ValidationError("Hours per day must be positive")
        self.default_hours_per_day = float(default_hours_per_day)
        self.hours_per_working_day = float(hours_per_working_day)

        if overload_threshold < 0 or max_daily_tasks < 0:
            raise ValidationError("Bottleneck thresholds must be non-negative")
        self.overload_threshold = float(overload_threshold)
        self.max_daily_tasks = int(max_daily_tasks)

        if bottleneck_rule not in BOTTLENECK_RULES:
            raise ValidationError(
                f"Invalid bottleneck rule: {bottleneck_rule}. Must be one of {list(BOTTLENECK_RULES)}"
            )
        self.bottleneck_rule = bottleneck_rule

        if weekend_hours_factor < 0:
            raise ValidationError("Weekend hours factor must be non-negative")
        self.weekend_hours_factor = float(weekend_hours_factor)

        if not 0 < critical_fraction <= 1:
            raise ValidationError("Critical fraction must be in (0, 1]")
        self.critical_fraction = float(critical_fraction)

        if critical_path_method not in CRITICAL_PATH_METHODS:
            raise ValidationError(
                f"Invalid critical path method: {critical_path_method}. Must be one of {list(CRITICAL_PATH_METHODS)}"
            )
        self.critical_path_method = critical_path_method

        if auto_search_days < 0 or default_span_days < 1:
            raise ValidationError("AUTO placement windows must be positive")
        self.auto_search_days = int(auto_search_days)
        self.default_span_days = int(default_span_days)

        if lock_timeout <= 0:
            raise ValidationError("Lock timeout must be positive")
        self.lock_timeout = float(lock_timeout)
        if reschedule_timeout is not None and reschedule_timeout <= 0:
            raise ValidationError("Reschedule timeout must be positive")
        self.reschedule_timeout = reschedule_timeout

        self.log_level = log_level
        self.log_file = log_file
        self.database_path = database_path

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchedulerConfig":
        """Build a configuration from a dictionary, ignoring unknown keys."""
        defaults = cls().to_dict()
        values = {key: data[key] for key in defaults if data.get(key) is not None}
        return cls(**values)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "SchedulerConfig":
        """
        Load configuration from TASKPLAN_* environment variables.

        Args:
            env_file: Optional path to a .env file

        Returns:
            SchedulerConfig: The loaded configuration

        Raises:
            ValidationError: If a variable cannot be parsed
        """
        load_dotenv(env_file)

        converters = {
            "default_hours_per_day": float,
            "hours_per_working_day": float,
            "overload_threshold": float,
            "max_daily_tasks": int,
            "bottleneck_rule": str,
            "weekend_hours_factor": float,
            "critical_fraction": float,
            "critical_path_method": str,
            "auto_search_days": int,
            "default_span_days": int,
            "lock_timeout": float,
            "reschedule_timeout": float,
            "log_level": str,
            "log_file": str,
            "database_path": str,
        }

        values = {}
        for key, convert in converters.items():
            raw = os.getenv(f"TASKPLAN_{key.upper()}")
            if raw is None or raw == "":
                continue
            try:
                values[key] = convert(raw)
            except ValueError:
                raise ValidationError(f"Invalid value for TASKPLAN_{key.upper()}: {raw!r}")

        return cls.from_dict(values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_hours_per_day": self.default_hours_per_day,
            "hours_per_working_day": self.hours_per_working_day,
            "overload_threshold": self.overload_threshold,
            "max_daily_tasks": self.max_daily_tasks,
            "bottleneck_rule": self.bottleneck_rule,
            "weekend_hours_factor": self.weekend_hours_factor,
            "critical_fraction": self.critical_fraction,
            "critical_path_method": self.critical_path_method,
            "auto_search_days": self.auto_search_days,
            "default_span_days": self.default_span_days,
            "lock_timeout": self.lock_timeout,
            "reschedule_timeout": self.reschedule_timeout,
            "log_level": self.log_level,
            "log_file": self.log_file,
            "database_path": self.database_path,
        }

    def __repr__(self) -> str:
        return f"SchedulerConfig({self.to_dict()})"
