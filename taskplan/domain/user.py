from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from taskplan.domain.errors import ValidationError
from taskplan.utils.calendar import WEEKDAYS, is_working_day


class UserError(ValidationError):
    """Exception raised for errors in the User class."""

    pass


class User:
    """
    A person who owns tasks and has a daily working capacity.
    """

    def __init__(
        self,
        id,
        name: Optional[str] = None,
        max_hours_per_day: float = 8,
        working_weekdays: Optional[Iterable[int]] = None,
    ):
        """
        Initialize a user.

        Args:
            id: Unique identifier for the user
            name: Display name (defaults to the id)
            max_hours_per_day: Hours the user can work per day (default: 8)
            working_weekdays: Weekday numbers (0=Monday) the user works
                (default: Monday to Friday)

        Raises:
            UserError: If any input validation fails
        """
        if id is None:
            raise UserError("User ID cannot be None")
        self.id = id
        self.name = name or str(id)

        if not isinstance(max_hours_per_day, (int, float)) or max_hours_per_day <= 0:
            raise UserError("Max hours per day must be a positive number")
        self.max_hours_per_day = float(max_hours_per_day)

        if working_weekdays is None:
            self.working_weekdays = WEEKDAYS
        else:
            weekdays = frozenset(working_weekdays)
            if not weekdays or not weekdays <= frozenset(range(7)):
                raise UserError("Working weekdays must be a non-empty subset of 0-6")
            self.working_weekdays = weekdays

    def is_working_day(self, day: datetime) -> bool:
        return is_working_day(day, self.working_weekdays)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "max_hours_per_day": self.max_hours_per_day,
            "working_weekdays": sorted(self.working_weekdays),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=data["id"],
            name=data.get("name"),
            max_hours_per_day=data.get("max_hours_per_day", 8),
            working_weekdays=data.get("working_weekdays"),
        )

    def __repr__(self) -> str:
        return f"User(id={self.id}, max_hours_per_day={self.max_hours_per_day})"
