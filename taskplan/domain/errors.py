from typing import List, Optional


class TaskplanError(Exception):
    """Base class for all errors raised by the scheduling engine."""

    pass


class ValidationError(TaskplanError):
    """Raised when a request or a record carries missing or invalid values."""

    pass


class NotFoundError(TaskplanError):
    """Raised when a referenced project, task or user does not exist."""

    def __init__(self, kind: str, identifier):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier!r} not found")


class CycleError(TaskplanError):
    """
    A dependency cycle.

    Returned inside a GraphValidation by DependencyGraph.validate() and
    raised by DependencyGraph.add_dependency() when the proposed edge
    would close a cycle.
    """

    def __init__(self, task_ids: List, message: Optional[str] = None):
        self.task_ids = list(task_ids)
        if message is None:
            chain = " -> ".join(str(t) for t in self.task_ids)
            message = f"Circular dependency detected: {chain}"
        super().__init__(message)


class ConcurrentRescheduleError(TaskplanError):
    """Raised when another reschedule for the same project holds the lock too long."""

    pass


class RescheduleTimeoutError(TaskplanError):
    """Raised when a reschedule exceeds its time budget before the write phase."""

    pass


class PersistenceError(TaskplanError):
    """Raised when the store rejects a read or a write."""

    pass
