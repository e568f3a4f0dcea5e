from __future__ import annotations


class MaintenanceError(Exception):
    """Base class for failures raised by the maintenance dispatcher and its adapters."""


class InvalidArgumentError(MaintenanceError):
    pass


class InvalidScheduleError(MaintenanceError):
    def __init__(self, schedule: str, reason: str) -> None:
        super().__init__(f"invalid schedule {schedule!r}: {reason}")
        self.schedule = schedule
        self.reason = reason


class RepositoryError(MaintenanceError):
    pass


class HostNotFoundError(RepositoryError):
    def __init__(self, host_id: str) -> None:
        super().__init__(f"host not found: {host_id}")
        self.host_id = host_id


class BackupRepositoryError(MaintenanceError):
    pass


class PublishError(MaintenanceError):
    pass


class OperationCancelledError(Exception):
    """Raised when a caller-supplied cancellation token fires mid-operation.

    Not a ``MaintenanceError``, so per-task failure handlers let it propagate.
    """
